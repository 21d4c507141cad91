from __future__ import annotations

# minimum net addition (normalized characters) that counts as a diff
MIN_MEANINGFUL_CHARS = 50


def normalize(content: str) -> str:
    """Trim and collapse every whitespace run to a single space."""
    return " ".join(content.split())


def detect_diff(before: str, after: str) -> bool:
    if before == after:
        return False

    norm_before = normalize(before)
    norm_after = normalize(after)
    # formatting-only edits
    if norm_before == norm_after:
        return False

    # net additions only; deletions and small edits never qualify
    return len(norm_after) - len(norm_before) >= MIN_MEANINGFUL_CHARS
