"""
Clock source for enforcement timestamps.

Stored timestamps are ISO-8601 UTC with fixed microsecond precision and a
trailing "Z", so string order equals time order in SQL comparisons.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


_clock: Optional[Clock] = None


def get_clock() -> Clock:
    global _clock
    if _clock is None:
        _clock = SystemClock()
    return _clock


def set_clock(clock: Optional[Clock]) -> None:
    """Swap the process clock (None restores the system clock)."""
    global _clock
    _clock = clock


def now_utc() -> datetime:
    return get_clock().now().astimezone(timezone.utc)


def to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_iso(s: str) -> datetime:
    v = s[:-1] + "+00:00" if s.endswith("Z") else s
    dt = datetime.fromisoformat(v)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def now_iso() -> str:
    return to_iso(now_utc())
