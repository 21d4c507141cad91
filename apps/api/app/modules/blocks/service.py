"""
Block execution engine.

running -> completed (qualifying diff) | failed (none), both terminal.
A block left running past BLOCK_DURATION is force-ended by the sweep.
Ending is a conditional UPDATE on status='running', so an explicit end and
the sweep can never both end the same block.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from app.core.clock import now_utc, to_iso
from app.core.db import transaction
from app.core.errors import BlockAlreadyRunning, BlockNotRunning, ForceError, NotFoundError, ValidationError
from app.core.ids import new_ulid
from app.core.observability import emit
from app.modules.reliability.service import record_event

from .diff import detect_diff

BLOCK_DURATION = timedelta(minutes=30)

DIFF_TYPES = ("paragraph", "section", "slide", "figure", "commit")


def _row_to_block(row: Any) -> Dict[str, Any]:
    d = dict(row._mapping)
    d["has_diff"] = bool(d["has_diff"])
    return d


def _fetch(conn: Connection, block_id: str) -> Optional[Any]:
    return conn.execute(text("SELECT * FROM blocks WHERE id = :id"), {"id": block_id}).fetchone()


def _already_running(artifact_id: str) -> BlockAlreadyRunning:
    return BlockAlreadyRunning("BLOCKED: A block is already running. Complete it first.", artifact_id=artifact_id)


def start_block(artifact_id: str, expected_diff_type: str, content_before: str) -> Dict[str, Any]:
    if expected_diff_type not in DIFF_TYPES:
        raise ValidationError(f"Unknown diff type: {expected_diff_type}.", code="unknown_diff_type",
                              allowed=list(DIFF_TYPES))

    block_id = new_ulid()
    start_time = to_iso(now_utc())
    try:
        with transaction() as conn:
            art = conn.execute(text("SELECT id FROM artifacts WHERE id = :id"), {"id": artifact_id}).fetchone()
            if art is None:
                raise NotFoundError("Artifact not found.", artifact_id=artifact_id)

            existing = conn.execute(
                text("SELECT id FROM blocks WHERE artifact_id = :aid AND status = 'running' LIMIT 1"),
                {"aid": artifact_id},
            ).fetchone()
            if existing is not None:
                raise _already_running(artifact_id)

            conn.execute(
                text(
                    "INSERT INTO blocks (id, artifact_id, expected_diff_type, start_time, content_before, has_diff, status) "
                    "VALUES (:id, :aid, :dt, :st, :cb, 0, 'running')"
                ),
                {"id": block_id, "aid": artifact_id, "dt": expected_diff_type, "st": start_time, "cb": content_before},
            )
            record_event(conn, "blocks_scheduled", artifact_id, block_id=block_id, occurred_at=start_time)
            block = _row_to_block(_fetch(conn, block_id))
    except IntegrityError as e:
        # uq_blocks_running_per_artifact
        raise _already_running(artifact_id) from e

    emit("info", "block.start", f"block {block_id} started: {expected_diff_type}", module=__name__,
         block_id=block_id, artifact_id=artifact_id)
    return block


def end_block(block_id: str, content_after: str) -> Dict[str, Any]:
    with transaction() as conn:
        row = _fetch(conn, block_id)
        if row is None:
            raise NotFoundError("Block not found.", block_id=block_id)
        b = row._mapping
        if b["status"] != "running":
            raise BlockNotRunning("Block is not running.", block_id=block_id, status=b["status"])

        end_time = to_iso(now_utc())
        has_diff = detect_diff(b["content_before"], content_after)
        status = "completed" if has_diff else "failed"

        res = conn.execute(
            text(
                "UPDATE blocks SET end_time = :et, content_after = :ca, has_diff = :hd, status = :st "
                "WHERE id = :id AND status = 'running'"
            ),
            {"et": end_time, "ca": content_after, "hd": int(has_diff), "st": status, "id": block_id},
        )
        if res.rowcount != 1:
            raise BlockNotRunning("Block is not running.", block_id=block_id)

        if status == "completed":
            record_event(conn, "blocks_completed", b["artifact_id"], block_id=block_id, occurred_at=end_time)
        if has_diff:
            record_event(conn, "blocks_with_diff", b["artifact_id"], block_id=block_id, occurred_at=end_time)
        ended = _row_to_block(_fetch(conn, block_id))

    emit("info", "block.end", f"BLOCK {status.upper()}: {b['expected_diff_type']} - Diff: {has_diff}",
         module=__name__, block_id=block_id, artifact_id=b["artifact_id"], status=status)
    return ended


def auto_expire_sweep(current_content: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    End every block running longer than BLOCK_DURATION.

    current_content is the after-snapshot for all expired blocks; when None,
    each block's artifact's stored content is used. Never raises: failures
    are logged per block and the sweep moves on.
    """
    cutoff = to_iso(now_utc() - BLOCK_DURATION)
    try:
        with transaction() as conn:
            expired = conn.execute(
                text(
                    "SELECT b.id, b.artifact_id, a.content AS artifact_content "
                    "FROM blocks b JOIN artifacts a ON a.id = b.artifact_id "
                    "WHERE b.status = 'running' AND b.start_time < :cutoff ORDER BY b.start_time"
                ),
                {"cutoff": cutoff},
            ).fetchall()
    except Exception as e:
        # e.g. busy timeout; the next sweep retries
        emit("error", "block.sweep.error", str(e), module=__name__, type=type(e).__name__)
        return []

    ended: List[Dict[str, Any]] = []
    for r in expired:
        block_id = r._mapping["id"]
        snapshot = current_content if current_content is not None else (r._mapping["artifact_content"] or "")
        emit("info", "block.sweep.expired", f"AUTO-ENDING: Block {block_id} exceeded 30 minutes",
             module=__name__, block_id=block_id)
        try:
            ended.append(end_block(block_id, snapshot))
        except ForceError as e:
            # ended concurrently between the scan and the update
            emit("warning", "block.sweep.error", e.message, module=__name__, block_id=block_id, code=e.code)
        except Exception as e:
            emit("error", "block.sweep.error", str(e), module=__name__, block_id=block_id,
                 type=type(e).__name__)
    return ended


def get_running_block() -> Optional[Dict[str, Any]]:
    with transaction() as conn:
        row = conn.execute(
            text("SELECT * FROM blocks WHERE status = 'running' ORDER BY start_time DESC LIMIT 1")
        ).fetchone()
        return _row_to_block(row) if row is not None else None


def get_block_history(artifact_id: str) -> List[Dict[str, Any]]:
    with transaction() as conn:
        rows = conn.execute(
            text("SELECT * FROM blocks WHERE artifact_id = :aid ORDER BY start_time DESC"),
            {"aid": artifact_id},
        ).fetchall()
        return [_row_to_block(r) for r in rows]


def get_block_stats(artifact_id: str) -> Dict[str, int]:
    with transaction() as conn:
        row = conn.execute(
            text(
                """
                SELECT
                  COUNT(*) AS total,
                  SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END) AS completed,
                  SUM(CASE WHEN has_diff = 1 THEN 1 ELSE 0 END) AS with_diff,
                  SUM(CASE WHEN status = 'failed' THEN 1 ELSE 0 END) AS failed
                FROM blocks
                WHERE artifact_id = :aid
                """
            ),
            {"aid": artifact_id},
        ).fetchone()
    m = row._mapping
    # SUM over zero rows is NULL
    return {k: int(m[k] or 0) for k in ("total", "completed", "with_diff", "failed")}
