"""
Autopsy & failure log.

Append-only: rows are only ever INSERTed; the store's triggers reject
UPDATE/DELETE on both tables.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

from app.core.clock import now_iso
from app.core.db import transaction
from app.core.errors import NotFoundError
from app.core.ids import new_ulid

NO_REASON = "No reason provided"

AUTOPSY_QUESTIONS = (
    "shipped_on_time",
    "scope_respected",
    "external_feedback_received",
    "one_clear_takeaway",
    "repeat_artifact_class",
)


def _require_artifact(conn: Connection, artifact_id: str) -> None:
    row = conn.execute(text("SELECT id FROM artifacts WHERE id = :id"), {"id": artifact_id}).fetchone()
    if row is None:
        raise NotFoundError("Artifact not found.", artifact_id=artifact_id)


def _row_to_autopsy(row: Mapping[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    for k in AUTOPSY_QUESTIONS:
        d[k] = bool(d[k])
    return d


def create_autopsy(artifact_id: str, answers: Mapping[str, bool]) -> Dict[str, Any]:
    row: Dict[str, Any] = {"id": new_ulid(), "artifact_id": artifact_id, "created_at": now_iso()}
    for k in AUTOPSY_QUESTIONS:
        row[k] = 1 if answers.get(k) else 0

    with transaction() as conn:
        _require_artifact(conn, artifact_id)
        keys = sorted(row.keys())
        conn.execute(
            text(f"INSERT INTO autopsies ({', '.join(keys)}) VALUES ({', '.join(':' + k for k in keys)})"),
            row,
        )
    return _row_to_autopsy(row)


def log_skipped_block(artifact_id: str, scheduled_time: str, reason: Optional[str] = None) -> Dict[str, Any]:
    row = {
        "id": new_ulid(),
        "artifact_id": artifact_id,
        "scheduled_time": scheduled_time,
        "skipped_at": now_iso(),
        "reason": reason or NO_REASON,
    }
    with transaction() as conn:
        _require_artifact(conn, artifact_id)
        conn.execute(
            text(
                "INSERT INTO skipped_blocks (id, artifact_id, scheduled_time, skipped_at, reason) "
                "VALUES (:id, :artifact_id, :scheduled_time, :skipped_at, :reason)"
            ),
            row,
        )
    return row


def get_autopsies(artifact_id: Optional[str] = None) -> List[Dict[str, Any]]:
    with transaction() as conn:
        if artifact_id:
            rows = conn.execute(
                text("SELECT * FROM autopsies WHERE artifact_id = :aid ORDER BY created_at DESC"),
                {"aid": artifact_id},
            ).fetchall()
        else:
            rows = conn.execute(text("SELECT * FROM autopsies ORDER BY created_at DESC")).fetchall()
        return [_row_to_autopsy(r._mapping) for r in rows]


def get_skipped_blocks(artifact_id: Optional[str] = None) -> List[Dict[str, Any]]:
    with transaction() as conn:
        if artifact_id:
            rows = conn.execute(
                text("SELECT * FROM skipped_blocks WHERE artifact_id = :aid ORDER BY skipped_at DESC"),
                {"aid": artifact_id},
            ).fetchall()
        else:
            rows = conn.execute(text("SELECT * FROM skipped_blocks ORDER BY skipped_at DESC")).fetchall()
        return [dict(r._mapping) for r in rows]
