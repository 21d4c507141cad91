"""
Mid-window checkpoint gate.

Each artifact gets one checkpoint halfway through its ship window (day 3-4 of
a 7-day window). Evaluating it once the date has passed records how much of
the scope ceiling the content fills.
"""
from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy import text
from sqlalchemy.engine import Connection

from app.core.clock import now_utc, parse_iso, to_iso
from app.core.db import transaction
from app.core.errors import NotFoundError, StateConflictError
from app.core.ids import new_ulid
from app.core.observability import emit

REQUIRED_COMPLETION_PCT = 50.0


def _row_to_checkpoint(row: Any) -> Dict[str, Any]:
    d = dict(row._mapping)
    d["passed"] = bool(d["passed"])
    return d


def schedule_checkpoint(conn: Connection, artifact_id: str, *, created_at: str, ship_date: str) -> str:
    start = parse_iso(created_at)
    midpoint = start + (parse_iso(ship_date) - start) / 2
    checkpoint_id = new_ulid()
    conn.execute(
        text(
            "INSERT INTO checkpoints (id, artifact_id, checkpoint_date, required_completion_pct, passed) "
            "VALUES (:id, :artifact_id, :checkpoint_date, :required, 0)"
        ),
        {
            "id": checkpoint_id,
            "artifact_id": artifact_id,
            "checkpoint_date": to_iso(midpoint),
            "required": REQUIRED_COMPLETION_PCT,
        },
    )
    return checkpoint_id


def list_checkpoints(artifact_id: str) -> List[Dict[str, Any]]:
    with transaction() as conn:
        rows = conn.execute(
            text("SELECT * FROM checkpoints WHERE artifact_id = :aid ORDER BY checkpoint_date ASC"),
            {"aid": artifact_id},
        ).fetchall()
        return [_row_to_checkpoint(r) for r in rows]


def evaluate_checkpoint(checkpoint_id: str) -> Dict[str, Any]:
    with transaction() as conn:
        row = conn.execute(
            text(
                "SELECT c.*, a.current_word_count, a.max_word_count "
                "FROM checkpoints c JOIN artifacts a ON a.id = c.artifact_id WHERE c.id = :id"
            ),
            {"id": checkpoint_id},
        ).fetchone()
        if row is None:
            raise NotFoundError("Checkpoint not found.", checkpoint_id=checkpoint_id)
        c = row._mapping

        if c["evaluated_at"] is not None:
            raise StateConflictError("Checkpoint already evaluated.", code="checkpoint_already_evaluated",
                                     checkpoint_id=checkpoint_id)
        now = now_utc()
        if now < parse_iso(c["checkpoint_date"]):
            raise StateConflictError("Checkpoint is not due yet.", code="checkpoint_not_due",
                                     checkpoint_id=checkpoint_id, checkpoint_date=c["checkpoint_date"])

        max_words = int(c["max_word_count"]) or 1
        actual = min(100.0, round(int(c["current_word_count"]) / max_words * 100.0, 2))
        passed = actual >= float(c["required_completion_pct"])

        conn.execute(
            text(
                "UPDATE checkpoints SET actual_completion_pct = :actual, passed = :passed, evaluated_at = :at "
                "WHERE id = :id AND evaluated_at IS NULL"
            ),
            {"actual": actual, "passed": int(passed), "at": to_iso(now), "id": checkpoint_id},
        )
        out = conn.execute(text("SELECT * FROM checkpoints WHERE id = :id"), {"id": checkpoint_id}).fetchone()

    emit("info", "checkpoint.evaluate", f"checkpoint {checkpoint_id} {'passed' if passed else 'failed'}",
         module=__name__, checkpoint_id=checkpoint_id, actual_completion_pct=actual)
    return _row_to_checkpoint(out)
