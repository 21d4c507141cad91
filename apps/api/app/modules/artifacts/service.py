from __future__ import annotations

import json
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from app.core.clock import now_utc, parse_iso, to_iso
from app.core.db import transaction
from app.core.errors import (
    DoneCriteriaLimitExceeded,
    DoneCriteriaRequired,
    EditLocked,
    NotActiveArtifact,
    NotFoundError,
    ScopeExceeded,
    ShipWindowExceeded,
    StateConflictError,
)
from app.core.ids import new_ulid
from app.core.observability import emit
from app.modules.checkpoints.service import schedule_checkpoint
from app.modules.reliability.service import record_event

from .state import ArtifactState

MAX_SHIP_DAYS = 7
MAX_DONE_CRITERIA = 5


def count_words(content: str) -> int:
    """Non-empty tokens after trimming and splitting on whitespace runs."""
    return len(content.split())


def _row_to_artifact(row: Any) -> Dict[str, Any]:
    d = dict(row._mapping)
    try:
        criteria = json.loads(d.pop("done_criteria_json") or "[]")
    except ValueError:
        criteria = []
    d["done_criteria"] = criteria if isinstance(criteria, list) else []
    for k in ("done_criteria_met", "edit_locked", "shipping_proof_submitted"):
        d[k] = bool(d[k])

    shipped_on_time: Optional[bool] = None
    if d.get("shipped_at"):
        shipped_on_time = parse_iso(d["shipped_at"]) <= parse_iso(d["ship_date"])
    d["shipped_on_time"] = shipped_on_time
    return d


def _fetch(conn: Connection, artifact_id: str) -> Optional[Any]:
    return conn.execute(text("SELECT * FROM artifacts WHERE id = :id"), {"id": artifact_id}).fetchone()


def _fetch_active(conn: Connection) -> Optional[Any]:
    return conn.execute(text("SELECT * FROM artifacts WHERE status = 'active' LIMIT 1")).fetchone()


def _require(conn: Connection, artifact_id: str) -> Any:
    row = _fetch(conn, artifact_id)
    if row is None:
        raise NotFoundError("Artifact not found.", artifact_id=artifact_id)
    return row


def _require_active(conn: Connection, artifact_id: str) -> Any:
    row = _fetch_active(conn)
    if row is None or row._mapping["id"] != artifact_id:
        raise NotActiveArtifact("BLOCKED: Can only update active artifact.", artifact_id=artifact_id)
    return row


def _write_state(conn: Connection, artifact_id: str, state: ArtifactState, **extra: Any) -> None:
    cols = {**state.to_columns(), **extra}
    keys = sorted(cols.keys())
    set_sql = ", ".join(f"{k} = :{k}" for k in keys)
    conn.execute(text(f"UPDATE artifacts SET {set_sql} WHERE id = :_id"), {**cols, "_id": artifact_id})


def _archive(conn: Connection, row: Any, *, reason: str) -> None:
    artifact_id = row._mapping["id"]
    state = ArtifactState.from_row(row._mapping).archive()
    _write_state(conn, artifact_id, state)
    # never shipped -> counts as a failed artifact for its week
    record_event(conn, "artifacts_failed", artifact_id)
    emit("info", "artifact.archive", f"artifact {artifact_id} archived ({reason})", module=__name__,
         artifact_id=artifact_id, reason=reason)


# -------------------------
# Queries
# -------------------------
def get_active_artifact() -> Optional[Dict[str, Any]]:
    with transaction() as conn:
        row = _fetch_active(conn)
        return _row_to_artifact(row) if row is not None else None


def get_artifact(artifact_id: str) -> Dict[str, Any]:
    with transaction() as conn:
        return _row_to_artifact(_require(conn, artifact_id))


def list_artifacts() -> List[Dict[str, Any]]:
    with transaction() as conn:
        rows = conn.execute(text("SELECT * FROM artifacts ORDER BY created_at DESC, id DESC")).fetchall()
        return [_row_to_artifact(r) for r in rows]


# -------------------------
# Lifecycle
# -------------------------
def create_artifact(
    *,
    name: str,
    type: str,
    ship_days: int,
    done_criteria: List[str],
    external_recipient: str,
    max_word_count: int,
) -> Dict[str, Any]:
    # validate first: a rejected create leaves the current artifact active
    if ship_days > MAX_SHIP_DAYS:
        raise ShipWindowExceeded(
            f"BLOCKED: Ship date cannot exceed {MAX_SHIP_DAYS} days.", ship_days=ship_days, max=MAX_SHIP_DAYS
        )
    if len(done_criteria) > MAX_DONE_CRITERIA:
        raise DoneCriteriaLimitExceeded(
            f"BLOCKED: Definition of Done cannot exceed {MAX_DONE_CRITERIA} bullets.",
            count=len(done_criteria),
            max=MAX_DONE_CRITERIA,
        )
    if not done_criteria:
        raise DoneCriteriaRequired("BLOCKED: Definition of Done needs at least one bullet.")

    now = now_utc()
    state = ArtifactState.initial()
    artifact_id = new_ulid()
    row: Dict[str, Any] = {
        "id": artifact_id,
        "name": name,
        "type": type,
        "content": "",
        "ship_date": to_iso(now + timedelta(days=ship_days)),
        "created_at": to_iso(now),
        "shipped_at": None,
        "version": 1,
        "done_criteria_json": json.dumps(list(done_criteria), ensure_ascii=False),
        "external_recipient": external_recipient,
        "max_word_count": max_word_count,
        "current_word_count": 0,
        "shipping_proof_url": None,
        **state.to_columns(),
    }

    try:
        with transaction() as conn:
            active = _fetch_active(conn)
            if active is not None:
                _archive(conn, active, reason="superseded")

            keys = sorted(row.keys())
            conn.execute(
                text(f"INSERT INTO artifacts ({', '.join(keys)}) VALUES ({', '.join(':' + k for k in keys)})"),
                row,
            )
            schedule_checkpoint(conn, artifact_id, created_at=row["created_at"], ship_date=row["ship_date"])
            created = _row_to_artifact(_require(conn, artifact_id))
    except IntegrityError as e:
        # uq_artifacts_single_active: another writer won the race
        raise StateConflictError("BLOCKED: another artifact became active concurrently.",
                                 code="active_artifact_conflict") from e

    emit("info", "artifact.create", f"artifact {artifact_id} created", module=__name__,
         artifact_id=artifact_id, ship_date=row["ship_date"], max_word_count=max_word_count)
    return created


def update_content(artifact_id: str, content: str) -> None:
    with transaction() as conn:
        # edit lock outlives the active status (locked/shipped artifacts report it too)
        target = _fetch(conn, artifact_id)
        if target is not None and target._mapping["edit_locked"]:
            raise EditLocked("BLOCKED: Edit lock active. Artifact is done. Ship or archive only.",
                             artifact_id=artifact_id)

        a = _require_active(conn, artifact_id)._mapping
        word_count = count_words(content)
        if word_count > a["max_word_count"]:
            raise ScopeExceeded(
                f"BLOCKED: Scope lock exceeded. Max {a['max_word_count']} words. "
                f"Current: {word_count}. Delete content to proceed.",
                max_word_count=a["max_word_count"],
                word_count=word_count,
            )

        conn.execute(
            text(
                "UPDATE artifacts SET content = :content, current_word_count = :wc, version = version + 1 "
                "WHERE id = :id AND status = 'active' AND edit_locked = 0"
            ),
            {"content": content, "wc": word_count, "id": artifact_id},
        )

    emit("info", "artifact.content", f"artifact {artifact_id} content saved", module=__name__,
         artifact_id=artifact_id, word_count=word_count)


def mark_done_criteria_met(artifact_id: str) -> None:
    with transaction() as conn:
        row = _require_active(conn, artifact_id)
        state = ArtifactState.from_row(row._mapping).lock()
        _write_state(conn, artifact_id, state)

    emit("info", "artifact.done", f"artifact {artifact_id} edit-locked", module=__name__, artifact_id=artifact_id)


def submit_shipping_proof(artifact_id: str, proof_url: str) -> None:
    with transaction() as conn:
        row = _require(conn, artifact_id)
        state = ArtifactState.from_row(row._mapping).with_proof()
        _write_state(conn, artifact_id, state, shipping_proof_url=proof_url)

    emit("info", "artifact.proof", f"artifact {artifact_id} shipping proof submitted", module=__name__,
         artifact_id=artifact_id, proof_url=proof_url)


def ship_artifact(artifact_id: str) -> Dict[str, Any]:
    with transaction() as conn:
        row = _require(conn, artifact_id)
        state = ArtifactState.from_row(row._mapping).ship()

        now = now_utc()
        shipped_at = to_iso(now)
        _write_state(conn, artifact_id, state, shipped_at=shipped_at)

        on_time = now <= parse_iso(row._mapping["ship_date"])
        record_event(conn, "artifacts_shipped_on_time" if on_time else "artifacts_failed", artifact_id,
                     occurred_at=shipped_at)
        shipped = _row_to_artifact(_require(conn, artifact_id))

    emit("info", "artifact.ship", f"artifact {artifact_id} shipped", module=__name__,
         artifact_id=artifact_id, on_time=on_time)
    return shipped


def abandon_artifact(artifact_id: str) -> Dict[str, Any]:
    with transaction() as conn:
        row = _require(conn, artifact_id)
        _archive(conn, row, reason="abandoned")
        abandoned = _row_to_artifact(_require(conn, artifact_id))
    return abandoned
