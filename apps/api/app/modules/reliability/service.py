"""
Reliability aggregation.

Block and artifact outcomes append one ReliabilityEvent per counter
increment, inside the transaction of the state change that caused them.
Weekly metrics are a pure fold over those events, so a week's counters can
only grow and never touch another week.
"""
from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection

from app.core.clock import now_iso, now_utc, parse_iso, to_iso
from app.core.config import get_week_timezone
from app.core.db import transaction
from app.core.ids import new_ulid

from .models import EVENT_KINDS

# reliability score weights (rates with an empty denominator are dropped)
WEIGHT_COMPLETION = 0.4
WEIGHT_DIFF = 0.2
WEIGHT_ON_TIME = 0.4


def _local_midnight(day: date, tz: Optional[tzinfo]) -> datetime:
    if tz is not None:
        return datetime(day.year, day.month, day.day, tzinfo=tz)
    # naive -> host local rules for that date (offset follows DST)
    return datetime(day.year, day.month, day.day).astimezone()


def week_start(at: datetime, tz: Optional[tzinfo]) -> datetime:
    """Sunday 00:00 of the week containing `at`, in `tz` or the host's local time when None."""
    local = at.astimezone(tz) if tz is not None else at.astimezone()
    # Monday=0 .. Sunday=6
    days_since_sunday = (local.weekday() + 1) % 7
    return _local_midnight(local.date() - timedelta(days=days_since_sunday), tz)


def record_event(
    conn: Connection,
    kind: str,
    artifact_id: str,
    *,
    block_id: Optional[str] = None,
    occurred_at: Optional[str] = None,
) -> str:
    if kind not in EVENT_KINDS:
        raise ValueError(f"unknown reliability event kind: {kind!r}")
    event_id = new_ulid()
    conn.execute(
        text(
            "INSERT INTO reliability_events (id, kind, artifact_id, block_id, occurred_at) "
            "VALUES (:id, :kind, :artifact_id, :block_id, :occurred_at)"
        ),
        {
            "id": event_id,
            "kind": kind,
            "artifact_id": artifact_id,
            "block_id": block_id,
            "occurred_at": occurred_at or now_iso(),
        },
    )
    return event_id


def reliability_score(counts: Mapping[str, int]) -> float:
    scheduled = counts.get("blocks_scheduled", 0)
    on_time = counts.get("artifacts_shipped_on_time", 0)
    outcomes = on_time + counts.get("artifacts_failed", 0)

    parts: List[Tuple[float, float]] = []
    if scheduled:
        parts.append((WEIGHT_COMPLETION, counts.get("blocks_completed", 0) / scheduled))
        parts.append((WEIGHT_DIFF, counts.get("blocks_with_diff", 0) / scheduled))
    if outcomes:
        parts.append((WEIGHT_ON_TIME, on_time / outcomes))
    if not parts:
        return 0.0

    total_weight = sum(w for w, _ in parts)
    return round(sum(w * r for w, r in parts) / total_weight, 4)


def _metrics_row(start: datetime, counts: Mapping[str, int]) -> Dict[str, Any]:
    row: Dict[str, Any] = {"week_start": start.isoformat()}
    for kind in EVENT_KINDS:
        row[kind] = int(counts.get(kind, 0))
    row["reliability_score"] = reliability_score(counts)
    return row


def fold_events(events: Iterable[Mapping[str, Any]], tz: Optional[tzinfo]) -> List[Dict[str, Any]]:
    """Group events by week start and count kinds; newest week first."""
    buckets: Dict[datetime, Counter] = defaultdict(Counter)
    for ev in events:
        start = week_start(parse_iso(str(ev["occurred_at"])), tz)
        buckets[start][str(ev["kind"])] += 1
    return [_metrics_row(start, buckets[start]) for start in sorted(buckets, reverse=True)]


def _load_events(conn: Connection, since: Optional[str] = None, until: Optional[str] = None) -> List[Dict[str, Any]]:
    where: List[str] = []
    args: Dict[str, Any] = {}
    if since is not None:
        where.append("occurred_at >= :since")
        args["since"] = since
    if until is not None:
        where.append("occurred_at < :until")
        args["until"] = until
    sql = "SELECT kind, occurred_at FROM reliability_events"
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += " ORDER BY occurred_at"
    return [dict(r._mapping) for r in conn.execute(text(sql), args)]


def get_week_metrics(at: Optional[datetime] = None) -> Dict[str, Any]:
    tz = get_week_timezone()
    start = week_start(at or now_utc(), tz)
    # next local midnight a week on (DST-safe: rebuild from the date)
    end = _local_midnight((start + timedelta(days=7, hours=12)).date(), tz)

    with transaction() as conn:
        events = _load_events(conn, since=to_iso(start), until=to_iso(end))
    rows = fold_events(events, tz)
    return rows[0] if rows else _metrics_row(start, Counter())


def list_week_metrics() -> List[Dict[str, Any]]:
    with transaction() as conn:
        events = _load_events(conn)
    return fold_events(events, get_week_timezone())
