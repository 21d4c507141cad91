from __future__ import annotations

from typing import Optional

from sqlalchemy import CheckConstraint, Index
from sqlmodel import Field, SQLModel

from app.core.db import append_only

EVENT_KINDS = (
    "blocks_scheduled",
    "blocks_completed",
    "blocks_with_diff",
    "artifacts_shipped_on_time",
    "artifacts_failed",
)


# append-only; weekly metrics are folded from these rows on read
class ReliabilityEvent(SQLModel, table=True):
    __tablename__ = "reliability_events"
    __table_args__ = (
        CheckConstraint(
            "kind IN ('blocks_scheduled','blocks_completed','blocks_with_diff',"
            "'artifacts_shipped_on_time','artifacts_failed')",
            name="ck_reliability_events_kind",
        ),
        Index("ix_reliability_events_occurred_at", "occurred_at"),
    )

    id: str = Field(primary_key=True)
    kind: str
    artifact_id: str = Field(foreign_key="artifacts.id")
    block_id: Optional[str] = Field(default=None, foreign_key="blocks.id")
    occurred_at: str


append_only(ReliabilityEvent.__table__)  # type: ignore[arg-type]
