from __future__ import annotations

from typing import Optional

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from app.core.db import append_only


# append-only (enforced by SQLite triggers)
class SkippedBlock(SQLModel, table=True):
    __tablename__ = "skipped_blocks"
    __table_args__ = (Index("ix_skipped_blocks_artifact_id_skipped_at", "artifact_id", "skipped_at"),)

    id: str = Field(primary_key=True)
    artifact_id: str = Field(foreign_key="artifacts.id")
    scheduled_time: str
    skipped_at: str
    reason: Optional[str] = Field(default=None)


# append-only (enforced by SQLite triggers)
class Autopsy(SQLModel, table=True):
    __tablename__ = "autopsies"
    __table_args__ = (Index("ix_autopsies_artifact_id_created_at", "artifact_id", "created_at"),)

    id: str = Field(primary_key=True)
    artifact_id: str = Field(foreign_key="artifacts.id")
    created_at: str

    # 0|1 answers
    shipped_on_time: int
    scope_respected: int
    external_feedback_received: int
    one_clear_takeaway: int
    repeat_artifact_class: int


append_only(SkippedBlock.__table__)  # type: ignore[arg-type]
append_only(Autopsy.__table__)  # type: ignore[arg-type]
