from __future__ import annotations

from typing import Optional

from sqlalchemy import Index
from sqlmodel import Field, SQLModel


class Checkpoint(SQLModel, table=True):
    __tablename__ = "checkpoints"
    __table_args__ = (Index("ix_checkpoints_artifact_id", "artifact_id"),)

    id: str = Field(primary_key=True)
    artifact_id: str = Field(foreign_key="artifacts.id")
    checkpoint_date: str
    required_completion_pct: float
    actual_completion_pct: Optional[float] = Field(default=None)
    passed: int = Field(default=0)
    evaluated_at: Optional[str] = Field(default=None)
