from __future__ import annotations

from typing import Optional

from sqlalchemy import CheckConstraint, Index, text
from sqlmodel import Field, SQLModel


class Block(SQLModel, table=True):
    __tablename__ = "blocks"
    __table_args__ = (
        CheckConstraint(
            "expected_diff_type IN ('paragraph','section','slide','figure','commit')",
            name="ck_blocks_expected_diff_type",
        ),
        CheckConstraint("status IN ('running','completed','failed')", name="ck_blocks_status"),
        # at most one running block per artifact (partial unique index)
        Index(
            "uq_blocks_running_per_artifact",
            "artifact_id",
            unique=True,
            sqlite_where=text("status = 'running'"),
            postgresql_where=text("status = 'running'"),
        ),
        Index("ix_blocks_artifact_id_start_time", "artifact_id", "start_time"),
        Index("ix_blocks_status_start_time", "status", "start_time"),
    )

    id: str = Field(primary_key=True)
    artifact_id: str = Field(foreign_key="artifacts.id")
    expected_diff_type: str  # paragraph|section|slide|figure|commit
    start_time: str
    end_time: Optional[str] = Field(default=None)
    content_before: str
    content_after: Optional[str] = Field(default=None)
    has_diff: int = Field(default=0)
    status: str  # running|completed|failed
