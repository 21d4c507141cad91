from __future__ import annotations

from typing import Optional

from sqlalchemy import CheckConstraint, Index, text
from sqlmodel import Field, SQLModel


class Artifact(SQLModel, table=True):
    __tablename__ = "artifacts"
    __table_args__ = (
        CheckConstraint("status IN ('active','locked','shipped','archived')", name="ck_artifacts_status"),
        # tagged-state backstop: no impossible flag combinations
        CheckConstraint("status != 'active' OR edit_locked = 0", name="ck_artifacts_active_unlocked"),
        CheckConstraint(
            "status NOT IN ('locked','shipped') OR edit_locked = 1", name="ck_artifacts_frozen_locked"
        ),
        CheckConstraint(
            "status != 'shipped' OR shipping_proof_submitted = 1", name="ck_artifacts_shipped_has_proof"
        ),
        CheckConstraint(
            "status != 'active' OR current_word_count <= max_word_count", name="ck_artifacts_scope_lock"
        ),
        # at most one active artifact (partial unique index)
        Index(
            "uq_artifacts_single_active",
            "status",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        Index("ix_artifacts_created_at", "created_at"),
    )

    id: str = Field(primary_key=True)
    name: str
    type: str
    content: str = Field(default="")
    ship_date: str
    created_at: str
    status: str  # active|locked|shipped|archived
    shipped_at: Optional[str] = Field(default=None)
    version: int = Field(default=1)

    # immutable after creation
    done_criteria_json: str
    external_recipient: str
    max_word_count: int
    current_word_count: int = Field(default=0)

    # 0|1 flags, driven by ArtifactState transitions only
    done_criteria_met: int = Field(default=0)
    edit_locked: int = Field(default=0)
    shipping_proof_url: Optional[str] = Field(default=None)
    shipping_proof_submitted: int = Field(default=0)
