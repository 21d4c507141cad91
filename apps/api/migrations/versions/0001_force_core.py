"""force core: artifacts, blocks, checkpoints, failure log, reliability events

- artifacts: at most one active (partial unique index) + tagged-state CHECKs
- blocks: at most one running per artifact (partial unique index)
- skipped_blocks / autopsies / reliability_events: append-only (no UPDATE/DELETE)

Revision ID: 0001_force_core
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_force_core"
down_revision = None
branch_labels = None
depends_on = None

APPEND_ONLY = ("skipped_blocks", "autopsies", "reliability_events")


def upgrade() -> None:
    # ---- artifacts ----
    op.create_table(
        "artifacts",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("ship_date", sa.Text(), nullable=False),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),  # active|locked|shipped|archived
        sa.Column("shipped_at", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("done_criteria_json", sa.Text(), nullable=False),
        sa.Column("external_recipient", sa.Text(), nullable=False),
        sa.Column("max_word_count", sa.Integer(), nullable=False),
        sa.Column("current_word_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("done_criteria_met", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("edit_locked", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("shipping_proof_url", sa.Text(), nullable=True),
        sa.Column("shipping_proof_submitted", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("status IN ('active','locked','shipped','archived')", name="ck_artifacts_status"),
        sa.CheckConstraint("status != 'active' OR edit_locked = 0", name="ck_artifacts_active_unlocked"),
        sa.CheckConstraint("status NOT IN ('locked','shipped') OR edit_locked = 1", name="ck_artifacts_frozen_locked"),
        sa.CheckConstraint("status != 'shipped' OR shipping_proof_submitted = 1", name="ck_artifacts_shipped_has_proof"),
        sa.CheckConstraint("status != 'active' OR current_word_count <= max_word_count", name="ck_artifacts_scope_lock"),
    )
    op.create_index("ix_artifacts_created_at", "artifacts", ["created_at"])
    # at most one active artifact (partial unique index)
    op.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_artifacts_single_active
        ON artifacts(status)
        WHERE status = 'active';
        """
    )

    # ---- blocks ----
    op.create_table(
        "blocks",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("artifact_id", sa.Text(), sa.ForeignKey("artifacts.id"), nullable=False),
        sa.Column("expected_diff_type", sa.Text(), nullable=False),
        sa.Column("start_time", sa.Text(), nullable=False),
        sa.Column("end_time", sa.Text(), nullable=True),
        sa.Column("content_before", sa.Text(), nullable=False),
        sa.Column("content_after", sa.Text(), nullable=True),
        sa.Column("has_diff", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.Text(), nullable=False),  # running|completed|failed
        sa.CheckConstraint(
            "expected_diff_type IN ('paragraph','section','slide','figure','commit')",
            name="ck_blocks_expected_diff_type",
        ),
        sa.CheckConstraint("status IN ('running','completed','failed')", name="ck_blocks_status"),
    )
    op.create_index("ix_blocks_artifact_id_start_time", "blocks", ["artifact_id", "start_time"])
    op.create_index("ix_blocks_status_start_time", "blocks", ["status", "start_time"])
    # at most one running block per artifact (partial unique index)
    op.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_blocks_running_per_artifact
        ON blocks(artifact_id)
        WHERE status = 'running';
        """
    )

    # ---- checkpoints ----
    op.create_table(
        "checkpoints",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("artifact_id", sa.Text(), sa.ForeignKey("artifacts.id"), nullable=False),
        sa.Column("checkpoint_date", sa.Text(), nullable=False),
        sa.Column("required_completion_pct", sa.Float(), nullable=False),
        sa.Column("actual_completion_pct", sa.Float(), nullable=True),
        sa.Column("passed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("evaluated_at", sa.Text(), nullable=True),
    )
    op.create_index("ix_checkpoints_artifact_id", "checkpoints", ["artifact_id"])

    # ---- failure log (append-only) ----
    op.create_table(
        "skipped_blocks",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("artifact_id", sa.Text(), sa.ForeignKey("artifacts.id"), nullable=False),
        sa.Column("scheduled_time", sa.Text(), nullable=False),
        sa.Column("skipped_at", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
    )
    op.create_index("ix_skipped_blocks_artifact_id_skipped_at", "skipped_blocks", ["artifact_id", "skipped_at"])

    op.create_table(
        "autopsies",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("artifact_id", sa.Text(), sa.ForeignKey("artifacts.id"), nullable=False),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("shipped_on_time", sa.Integer(), nullable=False),
        sa.Column("scope_respected", sa.Integer(), nullable=False),
        sa.Column("external_feedback_received", sa.Integer(), nullable=False),
        sa.Column("one_clear_takeaway", sa.Integer(), nullable=False),
        sa.Column("repeat_artifact_class", sa.Integer(), nullable=False),
    )
    op.create_index("ix_autopsies_artifact_id_created_at", "autopsies", ["artifact_id", "created_at"])

    # ---- reliability events (append-only) ----
    op.create_table(
        "reliability_events",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("artifact_id", sa.Text(), sa.ForeignKey("artifacts.id"), nullable=False),
        sa.Column("block_id", sa.Text(), sa.ForeignKey("blocks.id"), nullable=True),
        sa.Column("occurred_at", sa.Text(), nullable=False),
        sa.CheckConstraint(
            "kind IN ('blocks_scheduled','blocks_completed','blocks_with_diff',"
            "'artifacts_shipped_on_time','artifacts_failed')",
            name="ck_reliability_events_kind",
        ),
    )
    op.create_index("ix_reliability_events_occurred_at", "reliability_events", ["occurred_at"])

    # ---- append-only invariants (SQLite triggers) ----
    for table in APPEND_ONLY:
        op.execute(
            f"""
            CREATE TRIGGER IF NOT EXISTS trg_{table}_no_update
            BEFORE UPDATE ON {table}
            BEGIN
              SELECT RAISE(ABORT, 'append-only: {table} cannot be updated');
            END;
            """
        )
        op.execute(
            f"""
            CREATE TRIGGER IF NOT EXISTS trg_{table}_no_delete
            BEFORE DELETE ON {table}
            BEGIN
              SELECT RAISE(ABORT, 'append-only: {table} cannot be deleted');
            END;
            """
        )


def downgrade() -> None:
    # drop triggers first
    for table in reversed(APPEND_ONLY):
        op.execute(f"DROP TRIGGER IF EXISTS trg_{table}_no_delete;")
        op.execute(f"DROP TRIGGER IF EXISTS trg_{table}_no_update;")

    op.drop_index("ix_reliability_events_occurred_at", table_name="reliability_events")
    op.drop_table("reliability_events")

    op.drop_index("ix_autopsies_artifact_id_created_at", table_name="autopsies")
    op.drop_table("autopsies")

    op.drop_index("ix_skipped_blocks_artifact_id_skipped_at", table_name="skipped_blocks")
    op.drop_table("skipped_blocks")

    op.drop_index("ix_checkpoints_artifact_id", table_name="checkpoints")
    op.drop_table("checkpoints")

    op.execute("DROP INDEX IF EXISTS uq_blocks_running_per_artifact;")
    op.drop_index("ix_blocks_status_start_time", table_name="blocks")
    op.drop_index("ix_blocks_artifact_id_start_time", table_name="blocks")
    op.drop_table("blocks")

    op.execute("DROP INDEX IF EXISTS uq_artifacts_single_active;")
    op.drop_index("ix_artifacts_created_at", table_name="artifacts")
    op.drop_table("artifacts")
