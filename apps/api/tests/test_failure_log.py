"""Tests for the append-only autopsy and skipped-block log."""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from app.core.db import transaction
from app.core.errors import NotFoundError
from app.modules.failure_log.service import (
    NO_REASON,
    create_autopsy,
    get_autopsies,
    get_skipped_blocks,
    log_skipped_block,
)

ANSWERS = {
    "shipped_on_time": True,
    "scope_respected": True,
    "external_feedback_received": False,
    "one_clear_takeaway": True,
    "repeat_artifact_class": False,
}


class TestSkippedBlocks:
    """Test skipped block logging."""

    def test_default_reason(self, make_artifact) -> None:
        a = make_artifact()
        row = log_skipped_block(a["id"], "2026-10-14T09:00:00.000000Z")
        assert row["reason"] == NO_REASON
        assert row["skipped_at"] == "2026-10-14T12:00:00.000000Z"
        assert get_skipped_blocks()[0]["reason"] == NO_REASON

    def test_blank_reason_uses_default(self, make_artifact) -> None:
        a = make_artifact()
        assert log_skipped_block(a["id"], "2026-10-14T09:00:00.000000Z", "")["reason"] == NO_REASON

    def test_newest_first_and_filtered(self, make_artifact, clock) -> None:
        a = make_artifact(name="a")
        clock.advance(minutes=1)
        b = make_artifact(name="b")
        log_skipped_block(a["id"], "2026-10-14T09:00:00.000000Z", "sick")
        clock.advance(minutes=1)
        log_skipped_block(b["id"], "2026-10-14T10:00:00.000000Z", "meeting")

        assert [r["reason"] for r in get_skipped_blocks()] == ["meeting", "sick"]
        assert [r["reason"] for r in get_skipped_blocks(a["id"])] == ["sick"]

    def test_unknown_artifact(self) -> None:
        with pytest.raises(NotFoundError):
            log_skipped_block("missing", "2026-10-14T09:00:00.000000Z")


class TestAutopsies:
    """Test autopsy records."""

    def test_create_and_list(self, make_artifact, clock) -> None:
        a = make_artifact()
        first = create_autopsy(a["id"], ANSWERS)
        clock.advance(hours=1)
        second = create_autopsy(a["id"], {"shipped_on_time": False})

        assert first["scope_respected"] is True
        assert first["external_feedback_received"] is False
        assert second["scope_respected"] is False

        listed = get_autopsies(a["id"])
        assert [r["id"] for r in listed] == [second["id"], first["id"]]
        assert listed[1] == first

    def test_unknown_artifact(self) -> None:
        with pytest.raises(NotFoundError):
            create_autopsy("missing", ANSWERS)


class TestAppendOnly:
    """Test that the store rejects rewriting history."""

    @pytest.mark.parametrize(
        "sql",
        [
            "UPDATE autopsies SET scope_respected = 0",
            "DELETE FROM autopsies",
        ],
    )
    def test_autopsies_are_immutable(self, make_artifact, sql) -> None:
        a = make_artifact()
        create_autopsy(a["id"], ANSWERS)
        with pytest.raises(DBAPIError, match="append-only"):
            with transaction() as conn:
                conn.execute(text(sql))
        assert len(get_autopsies()) == 1

    @pytest.mark.parametrize(
        "sql",
        [
            "UPDATE skipped_blocks SET reason = 'rewritten'",
            "DELETE FROM skipped_blocks",
        ],
    )
    def test_skipped_blocks_are_immutable(self, make_artifact, sql) -> None:
        a = make_artifact()
        log_skipped_block(a["id"], "2026-10-14T09:00:00.000000Z", "sick")
        with pytest.raises(DBAPIError, match="append-only"):
            with transaction() as conn:
                conn.execute(text(sql))
        assert get_skipped_blocks()[0]["reason"] == "sick"

    def test_reliability_events_are_immutable(self, make_artifact) -> None:
        make_artifact()
        make_artifact()
        with pytest.raises(DBAPIError, match="append-only"):
            with transaction() as conn:
                conn.execute(text("DELETE FROM reliability_events"))
