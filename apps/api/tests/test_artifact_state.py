"""Tests for the artifact tagged-state machine."""

import pytest

from app.core.errors import IllegalTransition, RealityGateNotPassed
from app.modules.artifacts.state import ArtifactState, ArtifactStatus


def test_initial_state_is_active_and_editable():
    s = ArtifactState.initial()
    assert s.status is ArtifactStatus.ACTIVE
    assert s.edit_locked is False
    assert s.to_columns() == {
        "status": "active",
        "edit_locked": 0,
        "done_criteria_met": 0,
        "shipping_proof_submitted": 0,
    }


def test_lock_sets_done_and_edit_lock():
    s = ArtifactState.initial().lock()
    assert s.status is ArtifactStatus.LOCKED
    assert s.edit_locked is True
    assert s.done_criteria_met is True


def test_ship_requires_proof():
    with pytest.raises(RealityGateNotPassed):
        ArtifactState.initial().lock().ship()


def test_ship_from_active_freezes_content():
    s = ArtifactState.initial().with_proof().ship()
    assert s.status is ArtifactStatus.SHIPPED
    assert s.edit_locked is True
    assert s.done_criteria_met is False


def test_shipped_is_terminal():
    s = ArtifactState.initial().lock().with_proof().ship()
    assert s.is_terminal
    with pytest.raises(IllegalTransition):
        s.ship()
    with pytest.raises(IllegalTransition):
        s.archive()


def test_archived_is_terminal():
    s = ArtifactState.initial().archive()
    assert s.is_terminal
    with pytest.raises(IllegalTransition):
        s.lock()


def test_locked_cannot_relock():
    with pytest.raises(IllegalTransition):
        ArtifactState.initial().lock().lock()


def test_locked_archive_keeps_edit_lock():
    s = ArtifactState.initial().lock().archive()
    assert s.status is ArtifactStatus.ARCHIVED
    assert s.edit_locked is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"status": ArtifactStatus.ACTIVE, "edit_locked": True},
        {"status": ArtifactStatus.LOCKED, "edit_locked": False, "done_criteria_met": True},
        {"status": ArtifactStatus.LOCKED, "edit_locked": True, "done_criteria_met": False},
        {"status": ArtifactStatus.SHIPPED, "edit_locked": False, "proof_submitted": True},
        {"status": ArtifactStatus.SHIPPED, "edit_locked": True, "proof_submitted": False},
    ],
)
def test_impossible_combinations_cannot_be_built(kwargs):
    with pytest.raises(ValueError):
        ArtifactState(**kwargs)


def test_from_row_reads_flags():
    row = {"status": "locked", "edit_locked": 1, "done_criteria_met": 1, "shipping_proof_submitted": 0}
    s = ArtifactState.from_row(row)
    assert s == ArtifactState(ArtifactStatus.LOCKED, edit_locked=True, done_criteria_met=True)
