"""
Enforcement error taxonomy.

Every failure is synchronous and non-retryable: the operator broke a rule and
must change the input. The HTTP layer renders these with the error envelope.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ForceError(Exception):
    error = "force_error"
    status_code = 400
    code = "force_error"

    def __init__(self, message: str, *, code: Optional[str] = None, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details: Dict[str, Any] = dict(details)

    def to_details(self) -> Dict[str, Any]:
        return {"code": self.code, **self.details}


# --- categories ---
class ValidationError(ForceError):
    """Input violates a hard limit; caller must shrink it."""

    error = "validation_error"
    status_code = 400


class StateConflictError(ForceError):
    """Operation does not apply to the current state."""

    error = "state_conflict"
    status_code = 409


class GateError(ForceError):
    """A prerequisite step has not been completed."""

    error = "gate_error"
    status_code = 412


class NotFoundError(ForceError):
    error = "not_found"
    status_code = 404
    code = "not_found"


# --- specific rules ---
class ShipWindowExceeded(ValidationError):
    code = "ship_window_exceeded"


class DoneCriteriaLimitExceeded(ValidationError):
    code = "done_criteria_limit_exceeded"


class DoneCriteriaRequired(ValidationError):
    code = "done_criteria_required"


class ScopeExceeded(ValidationError):
    code = "scope_exceeded"


class NotActiveArtifact(StateConflictError):
    code = "not_active_artifact"


class EditLocked(StateConflictError):
    code = "edit_locked"


class IllegalTransition(StateConflictError):
    code = "illegal_transition"


class BlockAlreadyRunning(StateConflictError):
    code = "block_already_running"


class BlockNotRunning(StateConflictError):
    code = "block_not_running"


class RealityGateNotPassed(GateError):
    code = "reality_gate_not_passed"
