"""
Artifact lifecycle as an explicit tagged state.

The stored columns (status, edit_locked, done_criteria_met,
shipping_proof_submitted) are only ever written from an ArtifactState, so
impossible combinations such as "shipped but editable" cannot be built.

    active --mark done--> locked --ship--> shipped
       |                    |
       +------ship----------+--> shipped   (requires proof)
       |                    |
       +-----archive--------+--> archived  (superseded / abandoned)

shipped and archived are terminal.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping

from app.core.errors import IllegalTransition, RealityGateNotPassed


class ArtifactStatus(str, Enum):
    ACTIVE = "active"
    LOCKED = "locked"
    SHIPPED = "shipped"
    ARCHIVED = "archived"


_TRANSITIONS: Mapping[ArtifactStatus, FrozenSet[ArtifactStatus]] = {
    ArtifactStatus.ACTIVE: frozenset({ArtifactStatus.LOCKED, ArtifactStatus.SHIPPED, ArtifactStatus.ARCHIVED}),
    ArtifactStatus.LOCKED: frozenset({ArtifactStatus.SHIPPED, ArtifactStatus.ARCHIVED}),
    ArtifactStatus.SHIPPED: frozenset(),
    ArtifactStatus.ARCHIVED: frozenset(),
}


@dataclass(frozen=True)
class ArtifactState:
    status: ArtifactStatus
    edit_locked: bool = False
    done_criteria_met: bool = False
    proof_submitted: bool = False

    def __post_init__(self) -> None:
        if self.status is ArtifactStatus.ACTIVE and self.edit_locked:
            raise ValueError("active artifact cannot be edit-locked")
        if self.status in (ArtifactStatus.LOCKED, ArtifactStatus.SHIPPED) and not self.edit_locked:
            raise ValueError(f"{self.status.value} artifact must be edit-locked")
        if self.status is ArtifactStatus.LOCKED and not self.done_criteria_met:
            raise ValueError("locked artifact must have done criteria met")
        if self.status is ArtifactStatus.SHIPPED and not self.proof_submitted:
            raise ValueError("shipped artifact must have shipping proof")

    @classmethod
    def initial(cls) -> "ArtifactState":
        return cls(status=ArtifactStatus.ACTIVE)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ArtifactState":
        return cls(
            status=ArtifactStatus(row["status"]),
            edit_locked=bool(row["edit_locked"]),
            done_criteria_met=bool(row["done_criteria_met"]),
            proof_submitted=bool(row["shipping_proof_submitted"]),
        )

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.status]

    def _move(self, target: ArtifactStatus, **changes: Any) -> "ArtifactState":
        if target not in _TRANSITIONS[self.status]:
            raise IllegalTransition(
                f"BLOCKED: artifact is {self.status.value}; cannot move to {target.value}.",
                current=self.status.value,
                target=target.value,
            )
        return replace(self, status=target, **changes)

    def lock(self) -> "ArtifactState":
        """Done criteria met: content freezes for good."""
        return self._move(ArtifactStatus.LOCKED, edit_locked=True, done_criteria_met=True)

    def ship(self) -> "ArtifactState":
        if not self.proof_submitted:
            raise RealityGateNotPassed(
                "BLOCKED: External Reality Gate not passed. Submit proof of external shipping "
                "(URL, screenshot, email confirmation)."
            )
        return self._move(ArtifactStatus.SHIPPED, edit_locked=True)

    def archive(self) -> "ArtifactState":
        return self._move(ArtifactStatus.ARCHIVED)

    def with_proof(self) -> "ArtifactState":
        # proof may arrive in any state; it only opens the gate
        return replace(self, proof_submitted=True)

    def to_columns(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "edit_locked": int(self.edit_locked),
            "done_criteria_met": int(self.done_criteria_met),
            "shipping_proof_submitted": int(self.proof_submitted),
        }
