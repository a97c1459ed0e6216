"""Health report model produced by the status computation."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from stacked.models.branch import BranchStatus


class HealthState(str, enum.Enum):
    """Derived health of a tracked branch."""

    ACTIVE = "active"
    SUBMITTED = "submitted"
    MERGED = "merged"
    NEEDS_REBASE = "needs-rebase"
    ORPHANED = "orphaned"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value

    @property
    def is_warning(self) -> bool:
        return self in (HealthState.NEEDS_REBASE, HealthState.ORPHANED, HealthState.UNKNOWN)


@dataclass(frozen=True)
class HealthReport:
    """Health of one branch at the time of computation.

    Attributes:
        name: Branch name.
        base_name: The branch's recorded base.
        status: The recorded lifecycle status.
        state: Derived health state.
        depth: Distance from trunk (1 = stacked directly on trunk), or
            None when the branch does not reach trunk.
        reason: Human-readable explanation for warning states.
        remediation: Commands that resolve the warning, in order.
        proposed_status: A status transition suggested by version-control
            facts but not applied (e.g. merged upstream, still active here).
    """

    name: str
    base_name: str
    status: BranchStatus
    state: HealthState
    depth: int | None = None
    pr_number: int | None = None
    spec_id: str | None = None
    reason: str | None = None
    remediation: tuple[str, ...] = field(default_factory=tuple)
    proposed_status: BranchStatus | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "baseName": self.base_name,
            "status": self.status.value,
            "health": self.state.value,
            "depth": self.depth,
            "prNumber": self.pr_number,
            "specId": self.spec_id,
            "reason": self.reason,
            "remediation": list(self.remediation),
            "proposedStatus": self.proposed_status.value if self.proposed_status else None,
        }
