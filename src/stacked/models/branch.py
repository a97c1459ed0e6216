"""Branch domain model for stacked.

Branch is one tracked record in the registry.  BranchStatus is the enum of
lifecycle states; it only advances active -> submitted -> merged except via
the explicit reopen operation.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BranchStatus(str, enum.Enum):
    """Lifecycle status of a tracked branch."""

    ACTIVE = "active"
    SUBMITTED = "submitted"
    MERGED = "merged"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    def __repr__(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


_STATUS_ORDER = (BranchStatus.ACTIVE, BranchStatus.SUBMITTED, BranchStatus.MERGED)


class Branch(BaseModel):
    """One tracked branch and the base it is stacked on.

    ``base_name`` is either another tracked branch or the registry's trunk.
    Instances are immutable snapshots; mutations produce new records via
    ``model_copy(update=...)``.
    """

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "frozen": True,
    }

    name: str = Field(min_length=1)
    base_name: str = Field(min_length=1)
    spec_id: Optional[str] = None
    pr_number: Optional[int] = None
    status: BranchStatus = BranchStatus.ACTIVE
    last_known_base_tip: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    def __str__(self) -> str:
        pr = f", PR #{self.pr_number}" if self.pr_number is not None else ""
        return f"{self.name} (base={self.base_name}, {self.status.value}{pr})"
