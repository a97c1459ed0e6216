"""Protocol definitions for stacked.

Defines the read-only version-control port consumed by the status and
import computations, the frozen value types it returns, and
StaticVersionControl, an adapter over a pre-captured facts document.

Nothing here executes git: facts are always supplied by a collaborator.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import IO, Protocol, runtime_checkable

from stacked.exceptions import VersionControlQueryError


@dataclass(frozen=True)
class BranchFacts:
    """Version-control facts about one branch.

    Attributes:
        tip: Current tip revision, or None if the branch has no known tip.
        merged: Whether the branch has been merged into trunk.
    """

    tip: str | None
    merged: bool = False


@dataclass(frozen=True)
class TrackingBranch:
    """A local branch and its configured upstream tracking reference."""

    name: str
    upstream: str | None = None


@runtime_checkable
class VersionControlPort(Protocol):
    """Read-only query port onto the repository's version control.

    Implementations raise VersionControlQueryError when a query fails.
    """

    def branch_facts(self, name: str) -> BranchFacts | None:
        """Return facts for *name*, or None if the branch does not exist."""
        ...

    def tracking_branches(self) -> list[TrackingBranch]:
        """Return every local branch with its upstream tracking reference."""
        ...


class StaticVersionControl:
    """VersionControlPort over facts captured ahead of time.

    The facts document layout is::

        {"branches": {"<name>": {"tip": "<rev>|null",
                                 "merged": false,
                                 "upstream": "<ref>|null"}}}
    """

    def __init__(
        self,
        facts: dict[str, BranchFacts] | None = None,
        tracking: list[TrackingBranch] | None = None,
    ) -> None:
        self._facts = dict(facts or {})
        self._tracking = list(tracking or [])

    @classmethod
    def from_dict(cls, data: object) -> StaticVersionControl:
        if not isinstance(data, dict) or not isinstance(data.get("branches"), dict):
            raise VersionControlQueryError(
                "Facts document must be an object with a 'branches' object"
            )
        facts: dict[str, BranchFacts] = {}
        tracking: list[TrackingBranch] = []
        for name, entry in data["branches"].items():
            if entry is None:
                entry = {}
            if not isinstance(entry, dict):
                raise VersionControlQueryError(
                    f"Facts for branch '{name}' must be an object"
                )
            tip = entry.get("tip")
            upstream = entry.get("upstream")
            if tip is not None and not isinstance(tip, str):
                raise VersionControlQueryError(f"'tip' for branch '{name}' must be a string")
            if upstream is not None and not isinstance(upstream, str):
                raise VersionControlQueryError(
                    f"'upstream' for branch '{name}' must be a string"
                )
            facts[name] = BranchFacts(tip=tip, merged=bool(entry.get("merged", False)))
            tracking.append(TrackingBranch(name=name, upstream=upstream))
        return cls(facts, tracking)

    @classmethod
    def from_stream(cls, stream: IO[str]) -> StaticVersionControl:
        try:
            data = json.load(stream)
        except json.JSONDecodeError as e:
            raise VersionControlQueryError(f"Facts document is not valid JSON: {e}") from e
        return cls.from_dict(data)

    def branch_facts(self, name: str) -> BranchFacts | None:
        return self._facts.get(name)

    def tracking_branches(self) -> list[TrackingBranch]:
        return list(self._tracking)
