"""Status computation for stacked -- per-branch health of the stack.

Combines the registry's graph with version-control facts supplied by a
VersionControlPort.  Facts are never computed here; when they are missing
or the port fails, the affected branches are reported as unknown rather
than guessed.

A branch needs a rebase when its base is merged and the base tip recorded
on the branch differs from the base's current tip.  Merged status is never
applied from facts: a branch that version control reports as merged while
its record is not carries a proposed transition instead.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from stacked.exceptions import VersionControlQueryError
from stacked.models.branch import BranchStatus
from stacked.models.health import HealthReport, HealthState
from stacked.operations import dag

if TYPE_CHECKING:
    from stacked.models.branch import Branch
    from stacked.models.registry import RegistryDocument
    from stacked.protocols import BranchFacts, VersionControlPort

logger = logging.getLogger(__name__)

_STATE_FOR_STATUS = {
    BranchStatus.ACTIVE: HealthState.ACTIVE,
    BranchStatus.SUBMITTED: HealthState.SUBMITTED,
    BranchStatus.MERGED: HealthState.MERGED,
}


class _FactsCache:
    """Per-computation memo of port queries; failures are remembered as unknown."""

    def __init__(self, vc: VersionControlPort | None) -> None:
        self._vc = vc
        self._cache: dict[str, BranchFacts | None] = {}
        self._failed: set[str] = set()

    def get(self, name: str) -> tuple[BranchFacts | None, bool]:
        """Return (facts, known).  ``known`` is False if facts could not be obtained."""
        if self._vc is None or name in self._failed:
            return None, False
        if name not in self._cache:
            try:
                self._cache[name] = self._vc.branch_facts(name)
            except VersionControlQueryError as e:
                logger.warning("Version-control query failed for '%s': %s", name, e)
                self._failed.add(name)
                return None, False
        return self._cache[name], True


def rebase_target(doc: RegistryDocument, name: str) -> str:
    """Nearest unmerged ancestor of *name*'s base, or trunk.

    This is where a branch should move once its base has been merged.
    """
    branch = doc.branches[name]
    current = branch.base_name
    seen: set[str] = set()
    while current != doc.trunk and current not in seen:
        seen.add(current)
        base = doc.get(current)
        if base is None:
            return doc.trunk
        if base.status != BranchStatus.MERGED:
            return current
        current = base.base_name
    return doc.trunk


def _report_for(
    doc: RegistryDocument,
    graph: dag.DependencyGraph,
    branch: Branch,
    facts: _FactsCache,
) -> HealthReport:
    name = branch.name
    common = {
        "name": name,
        "base_name": branch.base_name,
        "status": branch.status,
        "depth": dag.depth(graph, name),
        "pr_number": branch.pr_number,
        "spec_id": branch.spec_id,
    }

    own, _ = facts.get(name)
    proposed: BranchStatus | None = None
    proposal_steps: tuple[str, ...] = ()
    if own is not None and own.merged and branch.status != BranchStatus.MERGED:
        proposed = BranchStatus.MERGED
        proposal_steps = (f"stacked update {name} --status merged",)

    if not doc.is_trunk(branch.base_name) and branch.base_name not in doc:
        return HealthReport(
            **common,
            state=HealthState.ORPHANED,
            reason=(
                f"Base branch '{branch.base_name}' is not tracked "
                f"(registry edited outside stacked?)"
            ),
            remediation=(f"stacked update {name} --base {doc.trunk}", *proposal_steps),
            proposed_status=proposed,
        )

    if branch.status == BranchStatus.MERGED:
        return HealthReport(**common, state=HealthState.MERGED)

    base = doc.get(branch.base_name)
    if base is not None and base.status == BranchStatus.MERGED:
        base_facts, known = facts.get(base.name)
        target = rebase_target(doc, name)
        if not known or base_facts is None or base_facts.tip is None:
            return HealthReport(
                **common,
                state=HealthState.UNKNOWN,
                reason=(
                    f"Base branch '{base.name}' has been merged but its current "
                    f"tip is unknown"
                ),
                remediation=proposal_steps,
                proposed_status=proposed,
            )
        if branch.last_known_base_tip != base_facts.tip:
            return HealthReport(
                **common,
                state=HealthState.NEEDS_REBASE,
                reason=f"Base branch '{base.name}' has been merged",
                remediation=(
                    f"git rebase {target}",
                    f"stacked update {name} --base {target}",
                    *proposal_steps,
                ),
                proposed_status=proposed,
            )

    return HealthReport(
        **common,
        state=_STATE_FOR_STATUS[branch.status],
        reason=(f"Branch '{name}' is merged but recorded as {branch.status.value}"
                if proposed else None),
        remediation=proposal_steps,
        proposed_status=proposed,
    )


def compute_health(
    doc: RegistryDocument,
    vc: VersionControlPort | None = None,
) -> dict[str, HealthReport]:
    """Compute health for every tracked branch.

    Args:
        doc: Registry snapshot.
        vc: Version-control facts.  None means no facts are available;
            branches whose health depends on them are reported unknown.

    Returns:
        Reports keyed by branch name, in topological order (trunk-adjacent
        stacks first, orphaned stacks last).

    Raises:
        CycleDetected: If the registry contains a cycle (fatal).
    """
    graph = dag.build(doc)
    facts = _FactsCache(vc)
    reports: dict[str, HealthReport] = {}
    for name in dag.topological_order(graph):
        reports[name] = _report_for(doc, graph, doc.branches[name], facts)
    return reports
