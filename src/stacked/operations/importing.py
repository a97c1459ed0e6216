"""Import inference for stacked.

Synthesizes registry records for branches that exist in version control but
were never created through stacked.  A branch's base is inferred from its
upstream tracking reference: an upstream naming another known branch
(exactly, or after stripping the part matched by the upstream glob, e.g.
``origin/*``) becomes the base; anything else falls back to trunk.

Inference never touches records that already exist, so re-running it
against unchanged facts yields nothing to import.  Branches whose inferred
bases would form a cycle are rejected and reported, never corrected.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from fnmatch import fnmatchcase
from typing import TYPE_CHECKING

from stacked.exceptions import (
    BranchNotFoundError,
    InvalidBranchNameError,
    StackError,
)
from stacked.models.branch import Branch, utcnow
from stacked.operations import dag
from stacked.operations.branch import create_branch, validate_branch_name

if TYPE_CHECKING:
    from stacked.models.registry import RegistryDocument
    from stacked.protocols import TrackingBranch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RejectedBranch:
    """A branch inference refused to import, with the reason."""

    name: str
    reason: str
    chain: tuple[str, ...] = ()


@dataclass(frozen=True)
class ImportPlan:
    """Outcome of inference.

    Attributes:
        branches: Records to import, bases before dependents.
        already_tracked: Names skipped because a record exists.
        rejected: Branches excluded with the reason.
    """

    branches: list[Branch] = field(default_factory=list)
    already_tracked: list[str] = field(default_factory=list)
    rejected: list[RejectedBranch] = field(default_factory=list)

    def get(self, name: str) -> Branch | None:
        for branch in self.branches:
            if branch.name == name:
                return branch
        return None


def infer_base(
    name: str,
    upstream: str | None,
    known: Iterable[str],
    trunk: str,
    upstream_glob: str | None = None,
) -> str:
    """Infer the base of *name* from its *upstream* tracking reference."""
    if not upstream:
        return trunk
    candidates = [upstream]
    if upstream_glob and "*" in upstream_glob and fnmatchcase(upstream, upstream_glob):
        prefix = upstream_glob.split("*", 1)[0]
        if upstream.startswith(prefix) and len(upstream) > len(prefix):
            candidates.append(upstream[len(prefix):])
    known = set(known)
    for candidate in candidates:
        if candidate == trunk:
            return trunk
        if candidate != name and candidate in known:
            return candidate
    return trunk


def _cycle_from(bases: Mapping[str, str], start: str, trunk: str) -> tuple[str, ...] | None:
    """Chain back to *start* if following bases from it loops, else None."""
    chain = [start]
    seen = {start}
    current = bases.get(start)
    while current is not None and current != trunk:
        chain.append(current)
        if current == start:
            return tuple(chain)
        if current in seen:
            return None
        seen.add(current)
        current = bases.get(current)
    return None


def infer(
    doc: RegistryDocument,
    tracking: Iterable[TrackingBranch],
    *,
    upstream_glob: str | None = "origin/*",
    include: str | None = None,
    now: datetime | None = None,
) -> ImportPlan:
    """Infer records for untracked branches.

    Args:
        doc: Current registry snapshot (never modified).
        tracking: Branches reported by version control with their upstreams.
        upstream_glob: Glob whose literal prefix is stripped from upstream
            references before matching branch names (``"origin/*"``).
        include: Optional glob restricting which branch names are considered.
        now: Creation timestamp for the synthesized records.

    Returns:
        ImportPlan with records in dependency order.
    """
    now = now or utcnow()
    already: list[str] = []
    rejected: list[RejectedBranch] = []
    upstreams: dict[str, str | None] = {}

    for entry in tracking:
        name = entry.name
        if doc.is_trunk(name) or name in upstreams:
            continue
        if include is not None and not fnmatchcase(name, include):
            continue
        if name in doc:
            if name not in already:
                already.append(name)
            continue
        try:
            validate_branch_name(name)
        except InvalidBranchNameError as e:
            rejected.append(RejectedBranch(name=name, reason=e.reason))
            continue
        upstreams[name] = entry.upstream

    known = set(doc.branches) | set(upstreams)
    inferred = {
        name: infer_base(name, upstream, known, doc.trunk, upstream_glob)
        for name, upstream in upstreams.items()
    }

    combined = {n: b.base_name for n, b in doc.branches.items()}
    combined.update(inferred)
    excluded: dict[str, RejectedBranch] = {}
    for name in sorted(inferred):
        chain = _cycle_from(combined, name, doc.trunk)
        if chain is not None:
            excluded[name] = RejectedBranch(
                name=name,
                reason=f"upstream tracking forms a cycle: {' -> '.join(chain)}",
                chain=chain,
            )

    # Anything stacked on an excluded branch would dangle; exclude it too.
    changed = True
    while changed:
        changed = False
        for name in sorted(inferred):
            base = inferred[name]
            if name not in excluded and base in excluded:
                excluded[name] = RejectedBranch(
                    name=name, reason=f"base branch '{base}' was rejected"
                )
                changed = True

    for item in excluded.values():
        logger.warning("Not importing '%s': %s", item.name, item.reason)
    rejected.extend(excluded[n] for n in sorted(excluded))

    accepted = {n: base for n, base in inferred.items() if n not in excluded}
    staged = doc
    for name in sorted(accepted):
        staged = staged.with_branch(
            Branch(name=name, base_name=accepted[name], created_at=now, updated_at=now)
        )
    order = dag.topological_order(dag.build(staged))
    branches = [staged.branches[n] for n in order if n in accepted]
    return ImportPlan(branches=branches, already_tracked=already, rejected=rejected)


def apply_import(
    doc: RegistryDocument,
    plan: ImportPlan,
    selections: Mapping[str, str | None],
    *,
    base_tips: Mapping[str, str | None] | None = None,
    now: datetime | None = None,
) -> RegistryDocument:
    """Add the selected planned branches to *doc*.

    Selected names that are already tracked are skipped, so applying the
    same selection twice changes nothing.  Each record goes through the
    same validation as an explicit create.

    Args:
        doc: Registry snapshot to extend.
        plan: Plan from :func:`infer`.
        selections: Branch name -> spec id (or None) to import.
        base_tips: Current tip of each base, recorded as the last known tip.

    Raises:
        BranchNotFoundError: If a selected name is neither planned nor tracked.
        StackError: If a selected name was rejected by inference, or its
            planned base is neither tracked nor selected.
    """
    rejected = {r.name: r for r in plan.rejected}
    for name in selections:
        if name in rejected:
            raise StackError(f"Cannot import '{name}': {rejected[name].reason}")
        planned = plan.get(name)
        if planned is None:
            if name not in doc:
                raise BranchNotFoundError(name)
            continue
        base = planned.base_name
        if plan.get(base) is not None and base not in selections and base not in doc:
            raise StackError(
                f"Cannot import '{name}' without its base '{base}', which is "
                f"not tracked yet; also select '{base}'."
            )

    base_tips = base_tips or {}
    for planned in plan.branches:
        if planned.name not in selections or planned.name in doc:
            continue
        doc = create_branch(
            doc,
            planned.name,
            planned.base_name,
            spec_id=selections[planned.name],
            base_tip=base_tips.get(planned.base_name),
            now=now,
        )
    return doc
