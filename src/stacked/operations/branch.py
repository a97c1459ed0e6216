"""Branch record operations for stacked.

Create, update, and reopen tracked branches.  Every function takes an
immutable RegistryDocument snapshot and returns a new one; invariants
(unique names, existing bases, acyclic graph, forward-only status) are
checked before the new snapshot is produced.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING

from stacked.exceptions import (
    BaseNotFound,
    BranchExistsError,
    BranchNotFoundError,
    CycleDetected,
    InvalidBranchNameError,
    InvalidStatusTransition,
    StackError,
)
from stacked.models.branch import Branch, BranchStatus, utcnow
from stacked.operations import dag

if TYPE_CHECKING:
    from stacked.models.registry import RegistryDocument


# Characters forbidden in branch names (git-style)
_FORBIDDEN_CHARS = re.compile(r"[\s~^:?*\[\\]")

_UNSET = object()


def validate_branch_name(name: str) -> None:
    """Validate a branch name against git-style naming rules.

    Raises InvalidBranchNameError on violation.
    """
    if not name:
        raise InvalidBranchNameError(name, "branch name cannot be empty")

    if ".." in name:
        raise InvalidBranchNameError(name, "branch name cannot contain '..'")

    if "@{" in name or name == "@":
        raise InvalidBranchNameError(name, "branch name cannot contain '@{' or be '@'")

    if name.endswith(".lock"):
        raise InvalidBranchNameError(name, "branch name cannot end with '.lock'")

    if name.startswith(".") or name.startswith("-"):
        raise InvalidBranchNameError(name, "branch name cannot start with '.' or '-'")

    if name.endswith("."):
        raise InvalidBranchNameError(name, "branch name cannot end with '.'")

    if _FORBIDDEN_CHARS.search(name):
        raise InvalidBranchNameError(
            name, "branch name contains forbidden characters (whitespace, ~, ^, :, ?, *, [, \\)"
        )

    if name.startswith("/") or name.endswith("/") or "//" in name:
        raise InvalidBranchNameError(name, "branch name has invalid slash usage")


def require_branch(doc: RegistryDocument, name: str) -> Branch:
    branch = doc.get(name)
    if branch is None:
        raise BranchNotFoundError(name)
    return branch


def check_base(doc: RegistryDocument, name: str, base: str) -> None:
    """Reject a base that is missing or would close a cycle."""
    graph = dag.build(doc)
    if not dag.validate_base_exists(graph, base):
        raise BaseNotFound(base, doc.trunk)
    chain = dag.find_cycle(graph, name, base)
    if chain is not None:
        raise CycleDetected(chain)


def check_transition(branch: Branch, requested: BranchStatus) -> None:
    """Allow only forward moves (or no move) through active -> submitted -> merged."""
    if requested.rank < branch.status.rank:
        raise InvalidStatusTransition(branch.name, branch.status.value, requested.value)


def create_branch(
    doc: RegistryDocument,
    name: str,
    base: str,
    *,
    spec_id: str | None = None,
    base_tip: str | None = None,
    now: datetime | None = None,
) -> RegistryDocument:
    """Return *doc* with a new active branch *name* stacked on *base*.

    Raises:
        InvalidBranchNameError: If *name* is not a valid ref name or is the trunk.
        BranchExistsError: If *name* is already tracked.
        BaseNotFound: If *base* is neither trunk nor tracked.
        CycleDetected: If *base* is *name* itself.
    """
    validate_branch_name(name)
    if doc.is_trunk(name):
        raise InvalidBranchNameError(name, f"'{name}' is the trunk and cannot be tracked")
    if name in doc:
        raise BranchExistsError(name)
    check_base(doc, name, base)

    now = now or utcnow()
    branch = Branch(
        name=name,
        base_name=base,
        spec_id=spec_id,
        last_known_base_tip=base_tip,
        created_at=now,
        updated_at=now,
    )
    return doc.with_branch(branch)


def update_branch(
    doc: RegistryDocument,
    name: str,
    *,
    base: str | None = None,
    status: BranchStatus | None = None,
    pr_number: int | None = None,
    spec_id: str | None = None,
    base_tip: object = _UNSET,
    now: datetime | None = None,
) -> RegistryDocument:
    """Return *doc* with the given fields of *name* changed.

    Changing the base resets ``last_known_base_tip`` to *base_tip* (None if
    not given), since the old tip belongs to the old base.  Returns *doc*
    itself when nothing would change.

    Raises:
        BranchNotFoundError: If *name* is not tracked.
        BaseNotFound / CycleDetected: If the new base is invalid.
        InvalidStatusTransition: If *status* would move backwards.
    """
    branch = require_branch(doc, name)
    changes: dict[str, object] = {}

    if base is not None and base != branch.base_name:
        check_base(doc, name, base)
        changes["base_name"] = base
        changes["last_known_base_tip"] = None if base_tip is _UNSET else base_tip
    elif base_tip is not _UNSET and base_tip != branch.last_known_base_tip:
        changes["last_known_base_tip"] = base_tip

    if status is not None and status != branch.status:
        check_transition(branch, status)
        changes["status"] = status

    if pr_number is not None and pr_number != branch.pr_number:
        if pr_number < 1:
            raise StackError(f"PR number must be a positive integer, got {pr_number}")
        changes["pr_number"] = pr_number

    if spec_id is not None and spec_id != branch.spec_id:
        changes["spec_id"] = spec_id

    if not changes:
        return doc

    changes["updated_at"] = now or utcnow()
    return doc.with_branch(branch.model_copy(update=changes))


def reopen_branch(
    doc: RegistryDocument, name: str, *, now: datetime | None = None
) -> RegistryDocument:
    """Explicitly move a submitted or merged branch back to active.

    Raises:
        BranchNotFoundError: If *name* is not tracked.
        StackError: If the branch is already active.
    """
    branch = require_branch(doc, name)
    if branch.status == BranchStatus.ACTIVE:
        raise StackError(f"Branch '{name}' is already active; nothing to reopen.")
    updated = branch.model_copy(
        update={"status": BranchStatus.ACTIVE, "updated_at": now or utcnow()}
    )
    return doc.with_branch(updated)


def branches_for_spec(doc: RegistryDocument, spec_id: str) -> list[Branch]:
    """Tracked branches implementing *spec_id*, in dependency order."""
    order = dag.topological_order(dag.build(doc))
    return [doc.branches[n] for n in order if doc.branches[n].spec_id == spec_id]


def spec_for_branch(doc: RegistryDocument, name: str) -> str | None:
    branch = doc.get(name)
    return branch.spec_id if branch else None
