"""Command surface for stacked.

The commands are a closed set: each is an :class:`Operation` member with a
request type and exactly one handler.  :func:`run` is the single entry
point used by every front end (the CLI, a host integration, tests), so a
command behaves the same no matter who invokes it.

A handler never writes to a terminal.  It returns a CommandOutcome whose
``exit_code`` is 0, or 2/3 together with the envelope to emit.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Union

from stacked.models.contract import EXIT_ERROR, EXIT_OK, exit_code_for

if TYPE_CHECKING:
    from stacked.models.branch import Branch, BranchStatus
    from stacked.models.contract import ImportPrompt, PRSuggestion
    from stacked.models.health import HealthReport
    from stacked.operations.importing import ImportPlan
    from stacked.stack import Stack


class Operation(str, enum.Enum):
    """Every command the surface supports."""

    CREATE = "create"
    UPDATE = "update"
    REOPEN = "reopen"
    LIST = "list"
    STATUS = "status"
    IMPORT = "import"

    def __str__(self) -> str:
        return self.value


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CreateRequest:
    operation: ClassVar[Operation] = Operation.CREATE

    name: str
    base: str | None = None
    spec_id: str | None = None
    base_tip: str | None = None
    suggest_pr: bool = True


@dataclass(frozen=True)
class UpdateRequest:
    operation: ClassVar[Operation] = Operation.UPDATE

    name: str
    base: str | None = None
    status: BranchStatus | None = None
    pr_number: int | None = None
    spec_id: str | None = None
    base_tip: str | None = None


@dataclass(frozen=True)
class ReopenRequest:
    operation: ClassVar[Operation] = Operation.REOPEN

    name: str


@dataclass(frozen=True)
class ListRequest:
    operation: ClassVar[Operation] = Operation.LIST

    spec_id: str | None = None


@dataclass(frozen=True)
class StatusRequest:
    operation: ClassVar[Operation] = Operation.STATUS


@dataclass(frozen=True)
class ImportRequest:
    """Plan an import, or apply one.

    With neither ``selections`` nor ``select_all`` the outcome carries an
    import-prompt envelope for the host to confirm.  Otherwise the selected
    branches (name -> spec id or None) are persisted; ``select_all`` takes
    every planned branch, linked to ``spec_id``.
    """

    operation: ClassVar[Operation] = Operation.IMPORT

    include: str | None = None
    selections: Mapping[str, str | None] | None = None
    select_all: bool = False
    spec_id: str | None = None


Request = Union[
    CreateRequest, UpdateRequest, ReopenRequest, ListRequest, StatusRequest, ImportRequest
]


@dataclass
class CommandOutcome:
    """What a command produced.

    Attributes:
        operation: The operation that ran.
        exit_code: Process exit code the front end must use.
        branches: Records created, changed, or listed.
        reports: Health reports (status only).
        envelope: Contract envelope to emit on the error channel, if any.
        plan: Import plan (import only).
        messages: Informational lines for the user.
    """

    operation: Operation
    exit_code: int = EXIT_OK
    branches: list[Branch] = field(default_factory=list)
    reports: dict[str, HealthReport] = field(default_factory=dict)
    envelope: PRSuggestion | ImportPrompt | None = None
    plan: ImportPlan | None = None
    messages: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _create(stack: Stack, request: CreateRequest) -> CommandOutcome:
    branch = stack.create(
        request.name, request.base, spec_id=request.spec_id, base_tip=request.base_tip
    )
    outcome = CommandOutcome(
        Operation.CREATE,
        branches=[branch],
        messages=[f"Created branch '{branch.name}' on '{branch.base_name}'"],
    )
    if request.suggest_pr:
        suggestion = stack.suggest_pr(branch.base_name)
        if suggestion is not None:
            outcome.envelope = suggestion
            outcome.exit_code = exit_code_for(suggestion)
    return outcome


def _update(stack: Stack, request: UpdateRequest) -> CommandOutcome:
    before = stack.get(request.name)
    branch = stack.update(
        request.name,
        base=request.base,
        status=request.status,
        pr_number=request.pr_number,
        spec_id=request.spec_id,
        base_tip=request.base_tip,
    )
    message = (
        f"Updated branch '{branch.name}'"
        if branch != before
        else f"Branch '{branch.name}' unchanged"
    )
    return CommandOutcome(Operation.UPDATE, branches=[branch], messages=[message])


def _reopen(stack: Stack, request: ReopenRequest) -> CommandOutcome:
    branch = stack.reopen(request.name)
    return CommandOutcome(
        Operation.REOPEN,
        branches=[branch],
        messages=[f"Reopened branch '{branch.name}'"],
    )


def _list(stack: Stack, request: ListRequest) -> CommandOutcome:
    return CommandOutcome(Operation.LIST, branches=stack.list(request.spec_id))


def _status(stack: Stack, request: StatusRequest) -> CommandOutcome:
    return CommandOutcome(Operation.STATUS, reports=stack.status())


def _import(stack: Stack, request: ImportRequest) -> CommandOutcome:
    plan = stack.plan_import(request.include)
    outcome = CommandOutcome(Operation.IMPORT, plan=plan)

    selections = request.selections
    if request.select_all:
        selections = {b.name: request.spec_id for b in plan.branches}
    if selections is not None:
        outcome.branches = stack.import_branches(plan, selections)
        count = len(outcome.branches)
        outcome.messages.append(
            f"Imported {count} branch(es)" if count else "No branches to import"
        )
        return outcome

    if not plan.branches:
        if plan.rejected:
            outcome.exit_code = EXIT_ERROR
            outcome.messages.append("No importable branches; all candidates were rejected")
        else:
            outcome.messages.append("No branches to import")
        return outcome

    prompt = stack.import_prompt(plan)
    outcome.envelope = prompt
    outcome.exit_code = exit_code_for(prompt)
    return outcome


_HANDLERS: dict[Operation, Callable[..., CommandOutcome]] = {
    Operation.CREATE: _create,
    Operation.UPDATE: _update,
    Operation.REOPEN: _reopen,
    Operation.LIST: _list,
    Operation.STATUS: _status,
    Operation.IMPORT: _import,
}

_missing = set(Operation) - set(_HANDLERS)
if _missing:
    raise RuntimeError(f"No handler for operation(s): {sorted(str(op) for op in _missing)}")


def run(stack: Stack, request: Request) -> CommandOutcome:
    """Dispatch *request* to its operation's handler.

    Raises:
        StackError: Any operational failure (exit code 1 at the front end).
    """
    return _HANDLERS[request.operation](stack, request)
