"""Contract envelopes: building, emission, and validation.

A command that needs a privileged side effect never performs it.  It writes
exactly one envelope to its error channel and exits with the envelope's
reserved code (2 for ``pr-suggestion``, 3 for ``import-prompt``).  A
separate ContractValidator run checks that output before any trusted
executor acts on it.

The validator is stateless: a blocked contract is never retried; a new
command invocation has to produce a new attempt.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import IO, TYPE_CHECKING, Any

from pydantic import ValidationError

from stacked.exceptions import ContractSchemaViolation
from stacked.models.branch import BranchStatus, utcnow
from stacked.models.contract import (
    ENVELOPE_KIND_FOR_EXIT,
    ImportCandidate,
    ImportPrompt,
    PRSuggestion,
    dump_envelope,
    envelope_adapter,
    exit_code_for,
)
from stacked.operations import dag

if TYPE_CHECKING:
    from stacked.models.registry import RegistryDocument
    from stacked.operations.importing import ImportPlan
    from stacked.storage.repositories import AuditRepository

logger = logging.getLogger(__name__)

EVENT_VALIDATION = "contract-validation"
EVENT_VIOLATION = "contract-violation"


# ---------------------------------------------------------------------------
# Building
# ---------------------------------------------------------------------------


def build_pr_suggestion(doc: RegistryDocument, branch_name: str) -> PRSuggestion | None:
    """Suggest opening a PR for *branch_name*, or None if there is nothing to suggest.

    Only active branches without a PR and linked to a spec qualify.  The PR
    targets the branch's own base so each PR in a stack reviews one layer.
    """
    branch = doc.get(branch_name)
    if branch is None or branch.spec_id is None:
        return None
    if branch.pr_number is not None or branch.status != BranchStatus.ACTIVE:
        return None

    graph = dag.build(doc)
    stack = [
        n for n in dag.topological_order(graph)
        if doc.branches[n].spec_id == branch.spec_id
    ]
    lines = [
        f"Implements spec `{branch.spec_id}`.",
        "",
        f"Stacked on `{branch.base_name}`; the stack lands on "
        f"`{dag.trunk_for(graph, branch_name)}`.",
        "",
        "Stack:",
    ]
    for name in stack:
        marker = " (this PR)" if name == branch_name else ""
        lines.append(f"- `{name}` on `{doc.branches[name].base_name}`{marker}")

    return PRSuggestion(
        title=f"[{branch.spec_id}] {branch.name}",
        description="\n".join(lines),
        base=branch.base_name,
        spec_id=branch.spec_id,
        branch=branch.name,
    )


def build_import_prompt(plan: ImportPlan, available_specs: list[str]) -> ImportPrompt:
    """Ask the host to confirm which planned branches to import."""
    return ImportPrompt(
        branches=[
            ImportCandidate(branch_name=b.name, base_branch=b.base_name)
            for b in plan.branches
        ],
        available_specs=list(available_specs),
    )


def emit(envelope: PRSuggestion | ImportPrompt, stream: IO[str]) -> int:
    """Write *envelope* to *stream* and return the exit code that must follow."""
    stream.write(dump_envelope(envelope) + "\n")
    stream.flush()
    return exit_code_for(envelope)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationDecision:
    """Result of validating one command's output.

    Attributes:
        allow: Whether the privileged executor may proceed.
        exit_code: The validated command's exit code.
        kind: Envelope kind the exit code requires, or None for ordinary codes.
        envelope: The parsed envelope when allowed.
        violations: What was wrong, one entry per problem.
    """

    allow: bool
    exit_code: int
    kind: str | None = None
    envelope: PRSuggestion | ImportPrompt | None = None
    violations: tuple[str, ...] = field(default_factory=tuple)

    @property
    def reason(self) -> str:
        if self.allow:
            return f"Contract validated: {self.kind} (exit {self.exit_code})"
        lines = [f"Contract violation: exit code {self.exit_code} without a valid {self.kind} envelope"]
        lines.extend(f"  - {v}" for v in self.violations)
        return "\n".join(lines)

    def raise_for_violation(self) -> None:
        if not self.allow:
            raise ContractSchemaViolation(list(self.violations))


def _describe_error(err: dict[str, Any]) -> str:
    loc = [str(p) for p in err["loc"]]
    if loc and loc[0] in ENVELOPE_KIND_FOR_EXIT.values():
        loc = loc[1:]
    where = ".".join(loc) or "envelope"
    kind = err["type"]
    if kind == "missing":
        return f"missing required field '{where}'"
    if kind == "string_type":
        return f"field '{where}' must be a string (got {type(err.get('input')).__name__})"
    if kind == "list_type":
        return f"field '{where}' must be an array"
    if kind == "too_short":
        return f"field '{where}' must not be empty"
    if kind in ("model_type", "model_attributes_type", "dict_type"):
        return f"field '{where}' must be an object"
    return f"field '{where}': {err['msg']}"


class ContractValidator:
    """Checks a finished command's (exit code, error channel) pair.

    Ordinary exit codes pass through without logging.  Reserved codes must
    carry exactly one well-formed envelope of the matching kind; every
    reserved-code decision is appended to the audit log.
    """

    def __init__(
        self,
        audit: AuditRepository | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._audit = audit
        self._clock = clock

    def validate(
        self,
        exit_code: int,
        content: str | None,
        *,
        command: str | None = None,
    ) -> ValidationDecision:
        kind = ENVELOPE_KIND_FOR_EXIT.get(exit_code)
        if kind is None:
            return ValidationDecision(allow=True, exit_code=exit_code)

        envelope, violations = self._parse(kind, content or "")
        if violations:
            decision = ValidationDecision(
                allow=False, exit_code=exit_code, kind=kind, violations=tuple(violations)
            )
            logger.info("Blocked %s envelope: %s", kind, "; ".join(violations))
        else:
            decision = ValidationDecision(
                allow=True, exit_code=exit_code, kind=kind, envelope=envelope
            )
            logger.info("Validated %s envelope (exit %d)", kind, exit_code)
        self._record(decision, command)
        return decision

    def _parse(
        self, kind: str, content: str
    ) -> tuple[PRSuggestion | ImportPrompt | None, list[str]]:
        text = content.strip()
        if not text:
            return None, [f"error channel is empty; expected a '{kind}' envelope"]
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            return None, [f"error channel is not a single JSON object ({e})"]
        if not isinstance(data, dict):
            return None, ["envelope must be a JSON object"]
        if "type" not in data:
            return None, ["missing required field 'type'"]
        if data["type"] != kind:
            return None, [
                f"field 'type' is {data['type']!r} but this exit code requires '{kind}'"
            ]
        try:
            # Wire keys only: snake_case field names must not stand in for them.
            return envelope_adapter.validate_python(data, by_alias=True, by_name=False), []
        except ValidationError as e:
            return None, [_describe_error(err) for err in e.errors()]

    def _record(self, decision: ValidationDecision, command: str | None) -> None:
        if self._audit is None:
            return
        event: dict[str, Any] = {
            "type": EVENT_VALIDATION if decision.allow else EVENT_VIOLATION,
            "timestamp": self._clock().isoformat(),
            "exitCode": decision.exit_code,
            "pass": decision.allow,
            "kind": decision.kind,
        }
        if command is not None:
            event["command"] = command
        if decision.violations:
            event["violations"] = list(decision.violations)
        self._audit.append(event)
