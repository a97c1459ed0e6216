"""Stacked exception hierarchy.

All stacked-specific exceptions inherit from StackError.  Messages name the
violated rule and, where there is one, the remediation.
"""

from __future__ import annotations


class StackError(Exception):
    """Base exception for all stacked errors."""


class RegistryCorrupt(StackError):
    """Raised when the on-disk registry cannot be parsed or fails validation.

    Never auto-repaired: the file is left untouched for a human to inspect.
    """

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(
            f"Registry file is corrupt: {path} ({detail}). "
            f"Fix or remove the file by hand; it will not be overwritten."
        )


class ConcurrentWriteConflict(StackError):
    """Raised when the registry changed on disk since it was loaded."""

    def __init__(self, expected_version: int, actual_version: int) -> None:
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Registry was modified concurrently (expected version "
            f"{expected_version}, found {actual_version}). Re-run the command."
        )


class CycleDetected(StackError):
    """Raised when a base assignment would make the dependency graph cyclic."""

    def __init__(self, chain: list[str], *, persisted: bool = False) -> None:
        self.chain = chain
        self.persisted = persisted
        if persisted:
            super().__init__(
                f"Registry contains a circular dependency: {' -> '.join(chain)}. "
                f"The file was edited outside stacked; repair it with "
                f"'stacked update {chain[0]} --base <trunk>'."
            )
        else:
            super().__init__(
                f"Circular dependency detected: {' -> '.join(chain)}. "
                f"Choose a base that is not stacked on '{chain[0]}'."
            )


class BaseNotFound(StackError):
    """Raised when a base branch is neither tracked nor the trunk."""

    def __init__(self, base: str, trunk: str) -> None:
        self.base = base
        self.trunk = trunk
        super().__init__(
            f"Base branch '{base}' is not tracked. Use '{trunk}' or an "
            f"existing tracked branch (see 'stacked list'), or import "
            f"'{base}' first."
        )


class BranchExistsError(StackError):
    """Raised when trying to create a branch that is already tracked."""

    def __init__(self, branch_name: str) -> None:
        self.branch_name = branch_name
        super().__init__(f"Branch already tracked: {branch_name}")


class BranchNotFoundError(StackError):
    """Raised when a branch lookup fails."""

    def __init__(self, branch_name: str) -> None:
        self.branch_name = branch_name
        super().__init__(
            f"Branch not tracked: {branch_name}. "
            f"Use 'stacked list' to see tracked branches."
        )


class InvalidBranchNameError(StackError):
    """Raised when a branch name violates naming rules."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid branch name '{name}': {reason}")


class InvalidStatusTransition(StackError):
    """Raised when a status change would move a branch backwards.

    Status only advances active -> submitted -> merged.  Moving back to
    active requires the explicit reopen operation.
    """

    def __init__(self, name: str, current: str, requested: str) -> None:
        self.name = name
        self.current = current
        self.requested = requested
        if requested == "active":
            hint = f"Use 'stacked reopen {name}' to move it back to active."
        else:
            hint = "Status only advances active -> submitted -> merged."
        super().__init__(
            f"Cannot change status of '{name}' from {current} to {requested}. {hint}"
        )


class ContractSchemaViolation(StackError):
    """Raised when a contract envelope fails schema validation."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(
            "Contract violation: " + "; ".join(violations)
        )


class VersionControlQueryError(StackError):
    """Raised when the read-only version-control collaborator fails."""
