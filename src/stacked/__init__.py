"""Stacked: dependency tracking for stacked feature branches.

Keeps a small versioned registry of branches and the bases they are
stacked on, reports which ones need a rebase, and asks a trusted host for
privileged actions (opening a PR, importing branches) through validated
contract envelopes instead of performing them.
"""

import logging

from stacked._version import __version__

# Core entry point
from stacked.stack import Stack
from stacked.context import InvocationContext

# Command surface
from stacked.surface import (
    CommandOutcome,
    CreateRequest,
    ImportRequest,
    ListRequest,
    Operation,
    ReopenRequest,
    StatusRequest,
    UpdateRequest,
    run,
)

# Models
from stacked.models.branch import Branch, BranchStatus
from stacked.models.config import StackConfig
from stacked.models.contract import (
    ContractEnvelope,
    ImportCandidate,
    ImportPrompt,
    PRSuggestion,
)
from stacked.models.health import HealthReport, HealthState
from stacked.models.registry import RegistryDocument

# Protocols
from stacked.protocols import (
    BranchFacts,
    StaticVersionControl,
    TrackingBranch,
    VersionControlPort,
)

# Contract validation
from stacked.operations.contract import ContractValidator, ValidationDecision

# Exceptions
from stacked.exceptions import (
    BaseNotFound,
    BranchExistsError,
    BranchNotFoundError,
    ConcurrentWriteConflict,
    ContractSchemaViolation,
    CycleDetected,
    InvalidBranchNameError,
    InvalidStatusTransition,
    RegistryCorrupt,
    StackError,
    VersionControlQueryError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    "Stack",
    "InvocationContext",
    # Command surface
    "CommandOutcome",
    "CreateRequest",
    "ImportRequest",
    "ListRequest",
    "Operation",
    "ReopenRequest",
    "StatusRequest",
    "UpdateRequest",
    "run",
    # Models
    "Branch",
    "BranchStatus",
    "StackConfig",
    "ContractEnvelope",
    "ImportCandidate",
    "ImportPrompt",
    "PRSuggestion",
    "HealthReport",
    "HealthState",
    "RegistryDocument",
    # Protocols
    "BranchFacts",
    "StaticVersionControl",
    "TrackingBranch",
    "VersionControlPort",
    # Contract validation
    "ContractValidator",
    "ValidationDecision",
    # Exceptions
    "BaseNotFound",
    "BranchExistsError",
    "BranchNotFoundError",
    "ConcurrentWriteConflict",
    "ContractSchemaViolation",
    "CycleDetected",
    "InvalidBranchNameError",
    "InvalidStatusTransition",
    "RegistryCorrupt",
    "StackError",
    "VersionControlQueryError",
]
