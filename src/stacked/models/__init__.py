"""Pydantic models for stacked."""

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

__all__ = [
    "Branch",
    "BranchStatus",
    "ContractEnvelope",
    "HealthReport",
    "HealthState",
    "ImportCandidate",
    "ImportPrompt",
    "PRSuggestion",
    "RegistryDocument",
    "StackConfig",
]
