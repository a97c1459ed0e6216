"""Contract envelope models.

A contract envelope is the payload a command writes to its error channel
to ask a trusted host for a privileged action.  The union is closed and
keyed by the ``type`` discriminator; each kind has a reserved exit code.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictStr, TypeAdapter
from pydantic.alias_generators import to_camel

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PR_SUGGESTION = 2
EXIT_IMPORT_PROMPT = 3

PR_SUGGESTION = "pr-suggestion"
IMPORT_PROMPT = "import-prompt"

# Reserved exit code -> envelope kind the code must carry.
ENVELOPE_KIND_FOR_EXIT: dict[int, str] = {
    EXIT_PR_SUGGESTION: PR_SUGGESTION,
    EXIT_IMPORT_PROMPT: IMPORT_PROMPT,
}
EXIT_FOR_ENVELOPE_KIND: dict[str, int] = {
    kind: code for code, kind in ENVELOPE_KIND_FOR_EXIT.items()
}

_ENVELOPE_CONFIG = {
    "alias_generator": to_camel,
    "validate_by_alias": True,
    "validate_by_name": True,
    "frozen": True,
}


class PRSuggestion(BaseModel):
    """Request to open a pull request for a tracked branch."""

    model_config = _ENVELOPE_CONFIG

    type: Literal["pr-suggestion"] = PR_SUGGESTION
    title: StrictStr
    description: StrictStr
    base: StrictStr
    spec_id: StrictStr
    branch: Optional[StrictStr] = None


class ImportCandidate(BaseModel):
    """One untracked branch and the base inferred for it."""

    model_config = _ENVELOPE_CONFIG

    branch_name: StrictStr
    base_branch: StrictStr


class ImportPrompt(BaseModel):
    """Request for the host to confirm which branches to import."""

    model_config = _ENVELOPE_CONFIG

    type: Literal["import-prompt"] = IMPORT_PROMPT
    branches: list[ImportCandidate] = Field(min_length=1)
    available_specs: list[StrictStr]


ContractEnvelope = Annotated[
    Union[PRSuggestion, ImportPrompt],
    Field(discriminator="type"),
]

envelope_adapter: TypeAdapter[PRSuggestion | ImportPrompt] = TypeAdapter(ContractEnvelope)


def exit_code_for(envelope: PRSuggestion | ImportPrompt) -> int:
    """Reserved exit code that must accompany *envelope*."""
    return EXIT_FOR_ENVELOPE_KIND[envelope.type]


def dump_envelope(envelope: PRSuggestion | ImportPrompt) -> str:
    """Serialize an envelope to its wire form (camelCase JSON, one line)."""
    return envelope.model_dump_json(by_alias=True, exclude_none=True)
