"""Configuration model for stacked.

StackConfig holds per-repository settings.  CLI options and environment
variables override the defaults at the command boundary.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from stacked.models.registry import DEFAULT_TRUNK


class StackConfig(BaseModel):
    """Per-repository configuration."""

    trunk: str = DEFAULT_TRUNK
    state_dir: str = ".stacked"
    registry_filename: str = "branches.json"
    log_dirname: str = "logs"
    log_filename: str = "stacked.log"
    specs_dirname: str = "specs"
    max_write_attempts: int = Field(default=3, ge=1)
    upstream_glob: str = "origin/*"
    spec_id_pattern: str = r"^\d{3}-"
