"""Path resolution for stacked state files.

Decides where the registry and audit log live for the current repository.
Single-repo vs. multi-repo layouts only change which root is found; the
rest of the package receives a resolved StackPaths.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from stacked.exceptions import StackError

if TYPE_CHECKING:
    from stacked.context import InvocationContext
    from stacked.models.config import StackConfig

ROOT_ENV_VAR = "STACKED_ROOT"


@dataclass(frozen=True)
class StackPaths:
    """Resolved locations for one repository."""

    root: Path
    state_dir: Path
    registry: Path
    audit_log: Path
    log_file: Path
    specs_dir: Path


def find_root(start: Path, state_dir: str) -> Path | None:
    """Return the nearest ancestor of *start* holding *state_dir* or ``.git``."""
    for base in (start, *start.parents):
        if (base / state_dir).exists() or (base / ".git").exists():
            return base
    return None


def resolve_paths(
    context: InvocationContext,
    config: StackConfig,
    root: str | Path | None = None,
) -> StackPaths:
    """Resolve state file locations.

    Root precedence: explicit *root*, then ``STACKED_ROOT`` from the
    invocation environment, then the nearest marked ancestor of the
    working directory, then the working directory itself.

    Raises:
        StackError: If an explicitly given root does not exist.
    """
    if root is not None:
        resolved = Path(root).expanduser().resolve()
        if not resolved.is_dir():
            raise StackError(f"Provided root '{root}' does not exist.")
    elif context.env.get(ROOT_ENV_VAR):
        env_root = context.env[ROOT_ENV_VAR]
        resolved = Path(env_root).expanduser().resolve()
        if not resolved.is_dir():
            raise StackError(
                f"Environment variable {ROOT_ENV_VAR} points to '{env_root}', "
                f"which does not exist."
            )
    else:
        cwd = context.cwd.resolve()
        resolved = find_root(cwd, config.state_dir) or cwd

    state_dir = resolved / config.state_dir
    return StackPaths(
        root=resolved,
        state_dir=state_dir,
        registry=state_dir / config.registry_filename,
        audit_log=state_dir / config.log_dirname / f"session-{context.session_id}.jsonl",
        log_file=state_dir / config.log_filename,
        specs_dir=resolved / config.specs_dirname,
    )


def available_specs(paths: StackPaths, pattern: str) -> list[str]:
    """List spec directory names under the specs dir matching *pattern*."""
    if not paths.specs_dir.is_dir():
        return []
    matcher = re.compile(pattern)
    return sorted(
        entry.name
        for entry in paths.specs_dir.iterdir()
        if entry.is_dir() and matcher.search(entry.name)
    )
