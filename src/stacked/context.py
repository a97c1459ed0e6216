"""Invocation context.

The same command surface runs under an interactive host and when invoked
directly.  Everything ambient it may depend on (working directory,
environment, host session) is captured once at the process edge and
passed down explicitly.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_SESSION_ID = "default"


@dataclass(frozen=True)
class InvocationContext:
    """Ambient values one command invocation may consult."""

    cwd: Path
    env: Mapping[str, str] = field(default_factory=dict)
    session_id: str = DEFAULT_SESSION_ID

    @classmethod
    def from_process(cls, session_id: str | None = None) -> InvocationContext:
        """Capture the current process's environment.  CLI edge only."""
        return cls(
            cwd=Path(os.getcwd()),
            env=dict(os.environ),
            session_id=session_id or DEFAULT_SESSION_ID,
        )
