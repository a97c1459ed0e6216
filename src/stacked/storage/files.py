"""File-backed storage for stacked.

RegistryStore keeps the branch registry in one JSON document and installs
new snapshots with compare-and-swap plus atomic replace.  AuditLog appends
JSON lines with one ``write`` per event so concurrent writers never
interleave partial lines.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from stacked.exceptions import ConcurrentWriteConflict, RegistryCorrupt
from stacked.models.registry import DEFAULT_TRUNK, RegistryDocument
from stacked.storage.repositories import AuditRepository, RegistryRepository

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


def atomic_write(path: Path, content: str) -> None:
    """Write *content* to a temp file beside *path*, then rename over it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class RegistryStore(RegistryRepository):
    """Registry persisted as a single JSON file.

    Args:
        path: Location of the registry file.
        trunk: Trunk name recorded when the registry is first created.
    """

    def __init__(self, path: str | os.PathLike[str], *, trunk: str = DEFAULT_TRUNK) -> None:
        self.path = Path(path)
        self.trunk = trunk

    def load(self) -> RegistryDocument:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return RegistryDocument(version=0, trunk=self.trunk)

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise RegistryCorrupt(str(self.path), f"not valid UTF-8: {e}") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise RegistryCorrupt(str(self.path), f"invalid JSON: {e}") from e
        try:
            return RegistryDocument.from_json_dict(data, default_trunk=self.trunk)
        except (ValidationError, ValueError) as e:
            raise RegistryCorrupt(str(self.path), _summarize(e)) from e

    def save(self, doc: RegistryDocument, expected_version: int) -> RegistryDocument:
        current = self.load().version
        if current != expected_version:
            raise ConcurrentWriteConflict(expected_version, current)

        written = doc.model_copy(update={"version": expected_version + 1})
        content = json.dumps(written.to_json_dict(), indent=2) + "\n"
        atomic_write(self.path, content)
        logger.debug("Saved registry %s at version %d", self.path, written.version)
        return written

    def __repr__(self) -> str:
        return f"RegistryStore(path='{self.path}')"


class AuditLog(AuditRepository):
    """Append-only JSON-lines event log."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def append(self, event: dict[str, Any]) -> None:
        line = (json.dumps(event, default=str) + "\n").encode("utf-8")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o644)
        try:
            os.write(fd, line)
        finally:
            os.close(fd)

    def events(self) -> Iterator[dict[str, Any]]:
        try:
            f = self.path.open(encoding="utf-8")
        except FileNotFoundError:
            return
        with f:
            for line in f:
                line = line.strip()
                if line:
                    yield json.loads(line)

    def __repr__(self) -> str:
        return f"AuditLog(path='{self.path}')"


def _summarize(error: Exception) -> str:
    if isinstance(error, ValidationError):
        parts = []
        for err in error.errors():
            loc = ".".join(str(p) for p in err["loc"])
            parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
        return "; ".join(parts)
    return str(error)
