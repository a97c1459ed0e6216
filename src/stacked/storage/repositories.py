"""Abstract repository interfaces for stacked storage.

Defines ABC interfaces for registry and audit-log persistence.  No file
handling here -- pure abstract contracts.

Concrete implementations are in files.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

    from stacked.models.registry import RegistryDocument


class RegistryRepository(ABC):
    """Abstract interface for versioned registry storage."""

    @abstractmethod
    def load(self) -> RegistryDocument:
        """Read the whole document.  An absent store is an empty document at version 0."""
        ...

    @abstractmethod
    def save(self, doc: RegistryDocument, expected_version: int) -> RegistryDocument:
        """Compare-and-swap write.

        Writes *doc* only if the stored version still equals
        *expected_version*; returns the written document, whose version is
        ``expected_version + 1``.

        Raises:
            ConcurrentWriteConflict: If the stored version differs.
        """
        ...


class AuditRepository(ABC):
    """Abstract interface for the append-only contract event log."""

    @abstractmethod
    def append(self, event: dict[str, Any]) -> None:
        """Append one event as a single atomic write."""
        ...

    @abstractmethod
    def events(self) -> Iterator[dict[str, Any]]:
        """Iterate over recorded events, oldest first."""
        ...
