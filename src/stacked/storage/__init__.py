"""Storage layer for stacked: the versioned registry file and the audit log."""

from stacked.storage.files import AuditLog, RegistryStore, atomic_write
from stacked.storage.paths import StackPaths, available_specs, resolve_paths
from stacked.storage.repositories import AuditRepository, RegistryRepository

__all__ = [
    "AuditLog",
    "AuditRepository",
    "RegistryRepository",
    "RegistryStore",
    "StackPaths",
    "atomic_write",
    "available_specs",
    "resolve_paths",
]
