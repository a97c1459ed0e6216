"""Shared test fixtures for stacked.

Provides tmp_path-backed registry stores, a Stack facade over them, and
helpers for building registry snapshots directly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from stacked.models.branch import Branch, BranchStatus
from stacked.models.registry import RegistryDocument
from stacked.protocols import BranchFacts, StaticVersionControl, TrackingBranch
from stacked.stack import Stack
from stacked.storage.files import AuditLog, RegistryStore

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def registry_path(tmp_path):
    return tmp_path / ".stacked" / "branches.json"


@pytest.fixture
def store(registry_path) -> RegistryStore:
    return RegistryStore(registry_path)


@pytest.fixture
def audit(tmp_path) -> AuditLog:
    return AuditLog(tmp_path / ".stacked" / "logs" / "session-test.jsonl")


@pytest.fixture
def stack(store) -> Stack:
    """A Stack with no version-control facts."""
    return Stack(store)


# ------------------------------------------------------------------
# Shared test helpers
# ------------------------------------------------------------------

def make_doc(*records: tuple, trunk: str = "main", version: int = 0) -> RegistryDocument:
    """Build a snapshot from ``(name, base[, status[, tip[, spec]]])`` tuples.

    Records get increasing creation times in argument order.
    """
    branches = {}
    for i, record in enumerate(records):
        name, base, *rest = record
        status = rest[0] if len(rest) > 0 else BranchStatus.ACTIVE
        tip = rest[1] if len(rest) > 1 else None
        spec = rest[2] if len(rest) > 2 else None
        branches[name] = Branch(
            name=name,
            base_name=base,
            status=status,
            last_known_base_tip=tip,
            spec_id=spec,
            created_at=T0 + timedelta(minutes=i),
        )
    return RegistryDocument(version=version, trunk=trunk, branches=branches)


def make_vc(facts: dict | None = None, tracking: dict | None = None) -> StaticVersionControl:
    """Build a StaticVersionControl.

    *facts* maps name -> (tip, merged); *tracking* maps name -> upstream.
    """
    return StaticVersionControl(
        {name: BranchFacts(tip=tip, merged=merged) for name, (tip, merged) in (facts or {}).items()},
        [TrackingBranch(name=name, upstream=upstream) for name, upstream in (tracking or {}).items()],
    )
