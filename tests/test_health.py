"""Tests for status computation.

Tests cover:
- Plain status states
- Stale detection after a base is merged (needs-rebase and its remediation)
- Orphaned records
- Unknown health when facts are missing or the port fails
- Proposed (never applied) merged transitions
- Report ordering
"""

from __future__ import annotations

import pytest

from stacked.exceptions import CycleDetected, VersionControlQueryError
from stacked.models.branch import BranchStatus
from stacked.models.health import HealthState
from stacked.operations.branch import update_branch
from stacked.operations.health import compute_health, rebase_target
from stacked.protocols import BranchFacts

from tests.conftest import make_doc, make_vc

ACTIVE = BranchStatus.ACTIVE
SUBMITTED = BranchStatus.SUBMITTED
MERGED = BranchStatus.MERGED


class FailingVersionControl:
    """Port whose queries fail for the given names."""

    def __init__(self, failing: set[str], facts: dict[str, BranchFacts]) -> None:
        self.failing = failing
        self.facts = facts

    def branch_facts(self, name):
        if name in self.failing:
            raise VersionControlQueryError(f"cannot read {name}")
        return self.facts.get(name)

    def tracking_branches(self):
        return []


@pytest.fixture
def chain_doc():
    """x on main, y on x, z on y; each recorded its base's tip at creation."""
    return make_doc(("x", "main", ACTIVE, "m1"), ("y", "x", ACTIVE, "x1"), ("z", "y", ACTIVE, "y1"))


# ---------------------------------------------------------------------------
# Plain states
# ---------------------------------------------------------------------------

class TestStatusStates:
    def test_states_follow_status(self):
        doc = make_doc(("a", "main", ACTIVE), ("s", "main", SUBMITTED), ("m", "main", MERGED))
        reports = compute_health(doc)
        assert reports["a"].state == HealthState.ACTIVE
        assert reports["s"].state == HealthState.SUBMITTED
        assert reports["m"].state == HealthState.MERGED
        assert not any(r.state.is_warning for r in reports.values())

    def test_report_fields(self):
        doc = make_doc(("x", "main", ACTIVE, None, "001-a"))
        doc = update_branch(doc, "x", pr_number=9)
        report = compute_health(doc)["x"]
        assert report.base_name == "main"
        assert report.depth == 1
        assert report.pr_number == 9
        assert report.spec_id == "001-a"
        assert report.remediation == ()

    def test_reports_in_topological_order(self):
        doc = make_doc(("z", "y"), ("y", "x"), ("x", "main"))
        assert list(compute_health(doc)) == ["x", "y", "z"]

    def test_empty_registry(self):
        assert compute_health(make_doc()) == {}

    def test_persisted_cycle_is_fatal(self):
        doc = make_doc(("a", "b"), ("b", "a"))
        with pytest.raises(CycleDetected):
            compute_health(doc)


# ---------------------------------------------------------------------------
# Stale detection
# ---------------------------------------------------------------------------

class TestNeedsRebase:
    def test_merged_base_with_moved_tip_needs_rebase(self, chain_doc):
        doc = update_branch(chain_doc, "x", status=MERGED)
        vc = make_vc({"x": ("x2", True), "y": ("y1", False)})

        report = compute_health(doc, vc)["y"]
        assert report.state == HealthState.NEEDS_REBASE
        assert "'x' has been merged" in report.reason
        assert report.remediation == ("git rebase main", "stacked update y --base main")

    def test_clears_once_tip_recorded(self, chain_doc):
        doc = update_branch(chain_doc, "x", status=MERGED)
        vc = make_vc({"x": ("x2", True)})
        assert compute_health(doc, vc)["y"].state == HealthState.NEEDS_REBASE

        doc = update_branch(doc, "y", base_tip="x2")
        assert compute_health(doc, vc)["y"].state == HealthState.ACTIVE

    def test_matching_tip_is_not_stale(self, chain_doc):
        doc = update_branch(chain_doc, "x", status=MERGED)
        vc = make_vc({"x": ("x1", True)})
        assert compute_health(doc, vc)["y"].state == HealthState.ACTIVE

    def test_unmerged_base_is_never_stale(self, chain_doc):
        vc = make_vc({"x": ("x9", False), "y": ("y9", False)})
        reports = compute_health(chain_doc, vc)
        assert reports["y"].state == HealthState.ACTIVE
        assert reports["z"].state == HealthState.ACTIVE

    def test_two_hops_away_unaffected_until_middle_merges(self, chain_doc):
        vc = make_vc({"x": ("x2", True), "y": ("y2", False)})
        doc = update_branch(chain_doc, "x", status=MERGED)

        reports = compute_health(doc, vc)
        assert reports["y"].state == HealthState.NEEDS_REBASE
        assert reports["z"].state == HealthState.ACTIVE

        doc = update_branch(doc, "y", status=MERGED)
        reports = compute_health(doc, vc)
        assert reports["y"].state == HealthState.MERGED
        assert reports["z"].state == HealthState.NEEDS_REBASE

    def test_rebase_target_skips_merged_ancestors(self, chain_doc):
        doc = update_branch(chain_doc, "x", status=MERGED)
        doc = update_branch(doc, "y", status=MERGED)
        assert rebase_target(doc, "z") == "main"

        vc = make_vc({"y": ("y2", True)})
        report = compute_health(doc, vc)["z"]
        assert report.remediation[0] == "git rebase main"

    def test_rebase_target_is_nearest_unmerged_ancestor(self):
        doc = make_doc(("a", "main"), ("b", "a", MERGED), ("c", "b"))
        assert rebase_target(doc, "c") == "a"

    def test_merged_branch_is_not_itself_stale(self, chain_doc):
        doc = update_branch(chain_doc, "x", status=MERGED)
        doc = update_branch(doc, "y", status=MERGED)
        vc = make_vc({"x": ("x2", True)})
        assert compute_health(doc, vc)["y"].state == HealthState.MERGED


# ---------------------------------------------------------------------------
# Orphaned and unknown
# ---------------------------------------------------------------------------

class TestOrphanedAndUnknown:
    def test_dangling_base_is_orphaned(self):
        doc = make_doc(("x", "deleted-by-hand"))
        report = compute_health(doc)["x"]
        assert report.state == HealthState.ORPHANED
        assert "deleted-by-hand" in report.reason
        assert report.remediation == ("stacked update x --base main",)
        assert report.depth is None

    def test_dependents_of_orphan_are_reported(self):
        doc = make_doc(("x", "gone"), ("y", "x"))
        reports = compute_health(doc)
        assert reports["x"].state == HealthState.ORPHANED
        assert reports["y"].state == HealthState.ACTIVE

    def test_no_facts_for_merged_base_is_unknown(self, chain_doc):
        doc = update_branch(chain_doc, "x", status=MERGED)
        report = compute_health(doc)["y"]
        assert report.state == HealthState.UNKNOWN
        assert "unknown" in report.reason

    def test_base_missing_from_facts_is_unknown(self, chain_doc):
        doc = update_branch(chain_doc, "x", status=MERGED)
        assert compute_health(doc, make_vc({}))["y"].state == HealthState.UNKNOWN

    def test_port_failure_degrades_to_unknown(self, chain_doc):
        doc = update_branch(chain_doc, "x", status=MERGED)
        vc = FailingVersionControl({"x"}, {})
        reports = compute_health(doc, vc)
        assert reports["y"].state == HealthState.UNKNOWN
        assert reports["z"].state == HealthState.ACTIVE


# ---------------------------------------------------------------------------
# Proposed transitions
# ---------------------------------------------------------------------------

class TestProposedMerge:
    def test_merged_in_facts_is_proposed_not_applied(self, chain_doc):
        vc = make_vc({"x": ("x1", True)})
        report = compute_health(chain_doc, vc)["x"]
        assert report.status == ACTIVE
        assert report.state == HealthState.ACTIVE
        assert report.proposed_status == MERGED
        assert report.remediation == ("stacked update x --status merged",)
        assert chain_doc.branches["x"].status == ACTIVE

    def test_no_proposal_when_already_merged(self):
        doc = make_doc(("x", "main", MERGED))
        report = compute_health(doc, make_vc({"x": ("x1", True)}))["x"]
        assert report.proposed_status is None

    def test_proposal_rides_along_with_needs_rebase(self, chain_doc):
        doc = update_branch(chain_doc, "x", status=MERGED)
        vc = make_vc({"x": ("x2", True), "y": ("y1", True)})
        report = compute_health(doc, vc)["y"]
        assert report.state == HealthState.NEEDS_REBASE
        assert report.proposed_status == MERGED
        assert report.remediation[-1] == "stacked update y --status merged"

    def test_to_dict(self, chain_doc):
        vc = make_vc({"x": ("x1", True)})
        data = compute_health(chain_doc, vc)["x"].to_dict()
        assert data["health"] == "active"
        assert data["proposedStatus"] == "merged"
        assert data["baseName"] == "main"
