"""Tests for branch record operations.

Tests cover:
- Branch name validation (git-style rules)
- Create: uniqueness, base existence, trunk protection
- Update: base changes, forward-only status, PR numbers, no-op detection
- Reopen
- Spec index queries
"""

from __future__ import annotations

import pytest

from stacked.exceptions import (
    BaseNotFound,
    BranchExistsError,
    BranchNotFoundError,
    CycleDetected,
    InvalidBranchNameError,
    InvalidStatusTransition,
    StackError,
)
from stacked.models.branch import BranchStatus
from stacked.models.registry import RegistryDocument
from stacked.operations.branch import (
    branches_for_spec,
    create_branch,
    reopen_branch,
    spec_for_branch,
    update_branch,
    validate_branch_name,
)

from tests.conftest import T0, make_doc


# ---------------------------------------------------------------------------
# Branch name validation
# ---------------------------------------------------------------------------

class TestBranchNameValidation:
    @pytest.mark.parametrize("name", ["feature", "feature/auth", "my-feature", "001-auth_v2"])
    def test_valid_names(self, name):
        validate_branch_name(name)

    def test_empty_name_rejected(self):
        with pytest.raises(InvalidBranchNameError, match="cannot be empty"):
            validate_branch_name("")

    def test_double_dot_rejected(self):
        with pytest.raises(InvalidBranchNameError, match="cannot contain '\\.\\.'"):
            validate_branch_name("foo..bar")

    def test_reflog_syntax_rejected(self):
        with pytest.raises(InvalidBranchNameError, match="@\\{"):
            validate_branch_name("foo@{1}")

    def test_lock_suffix_rejected(self):
        with pytest.raises(InvalidBranchNameError, match="\\.lock"):
            validate_branch_name("foo.lock")

    @pytest.mark.parametrize("name", [".hidden", "-flag"])
    def test_bad_leading_character_rejected(self, name):
        with pytest.raises(InvalidBranchNameError, match="cannot start with"):
            validate_branch_name(name)

    @pytest.mark.parametrize("name", ["has space", "a~b", "a^b", "a:b", "a?b", "a*b", "a[b", "a\\b"])
    def test_forbidden_characters_rejected(self, name):
        with pytest.raises(InvalidBranchNameError, match="forbidden characters"):
            validate_branch_name(name)

    @pytest.mark.parametrize("name", ["/lead", "trail/", "a//b"])
    def test_bad_slashes_rejected(self, name):
        with pytest.raises(InvalidBranchNameError, match="slash"):
            validate_branch_name(name)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

class TestCreate:
    def test_create_on_trunk(self):
        doc = create_branch(RegistryDocument(), "x", "main", spec_id="001-a", base_tip="t0", now=T0)
        branch = doc.branches["x"]
        assert branch.base_name == "main"
        assert branch.status == BranchStatus.ACTIVE
        assert branch.spec_id == "001-a"
        assert branch.last_known_base_tip == "t0"
        assert branch.created_at == T0
        assert branch.updated_at == T0

    def test_create_returns_new_snapshot(self):
        original = RegistryDocument()
        doc = create_branch(original, "x", "main")
        assert "x" in doc
        assert "x" not in original

    def test_duplicate_name_rejected(self):
        doc = make_doc(("x", "main"))
        with pytest.raises(BranchExistsError, match="x"):
            create_branch(doc, "x", "main")

    def test_missing_base_rejected_with_remediation(self):
        with pytest.raises(BaseNotFound) as exc_info:
            create_branch(RegistryDocument(), "x", "ghost")
        assert exc_info.value.base == "ghost"
        assert "'main'" in str(exc_info.value)
        assert "stacked list" in str(exc_info.value)

    def test_self_base_rejected(self):
        doc = make_doc(("y", "main"))
        with pytest.raises(BaseNotFound):
            create_branch(doc, "x", "x")

    def test_trunk_cannot_be_tracked(self):
        with pytest.raises(InvalidBranchNameError, match="trunk"):
            create_branch(RegistryDocument(), "main", "main")

    def test_invalid_name_rejected(self):
        with pytest.raises(InvalidBranchNameError):
            create_branch(RegistryDocument(), "bad name", "main")

    def test_custom_trunk(self):
        doc = create_branch(RegistryDocument(trunk="develop"), "x", "develop")
        assert doc.branches["x"].base_name == "develop"
        with pytest.raises(BaseNotFound):
            create_branch(doc, "y", "main")


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------

class TestUpdate:
    def test_unknown_branch(self):
        with pytest.raises(BranchNotFoundError, match="stacked list"):
            update_branch(RegistryDocument(), "x", status=BranchStatus.MERGED)

    def test_no_change_returns_same_snapshot(self):
        doc = make_doc(("x", "main"))
        assert update_branch(doc, "x") is doc
        assert update_branch(doc, "x", base="main", status=BranchStatus.ACTIVE) is doc

    def test_status_advances(self):
        doc = make_doc(("x", "main"))
        doc = update_branch(doc, "x", status=BranchStatus.SUBMITTED)
        doc = update_branch(doc, "x", status=BranchStatus.MERGED)
        assert doc.branches["x"].status == BranchStatus.MERGED

    def test_status_may_skip_forward(self):
        doc = update_branch(make_doc(("x", "main")), "x", status=BranchStatus.MERGED)
        assert doc.branches["x"].status == BranchStatus.MERGED

    def test_status_cannot_move_back(self):
        doc = make_doc(("x", "main", BranchStatus.MERGED))
        with pytest.raises(InvalidStatusTransition) as exc_info:
            update_branch(doc, "x", status=BranchStatus.SUBMITTED)
        assert exc_info.value.current == "merged"
        assert exc_info.value.requested == "submitted"

    def test_back_to_active_points_at_reopen(self):
        doc = make_doc(("x", "main", BranchStatus.SUBMITTED))
        with pytest.raises(InvalidStatusTransition, match="stacked reopen x"):
            update_branch(doc, "x", status=BranchStatus.ACTIVE)

    def test_rebase_resets_base_tip(self):
        doc = make_doc(("x", "main"), ("y", "main"), ("z", "x", BranchStatus.ACTIVE, "old"))
        doc = update_branch(doc, "z", base="y")
        assert doc.branches["z"].base_name == "y"
        assert doc.branches["z"].last_known_base_tip is None

    def test_rebase_records_given_tip(self):
        doc = make_doc(("x", "main"), ("z", "x", BranchStatus.ACTIVE, "old"))
        doc = update_branch(doc, "z", base="main", base_tip="new")
        assert doc.branches["z"].last_known_base_tip == "new"

    def test_base_tip_alone(self):
        doc = make_doc(("x", "main"), ("z", "x", BranchStatus.ACTIVE, "old"))
        doc = update_branch(doc, "z", base_tip="new")
        assert doc.branches["z"].base_name == "x"
        assert doc.branches["z"].last_known_base_tip == "new"

    def test_rebase_into_cycle_rejected(self):
        doc = make_doc(("x", "main"), ("y", "x"), ("z", "y"))
        with pytest.raises(CycleDetected, match="x -> z -> y -> x"):
            update_branch(doc, "x", base="z")

    def test_rebase_onto_itself_rejected(self):
        doc = make_doc(("x", "main"))
        with pytest.raises(CycleDetected, match="x -> x"):
            update_branch(doc, "x", base="x")

    def test_rebase_onto_missing_base_rejected(self):
        doc = make_doc(("x", "main"))
        with pytest.raises(BaseNotFound):
            update_branch(doc, "x", base="ghost")

    def test_pr_number(self):
        doc = update_branch(make_doc(("x", "main")), "x", pr_number=42)
        assert doc.branches["x"].pr_number == 42

    def test_non_positive_pr_rejected(self):
        with pytest.raises(StackError, match="positive"):
            update_branch(make_doc(("x", "main")), "x", pr_number=0)

    def test_spec_id(self):
        doc = update_branch(make_doc(("x", "main")), "x", spec_id="002-b")
        assert doc.branches["x"].spec_id == "002-b"

    def test_updated_at_refreshed(self):
        later = T0.replace(year=2027)
        doc = update_branch(make_doc(("x", "main")), "x", pr_number=1, now=later)
        assert doc.branches["x"].updated_at == later
        assert doc.branches["x"].created_at == T0

    def test_invalid_update_changes_nothing(self):
        doc = make_doc(("x", "main"), ("y", "x"))
        with pytest.raises(CycleDetected):
            update_branch(doc, "x", base="y", pr_number=5)
        assert doc.branches["x"].pr_number is None


# ---------------------------------------------------------------------------
# Reopen
# ---------------------------------------------------------------------------

class TestReopen:
    @pytest.mark.parametrize("status", [BranchStatus.SUBMITTED, BranchStatus.MERGED])
    def test_reopen_moves_back_to_active(self, status):
        doc = reopen_branch(make_doc(("x", "main", status)), "x")
        assert doc.branches["x"].status == BranchStatus.ACTIVE

    def test_reopen_active_branch_rejected(self):
        with pytest.raises(StackError, match="already active"):
            reopen_branch(make_doc(("x", "main")), "x")

    def test_reopen_unknown_branch(self):
        with pytest.raises(BranchNotFoundError):
            reopen_branch(RegistryDocument(), "x")

    def test_reopen_keeps_other_fields(self):
        doc = make_doc(("x", "main", BranchStatus.MERGED, "tip", "001-a"))
        branch = reopen_branch(doc, "x").branches["x"]
        assert branch.last_known_base_tip == "tip"
        assert branch.spec_id == "001-a"


# ---------------------------------------------------------------------------
# Spec index
# ---------------------------------------------------------------------------

class TestSpecIndex:
    def test_branches_for_spec_in_dependency_order(self):
        doc = make_doc(
            ("ui", "api", BranchStatus.ACTIVE, None, "001-a"),
            ("api", "main", BranchStatus.ACTIVE, None, "001-a"),
            ("other", "main", BranchStatus.ACTIVE, None, "002-b"),
        )
        assert [b.name for b in branches_for_spec(doc, "001-a")] == ["api", "ui"]
        assert branches_for_spec(doc, "999-none") == []

    def test_spec_for_branch(self):
        doc = make_doc(("x", "main", BranchStatus.ACTIVE, None, "001-a"), ("y", "main"))
        assert spec_for_branch(doc, "x") == "001-a"
        assert spec_for_branch(doc, "y") is None
        assert spec_for_branch(doc, "missing") is None
