"""Tests for the branch hierarchy model."""

from pathlib import Path

import pytest

from grove.config import ConfigStore
from grove.git import CommandRunner, GroveError
from grove.hierarchy import BranchHierarchy

from .conftest import FakeRunner


@pytest.fixture
def hierarchy(fake_runner: FakeRunner) -> BranchHierarchy:
    hierarchy = BranchHierarchy(ConfigStore(fake_runner))
    hierarchy.set_main_branch("main")
    return hierarchy


def test_main_branch(hierarchy: BranchHierarchy, fake_runner: FakeRunner) -> None:
    """Test reading and comparing against the main branch."""
    assert fake_runner.local["git-town.main-branch-name"] == "main"
    assert hierarchy.get_main_branch() == "main"
    assert hierarchy.is_main_branch("main")
    assert not hierarchy.is_main_branch("feature")


def test_set_parent_is_idempotent(hierarchy: BranchHierarchy, fake_runner: FakeRunner) -> None:
    """Test that setting the same parent twice is the same as setting it once."""
    hierarchy.set_parent("feature", "main")
    once = dict(fake_runner.local)
    hierarchy.set_parent("feature", "main")
    assert fake_runner.local == once
    assert hierarchy.get_parent("feature") == "main"


def test_delete_parent(hierarchy: BranchHierarchy) -> None:
    """Test removing a parent entry."""
    hierarchy.set_parent("feature", "main")
    hierarchy.delete_parent("feature")
    assert hierarchy.get_parent("feature") == ""
    assert not hierarchy.has_parent("feature")


def test_delete_missing_parent(hierarchy: BranchHierarchy) -> None:
    """Test that deleting a parent that was never set does nothing."""
    hierarchy.delete_parent("feature")
    assert hierarchy.get_parent("feature") == ""


def test_ancestors_round_trip(hierarchy: BranchHierarchy) -> None:
    """Test that the cached chain comes back in the stored order."""
    hierarchy.set_ancestors("feature-3", ["feature-1", "feature-2"])
    assert hierarchy.get_ancestors("feature-3") == ["feature-1", "feature-2"]
    assert hierarchy.has_cached_ancestors("feature-3")


def test_uncomputed_ancestors(hierarchy: BranchHierarchy) -> None:
    """Test that a chain that was never computed is empty and not cached."""
    assert hierarchy.get_ancestors("feature") == []
    assert not hierarchy.has_cached_ancestors("feature")
    assert hierarchy.lookup_ancestors("feature") is None


def test_computed_empty_chain_is_distinguishable(hierarchy: BranchHierarchy) -> None:
    """Test that an empty chain that was computed differs from no chain."""
    hierarchy.set_ancestors("feature", [])
    assert hierarchy.lookup_ancestors("feature") == []
    assert hierarchy.get_ancestors("feature") == []
    assert not hierarchy.has_cached_ancestors("feature")


def test_delete_all_ancestor_caches(hierarchy: BranchHierarchy, fake_runner: FakeRunner) -> None:
    """Test that every cached chain is cleared in one pass."""
    hierarchy.set_parent("feature-1", "main")
    hierarchy.set_parent("feature-2", "feature-1")
    hierarchy.set_ancestors("feature-2", ["feature-1"])
    hierarchy.set_ancestors("other", ["a", "b"])

    hierarchy.delete_all_ancestor_caches()

    assert not hierarchy.has_cached_ancestors("feature-2")
    assert not hierarchy.has_cached_ancestors("other")
    assert not [key for key in fake_runner.local if key.endswith(".ancestors")]
    # Parents survive
    assert hierarchy.get_parent("feature-2") == "feature-1"


def test_get_children(hierarchy: BranchHierarchy) -> None:
    """Test that children are exactly the branches whose parent matches."""
    hierarchy.set_parent("feature-b", "main")
    hierarchy.set_parent("feature-a", "main")
    hierarchy.set_parent("feature-c", "feature-a")
    hierarchy.set_parent("feature-d", "main")
    hierarchy.delete_parent("feature-d")

    assert hierarchy.get_children("main") == ["feature-a", "feature-b"]
    assert hierarchy.get_children("feature-a") == ["feature-c"]
    assert hierarchy.get_children("feature-c") == []


def test_children_with_dotted_names(hierarchy: BranchHierarchy) -> None:
    """Test that branch names containing dots are recovered from keys."""
    hierarchy.set_parent("release.2.0", "main")
    hierarchy.set_parent("fix.for.2.0", "release.2.0")
    assert hierarchy.get_children("main") == ["release.2.0"]
    assert hierarchy.get_children("release.2.0") == ["fix.for.2.0"]


def test_set_parent_clears_affected_caches(hierarchy: BranchHierarchy) -> None:
    """Test that reparenting clears the chains of the branch and its descendants."""
    hierarchy.set_parent("feature-1", "main")
    hierarchy.set_parent("feature-2", "feature-1")
    hierarchy.set_parent("feature-3", "feature-2")
    hierarchy.set_parent("unrelated", "main")
    hierarchy.set_ancestors("feature-2", ["feature-1"])
    hierarchy.set_ancestors("feature-3", ["feature-1", "feature-2"])
    hierarchy.set_ancestors("unrelated", ["x"])

    hierarchy.set_parent("feature-2", "main")

    assert hierarchy.lookup_ancestors("feature-2") is None
    assert hierarchy.lookup_ancestors("feature-3") is None
    assert hierarchy.get_ancestors("unrelated") == ["x"]


def test_delete_parent_clears_affected_caches(hierarchy: BranchHierarchy) -> None:
    """Test that removing a parent clears the chains below it."""
    hierarchy.set_parent("feature-1", "main")
    hierarchy.set_parent("feature-2", "feature-1")
    hierarchy.set_ancestors("feature-2", ["feature-1"])

    hierarchy.delete_parent("feature-1")

    assert hierarchy.lookup_ancestors("feature-2") is None


def test_compile_ancestors(hierarchy: BranchHierarchy) -> None:
    """Test building the chain from parent entries."""
    hierarchy.set_parent("feature-1", "main")
    hierarchy.set_parent("feature-2", "feature-1")
    hierarchy.set_parent("feature-3", "feature-2")

    assert hierarchy.compile_ancestors("feature-3") == ["feature-1", "feature-2"]
    assert hierarchy.get_ancestors("feature-3") == ["feature-1", "feature-2"]
    assert hierarchy.compile_ancestors("feature-1") == []
    assert hierarchy.lookup_ancestors("feature-1") == []


def test_compile_ancestors_stops_at_perennial(hierarchy: BranchHierarchy) -> None:
    """Test that the chain ends below the nearest perennial branch."""
    hierarchy.set_perennials(["production"])
    hierarchy.set_parent("production", "main")
    hierarchy.set_parent("hotfix", "production")
    hierarchy.set_parent("hotfix-2", "hotfix")

    assert hierarchy.compile_ancestors("hotfix-2") == ["hotfix"]


def test_compile_ancestors_detects_cycles(hierarchy: BranchHierarchy) -> None:
    """Test that a cycle in the parent entries is reported instead of looping."""
    hierarchy.set_parent("a", "b")
    hierarchy.set_parent("b", "a")
    with pytest.raises(GroveError):
        hierarchy.compile_ancestors("a")


def test_perennials(hierarchy: BranchHierarchy, fake_runner: FakeRunner) -> None:
    """Test storing perennial branches as a space-joined value."""
    assert hierarchy.get_perennials() == set()
    hierarchy.set_perennials(["production", "qa"])
    assert fake_runner.local["git-town.perennial-branch-names"] == "production qa"
    assert hierarchy.get_perennials() == {"production", "qa"}
    assert hierarchy.is_perennial("qa")
    assert not hierarchy.is_perennial("main")


def test_add_perennial_stores_branch_once(hierarchy: BranchHierarchy, fake_runner: FakeRunner) -> None:
    """Test that adding a branch twice does not duplicate it."""
    hierarchy.add_perennial("production")
    hierarchy.add_perennial("qa")
    hierarchy.add_perennial("production")
    assert fake_runner.local["git-town.perennial-branch-names"] == "production qa"
    assert hierarchy.get_perennials() == {"production", "qa"}


def test_hierarchy_in_real_repository(test_env: tuple[Path, Path]) -> None:
    """Test the hierarchy against git's own configuration store."""
    local_path, _ = test_env
    hierarchy = BranchHierarchy(ConfigStore(CommandRunner(local_path)))
    hierarchy.set_main_branch("main")
    hierarchy.set_parent("feature/synced", "main")
    hierarchy.set_parent("feature/ahead", "feature/synced")

    assert hierarchy.get_children("main") == ["feature/synced"]
    assert hierarchy.compile_ancestors("feature/ahead") == ["feature/synced"]
    assert hierarchy.has_cached_ancestors("feature/ahead")

    hierarchy.delete_all_ancestor_caches()
    assert not hierarchy.has_cached_ancestors("feature/ahead")
    assert hierarchy.lookup_ancestors("feature/ahead") is None
