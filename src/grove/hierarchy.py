"""Branch hierarchy stored in git configuration."""

from typing import Optional

from grove.config import (
    ANCESTORS_KEY_PATTERN,
    MAIN_BRANCH_KEY,
    PARENT_KEY_PATTERN,
    PERENNIAL_BRANCHES_KEY,
    ConfigStore,
    Scope,
    branch_key,
)
from grove.git import GroveError
from grove.log import get_logger

logger = get_logger(__name__)


def _split(value: str) -> list[str]:
    return value.split(" ") if value else []


class BranchHierarchy:
    """Parent, ancestor and perennial relations between branches.

    Each branch records its direct parent. The chain of ancestors between the
    nearest perennial branch and the branch is cached separately and is only
    recomputed on request, so it can lag behind the parent pointers.
    Changing a parent clears the cached chains it affects.
    """

    def __init__(self, store: ConfigStore) -> None:
        self.store = store

    # Main branch

    def get_main_branch(self) -> str:
        """Configured main branch, or "" when none is set."""
        return self.store.get(MAIN_BRANCH_KEY, Scope.LOCAL)

    def set_main_branch(self, branch: str) -> None:
        """Store the main branch of the repository."""
        self.store.set(MAIN_BRANCH_KEY, branch)

    def is_main_branch(self, branch: str) -> bool:
        """Check whether branch is the configured main branch."""
        return branch == self.get_main_branch()

    # Perennial branches

    def get_perennials(self) -> set[str]:
        """Branches that are never merged away, such as production or qa."""
        return set(_split(self.store.get(PERENNIAL_BRANCHES_KEY, Scope.LOCAL)))

    def set_perennials(self, branches: list[str]) -> None:
        """Replace the perennial branches with the given list."""
        self.store.set(PERENNIAL_BRANCHES_KEY, " ".join(branches))

    def add_perennial(self, branch: str) -> None:
        """Mark a branch as perennial. Adding it twice stores it once."""
        current = _split(self.store.get(PERENNIAL_BRANCHES_KEY, Scope.LOCAL))
        if branch in current:
            logger.debug("%s is already perennial", branch)
            return
        self.set_perennials([*current, branch])

    def is_perennial(self, branch: str) -> bool:
        """Check whether branch is marked as perennial."""
        return branch in self.get_perennials()

    # Parents

    def get_parent(self, branch: str) -> str:
        """Direct parent of the branch, or "" for root branches."""
        return self.store.get(branch_key(branch, "parent"), Scope.LOCAL)

    def has_parent(self, branch: str) -> bool:
        """Check whether a parent entry exists for branch, even an empty one."""
        return self.store.has(branch_key(branch, "parent"), Scope.LOCAL)

    def set_parent(self, branch: str, parent: str) -> None:
        """Make parent the direct parent of branch.

        Cycles are not detected here.
        """
        self.store.set(branch_key(branch, "parent"), parent)
        self._invalidate_ancestors(branch)

    def delete_parent(self, branch: str) -> None:
        """Remove the parent entry of branch and the ancestor chains that used it."""
        self.store.unset(branch_key(branch, "parent"))
        self._invalidate_ancestors(branch)

    def get_children(self, branch: str) -> list[str]:
        """Branches whose direct parent is the given branch, sorted by name."""
        children = []
        for key in self.store.keys_matching(PARENT_KEY_PATTERN):
            if self.store.get(key, Scope.LOCAL) == branch:
                children.append(PARENT_KEY_PATTERN.match(key).group("branch"))
        return sorted(children)

    # Ancestor cache

    def lookup_ancestors(self, branch: str) -> Optional[list[str]]:
        """Cached ancestor chain, or None if it was never computed."""
        key = branch_key(branch, "ancestors")
        if not self.store.has(key, Scope.LOCAL):
            return None
        return _split(self.store.get(key, Scope.LOCAL))

    def get_ancestors(self, branch: str) -> list[str]:
        """Cached ancestors from the nearest perennial branch down, excluding both ends.

        The cache is not checked against the parent pointers and is empty
        when it was never computed.
        """
        return _split(self.store.get(branch_key(branch, "ancestors"), Scope.LOCAL))

    def set_ancestors(self, branch: str, ancestors: list[str]) -> None:
        """Cache an ancestor chain for branch, root first."""
        self.store.set(branch_key(branch, "ancestors"), " ".join(ancestors))

    def has_cached_ancestors(self, branch: str) -> bool:
        """Check whether a non-empty ancestor chain is cached for branch."""
        return len(self.get_ancestors(branch)) > 0

    def delete_ancestors(self, branch: str) -> None:
        """Drop the cached ancestor chain of branch."""
        self.store.unset(branch_key(branch, "ancestors"))

    def delete_all_ancestor_caches(self) -> None:
        """Drop every cached ancestor chain. Parent entries are kept."""
        for key in self.store.keys_matching(ANCESTORS_KEY_PATTERN):
            self.store.unset(key)

    def compile_ancestors(self, branch: str) -> list[str]:
        """Walk the parent pointers of branch and cache the resulting chain.

        Raises:
            GroveError: If the parent pointers form a cycle
        """
        roots = self.get_perennials()
        roots.add(self.get_main_branch())
        chain: list[str] = []
        seen = {branch}
        parent = self.get_parent(branch)
        while parent and parent not in roots:
            if parent in seen:
                raise GroveError(f"Branch hierarchy of '{branch}' contains a cycle through '{parent}'")
            seen.add(parent)
            chain.insert(0, parent)
            parent = self.get_parent(parent)
        self.set_ancestors(branch, chain)
        return chain

    def _invalidate_ancestors(self, branch: str) -> None:
        # Every cached chain below the changed branch mentions it
        pending = [branch]
        seen = set()
        while pending:
            current = pending.pop()
            if current in seen:
                continue
            seen.add(current)
            self.delete_ancestors(current)
            pending.extend(self.get_children(current))
