"""Entry point bundling the grove components for one repository."""

from pathlib import Path
from typing import Optional

from rich.console import Console

from grove.authors import SquashAuthorResolver, UserInput
from grove.branches import SyncResolver
from grove.config import ConfigStore, Settings
from grove.git import CommandRunner, DryRun, GitError
from grove.hierarchy import BranchHierarchy
from grove.log import get_logger

logger = get_logger(__name__)


class Repository:
    """A git repository managed by grove."""

    def __init__(self, path: Path, dry_run: bool = False) -> None:
        """Open a repository.

        Args:
            path: Any directory inside the work tree
            dry_run: Simulate mutating commands instead of running them

        Raises:
            GitError: If path is not inside a non-bare git repository
        """
        self.runner = CommandRunner(path)
        result = self.runner.execute(["git", "rev-parse", "--is-bare-repository"])
        if not result.ok:
            raise GitError(f"Failed to open repository: {path} is not a git repository", status=result.status)
        if result.output.strip() == "true":
            raise GitError("Cannot operate on bare repository")

        self.store = ConfigStore(self.runner)
        self.settings = Settings(self.store)
        self.hierarchy = BranchHierarchy(self.store)
        logger.debug("opened repository at %s", path)
        if dry_run:
            # Start the simulation from the real checkout
            self.runner.dry_run = DryRun(current_branch=self.branches().current_branch_name())

    @property
    def main_branch(self) -> str:
        """Configured main branch, or "" when none is set."""
        return self.hierarchy.get_main_branch()

    def branches(self) -> SyncResolver:
        """Resolver for branch listings and sync state."""
        return SyncResolver(self.runner, self.main_branch)

    def squash_authors(
        self, user_input: Optional[UserInput] = None, console: Optional[Console] = None
    ) -> SquashAuthorResolver:
        """Resolver for the author of a squash commit."""
        return SquashAuthorResolver(self.runner, self.main_branch, user_input, console)

    def checkout(self, branch: str) -> None:
        """Switch to branch. Only simulated in dry-run mode."""
        self.runner.run("git", "checkout", branch)
