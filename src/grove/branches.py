"""Branch listings and sync state against the origin remote."""

import re
from enum import Enum
from pathlib import Path

from grove.git import CommandRunner, GroveError, ParseError
from grove.log import get_logger

logger = get_logger(__name__)

REMOTE = "origin"
LOCAL_REFS = "refs/heads"
REMOTE_REFS = f"refs/remotes/{REMOTE}"
COUNT_PATTERN = re.compile(r"^[0-9]+$")


class SyncState(Enum):
    """How a local branch relates to its tracking branch."""

    IN_SYNC = "in sync"
    NEEDS_PUSH = "needs push"
    NEEDS_PULL = "needs pull"
    DIVERGED = "diverged"
    NO_TRACKING_BRANCH = "no tracking branch"


def tracking_branch_name(branch: str) -> str:
    """Name of the remote branch that corresponds to a local branch."""
    return f"{REMOTE}/{branch}"


class SyncResolver:
    """Answers questions about branches by asking git every time.

    Nothing is cached: local and remote history can change between calls.
    """

    def __init__(self, runner: CommandRunner, main_branch: str) -> None:
        """Initialize resolver.

        Args:
            runner: Runs the git queries
            main_branch: Branch that unmerged commits are measured against
        """
        self.runner = runner
        self.main_branch = main_branch

    def has_tracking_branch(self, branch: str) -> bool:
        """Check whether origin has a branch with the same name."""
        return self.runner.output_contains_line(tracking_branch_name(branch), "git", "branch", "-r")

    def branch_sha(self, ref: str) -> str:
        """Commit that ref points to."""
        return self.runner.output("git", "rev-parse", ref).strip()

    def is_branch_in_sync(self, branch: str) -> bool:
        """Check whether branch and its tracking branch point to the same commit.

        A branch without a tracking branch is always in sync.
        """
        if not self.has_tracking_branch(branch):
            return True
        return self.branch_sha(branch) == self.branch_sha(tracking_branch_name(branch))

    def should_branch_be_pushed(self, branch: str) -> bool:
        """Check whether branch and its tracking branch differ by any commit."""
        output = self.runner.output("git", "rev-list", "--left-right", f"{branch}...{tracking_branch_name(branch)}")
        return output.strip() != ""

    def sync_state(self, branch: str) -> SyncState:
        """Classify branch by the commits it has and lacks relative to its tracking branch.

        Raises:
            ParseError: If git does not print two commit counts
        """
        if not self.has_tracking_branch(branch):
            return SyncState.NO_TRACKING_BRANCH
        output = self.runner.output(
            "git", "rev-list", "--left-right", "--count", f"{branch}...{tracking_branch_name(branch)}"
        )
        parts = output.split()
        if len(parts) != 2 or not all(COUNT_PATTERN.match(part) for part in parts):
            raise ParseError(f"Unexpected rev-list output for '{branch}': {output!r}")
        ahead, behind = int(parts[0]), int(parts[1])
        if ahead and behind:
            return SyncState.DIVERGED
        if ahead:
            return SyncState.NEEDS_PUSH
        if behind:
            return SyncState.NEEDS_PULL
        return SyncState.IN_SYNC

    def has_unmerged_commits(self, branch: str) -> bool:
        """Check whether branch has commits that are not in the main branch.

        Raises:
            GroveError: If no main branch is configured
        """
        main_branch = self._require_main_branch()
        return self.runner.output("git", "log", f"{main_branch}..{branch}").strip() != ""

    def branch_exists(self, branch: str) -> bool:
        """Check for a local or remote branch with the given name."""
        names = self._ref_names(LOCAL_REFS, REMOTE_REFS)
        return branch in names

    def local_branches(self) -> list[str]:
        """Local branch names in alphabetical order."""
        return sorted(self._ref_names(LOCAL_REFS))

    def local_branches_with_main_first(self) -> list[str]:
        """Local branch names with the main branch in front.

        Raises:
            GroveError: If no main branch is configured
        """
        main_branch = self._require_main_branch()
        return [main_branch] + [b for b in self.local_branches() if b != main_branch]

    def local_branches_with_deleted_tracking_branches(self) -> list[str]:
        """Local branches whose tracking branch was deleted on the remote."""
        output = self.runner.output(
            "git", "for-each-ref", "--format=%(refname)%09%(upstream:short)%09%(upstream:track)", LOCAL_REFS
        )
        result = []
        for line in output.splitlines():
            ref, _, rest = line.partition("\t")
            upstream, _, track = rest.partition("\t")
            name = _strip_ref_prefix(ref, LOCAL_REFS)
            if upstream == tracking_branch_name(name) and track.strip() == "[gone]":
                result.append(name)
        return result

    def current_branch_name(self) -> str:
        """Checked out branch; in dry-run mode the simulated one."""
        if self.runner.dry_run is not None and self.runner.dry_run.current_branch:
            return self.runner.dry_run.current_branch
        return self.runner.output("git", "rev-parse", "--abbrev-ref", "HEAD").strip()

    def previously_checked_out_branch(self) -> str:
        """The branch checked out before the current one, or ""."""
        result = self.runner.execute(["git", "rev-parse", "--verify", "--abbrev-ref", "@{-1}"])
        if not result.ok:
            return ""
        return result.output.strip()

    def current_branch_name_during_rebase(self) -> str:
        """Branch being rebased, read from git's rebase state.

        Raises:
            GroveError: If no rebase is in progress
        """
        git_dir = Path(self.runner.output("git", "rev-parse", "--git-dir").strip())
        if not git_dir.is_absolute():
            git_dir = self.runner.path / git_dir
        head_name = git_dir / "rebase-apply" / "head-name"
        try:
            content = head_name.read_text().strip()
        except OSError as err:
            raise GroveError(f"No rebase in progress: {err}") from err
        return content.replace("refs/heads/", "")

    def _require_main_branch(self) -> str:
        if not self.main_branch:
            raise GroveError("No main branch configured")
        return self.main_branch

    def _ref_names(self, *prefixes: str) -> set[str]:
        # for-each-ref prints only real refs: no detached HEAD entry, no worktree markers
        output = self.runner.output("git", "for-each-ref", "--format=%(refname)", *prefixes)
        names = set()
        for ref in output.splitlines():
            ref = ref.strip()
            for prefix in prefixes:
                name = _strip_ref_prefix(ref, prefix)
                if name != ref:
                    if name != "HEAD":
                        names.add(name)
                    break
        return names


def _strip_ref_prefix(ref: str, prefix: str) -> str:
    prefix = prefix + "/"
    return ref[len(prefix):] if ref.startswith(prefix) else ref
