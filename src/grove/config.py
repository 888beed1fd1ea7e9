"""Settings stored in git's configuration.

Git config is a flat key/value store. The branch hierarchy is encoded in it
with one subsection per branch::

    git-town.main-branch-name            main
    git-town.perennial-branch-names      production qa
    git-town-branch.<name>.parent        main
    git-town-branch.<name>.ancestors     main feature-1
"""

import os
import re
from enum import Enum
from typing import Optional

from grove.git import CommandRunner, GitError
from grove.log import get_logger

logger = get_logger(__name__)

MAIN_BRANCH_KEY = "git-town.main-branch-name"
PERENNIAL_BRANCHES_KEY = "git-town.perennial-branch-names"
OFFLINE_KEY = "git-town.offline"
HACK_PUSH_FLAG_KEY = "git-town.hack-push-flag"
PULL_BRANCH_STRATEGY_KEY = "git-town.pull-branch-strategy"
TESTING_REMOTE_URL_KEY = "git-town.testing.remote-url"

SETTINGS_SECTION = "git-town"
BRANCH_SECTION = "git-town-branch"

DEFAULT_PULL_BRANCH_STRATEGY = "rebase"

# Environment flag that enables test-only overrides
TEST_MODE_ENV = "GIT_TOWN_ENV"

PARENT_KEY_PATTERN = re.compile(r"^git-town-branch\.(?P<branch>.+)\.parent$")
ANCESTORS_KEY_PATTERN = re.compile(r"^git-town-branch\.(?P<branch>.+)\.ancestors$")

HOSTNAME_PATTERN = re.compile(r"(^[^:]*://([^@]*@)?|git@)([^/:]+).*")

# `git config --unset` exits with 5 when the key is not there
UNSET_MISSING_KEY_STATUS = 5


class Scope(Enum):
    """Which git configuration file to use."""

    LOCAL = "local"
    GLOBAL = "global"

    @property
    def flag(self) -> str:
        """Command line flag selecting this scope."""
        return f"--{self.value}"


def branch_key(branch: str, field: str) -> str:
    """Config key of a per-branch hierarchy field."""
    return f"{BRANCH_SECTION}.{branch}.{field}"


def format_bool(value: bool) -> str:
    """Format a boolean the way git config stores it."""
    return "true" if value else "false"


class ConfigStore:
    """Reads and writes git configuration through a command runner.

    Reads check for the key first and fetch the value only when it exists,
    so a missing key is an empty string rather than an error.
    """

    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def keys(self, scope: Scope = Scope.LOCAL) -> list[str]:
        """All keys defined in the given scope, in git's enumeration order."""
        output = self.runner.output("git", "config", "--list", scope.flag, "--name-only")
        return [line.strip() for line in output.splitlines() if line.strip()]

    def keys_matching(self, pattern: re.Pattern, scope: Scope = Scope.LOCAL) -> list[str]:
        """Keys in the given scope that match a compiled pattern."""
        return [key for key in self.keys(scope) if pattern.match(key)]

    def has(self, key: str, scope: Scope) -> bool:
        """Check whether the key is defined in the given scope."""
        return self.runner.output_contains_line(key, "git", "config", "--list", scope.flag, "--name-only")

    def get(self, key: str, scope: Optional[Scope] = None) -> str:
        """Get a value, or an empty string if it is not set.

        Args:
            key: Configuration key
            scope: Where to look; without a scope local wins over global
        """
        scopes = [scope] if scope is not None else [Scope.LOCAL, Scope.GLOBAL]
        for candidate in scopes:
            if self.has(key, candidate):
                return self.runner.output("git", "config", candidate.flag, key)
        return ""

    def get_with_default(self, key: str, default: str, scope: Optional[Scope] = None) -> str:
        """Get a value, falling back to default when it is not set or empty."""
        value = self.get(key, scope)
        return value if value else default

    def set(self, key: str, value: str, scope: Scope = Scope.LOCAL) -> None:
        """Write a value. Honors dry-run mode."""
        self.runner.run("git", "config", scope.flag, key, value)

    def unset(self, key: str, scope: Scope = Scope.LOCAL) -> None:
        """Remove a key. Removing a key that is not set does nothing."""
        try:
            self.runner.run("git", "config", scope.flag, "--unset", key)
        except GitError as err:
            if err.status != UNSET_MISSING_KEY_STATUS:
                raise
            logger.debug("%s was not set", key)

    def remove_section(self, section: str, scope: Scope = Scope.LOCAL) -> None:
        """Remove a section and every key in it.

        Raises:
            GitError: If the section does not exist
        """
        self.runner.run("git", "config", scope.flag, "--remove-section", section)


class Settings:
    """Workflow settings kept next to the branch hierarchy."""

    def __init__(self, store: ConfigStore) -> None:
        self.store = store
        self.runner = store.runner

    @property
    def pull_branch_strategy(self) -> str:
        """How branches are updated from their parents, "rebase" unless set."""
        return self.store.get_with_default(PULL_BRANCH_STRATEGY_KEY, DEFAULT_PULL_BRANCH_STRATEGY, Scope.LOCAL)

    def set_pull_branch_strategy(self, strategy: str) -> None:
        """Store the pull strategy for this repository."""
        self.store.set(PULL_BRANCH_STRATEGY_KEY, strategy)

    @property
    def is_offline(self) -> bool:
        """Whether remote operations are skipped. Local value wins over global."""
        return self.store.get(OFFLINE_KEY) == "true"

    def set_offline(self, value: bool) -> None:
        """Turn offline mode on or off for every repository of the user."""
        # Offline mode follows the user across repositories
        self.store.set(OFFLINE_KEY, format_bool(value), Scope.GLOBAL)

    @property
    def should_hack_push(self) -> bool:
        """Whether new feature branches are pushed to origin."""
        return self.store.get(HACK_PUSH_FLAG_KEY) == "true"

    def set_hack_push(self, value: bool) -> None:
        """Store the hack push flag for this repository."""
        self.store.set(HACK_PUSH_FLAG_KEY, format_bool(value))

    def remote_origin_url(self) -> str:
        """URL of the "origin" remote.

        When GIT_TOWN_ENV is "test", a URL stored under
        git-town.testing.remote-url takes precedence.
        """
        if os.environ.get(TEST_MODE_ENV) == "test":
            mock_url = self.store.get(TESTING_REMOTE_URL_KEY, Scope.LOCAL)
            if mock_url:
                return mock_url
        return self.runner.output("git", "remote", "get-url", "origin")

    def remote_upstream_url(self) -> str:
        """URL of the "upstream" remote."""
        return self.runner.output("git", "remote", "get-url", "upstream")

    def has_remote(self, name: str) -> bool:
        """Check whether a remote with the given name is configured."""
        return self.runner.output_contains_line(name, "git", "remote")

    def remove_all_configuration(self) -> None:
        """Drop the settings section and every branch's hierarchy entry."""
        sections: list[str] = []
        for key in self.store.keys(Scope.LOCAL):
            if not key.startswith((f"{SETTINGS_SECTION}.", f"{BRANCH_SECTION}.")):
                continue
            # "git-town.testing.remote-url" lives in its own subsection
            section = key.rsplit(".", 1)[0]
            if section not in sections:
                sections.append(section)
        for section in sections:
            self.store.remove_section(section)


def url_hostname(url: str) -> str:
    """Hostname of an SSH or HTTP(S) git URL, or "" if there is none."""
    match = HOSTNAME_PATTERN.match(url)
    if match is None:
        return ""
    return match.group(3)


def url_repository_name(url: str) -> str:
    """Repository path ("owner/name") of a git URL, without the .git suffix."""
    hostname = url_hostname(url)
    if not hostname:
        return ""
    match = re.match(".*" + re.escape(hostname) + "[/:](.+)", url)
    if match is None:
        return ""
    return match.group(1).removesuffix(".git")
