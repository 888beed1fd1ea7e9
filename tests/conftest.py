"""Test configuration and fixtures."""

from pathlib import Path
from typing import Generator, Optional, Union

import pytest
from git import Actor, Repo

from grove.git import CommandResult, CommandRunner, DryRun

AUTHOR = Actor("Test User", "test@example.com")


@pytest.fixture(autouse=True)
def isolated_git_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep tests away from the user's global git configuration."""
    home = tmp_path / "home"
    home.mkdir()
    global_config = home / ".gitconfig"
    global_config.write_text("")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.delenv("GIT_TOWN_ENV", raising=False)
    return global_config


class FakeRunner(CommandRunner):
    """Command runner that never starts a process.

    `git config` calls are answered from in-memory local and global stores,
    everything else from canned responses (empty output by default).
    """

    def __init__(
        self,
        responses: Optional[dict[tuple[str, ...], Union[str, CommandResult]]] = None,
        dry_run: Optional[DryRun] = None,
    ) -> None:
        super().__init__(Path("."), dry_run=dry_run)
        self.local: dict[str, str] = {}
        self.global_: dict[str, str] = {}
        self.responses = dict(responses or {})
        self.calls: list[list[str]] = []

    def _spawn(self, argv: list[str]) -> CommandResult:
        self.calls.append(argv)
        if argv[:2] == ["git", "config"]:
            return self._config(argv[2:])
        response = self.responses.get(tuple(argv), "")
        if isinstance(response, CommandResult):
            return response
        return CommandResult(response, 0)

    def _config(self, args: list[str]) -> CommandResult:
        scopes = {"--local": self.local, "--global": self.global_}
        if args[0] == "--list":
            return CommandResult("\n".join(scopes[args[1]]), 0)
        store, rest = scopes[args[0]], args[1:]
        if rest[0] == "--unset":
            if rest[1] not in store:
                return CommandResult("", 5)
            del store[rest[1]]
            return CommandResult("", 0)
        if rest[0] == "--remove-section":
            prefix = rest[1] + "."
            keys = [key for key in store if key.startswith(prefix) and "." not in key[len(prefix) :]]
            if not keys:
                return CommandResult("", 128)
            for key in keys:
                del store[key]
            return CommandResult("", 0)
        if len(rest) == 1:
            if rest[0] not in store:
                return CommandResult("", 1)
            return CommandResult(store[rest[0]], 0)
        store[rest[0]] = rest[1]
        return CommandResult("", 0)


class ScriptedInput:
    """User input that replays prepared lines."""

    def __init__(self, lines: list[str]) -> None:
        self.lines = list(lines)
        self.reads = 0

    def read_line(self) -> str:
        if not self.lines:
            raise AssertionError("asked for more input than scripted")
        self.reads += 1
        return self.lines.pop(0)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


def commit_file(repo: Repo, name: str, content: str, author: Actor = AUTHOR) -> None:
    """Write a file into the work tree and commit it."""
    path = Path(repo.working_tree_dir) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    repo.index.add([name])
    repo.index.commit(f"Update {name}", author=author, committer=author)


@pytest.fixture
def test_env(tmp_path: Path) -> Generator[tuple[Path, Path], None, None]:
    """Create a test environment with local and remote repositories.

    Branches in the local repository:
        main: pushed, tracking origin/main
        feature/synced: pushed, same commit as origin
        feature/ahead: one local commit not pushed
        feature/behind: origin has one commit the local branch lacks
        feature/diverged: one commit on each side
        feature/local: never pushed

    Returns:
        Tuple of (local_repo_path, remote_repo_path)
    """
    remote_path = tmp_path / "remote"
    local_path = tmp_path / "local"
    remote_path.mkdir()
    local_path.mkdir()

    Repo.init(remote_path, bare=True)
    local_repo = Repo.init(local_path)

    with local_repo.config_writer() as writer:
        writer.set_value("user", "name", AUTHOR.name)
        writer.set_value("user", "email", AUTHOR.email)

    commit_file(local_repo, "README.md", "# Test Repository")

    # Ensure we're on main branch
    if "main" not in local_repo.heads:
        local_repo.create_head("main")
    main_branch = local_repo.heads.main
    main_branch.checkout()

    origin = local_repo.create_remote("origin", url=str(remote_path))
    origin.push("main")
    main_branch.set_tracking_branch(origin.refs.main)

    def create_branch(name: str, push: bool = True) -> None:
        main_branch.checkout()
        branch = local_repo.create_head(name)
        branch.checkout()
        commit_file(local_repo, f"{name}.txt", f"{name} content")
        if push:
            origin.push(name)
            branch.set_tracking_branch(origin.refs[name])

    create_branch("feature/synced")

    create_branch("feature/ahead")
    commit_file(local_repo, "feature/ahead.txt", "unpushed change")

    create_branch("feature/behind")
    commit_file(local_repo, "feature/behind.txt", "pushed change")
    origin.push("feature/behind")
    local_repo.git.reset("--hard", "HEAD~1")

    create_branch("feature/diverged")
    commit_file(local_repo, "feature/diverged.txt", "remote change")
    origin.push("feature/diverged")
    local_repo.git.reset("--hard", "HEAD~1")
    commit_file(local_repo, "feature/diverged.txt", "local change")

    create_branch("feature/local", push=False)

    main_branch.checkout()

    yield local_path, remote_path
