"""Running git and other external commands."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from git import Git
from git.exc import CommandError

from grove.log import get_logger

logger = get_logger(__name__)


class GroveError(Exception):
    """Base error for grove operations."""


class GitError(GroveError):
    """External command failed."""

    def __init__(self, message: str, command: Sequence[str] = (), status: Optional[int] = None) -> None:
        """Initialize error.

        Args:
            message: Error message
            command: The argv that failed
            status: Exit status of the command, if it ran at all
        """
        super().__init__(message)
        self.command = list(command)
        self.status = status


class ParseError(GroveError):
    """Output of an external command did not have the expected shape."""


class InvalidSelection(GroveError):
    """The user picked an entry that does not exist."""


@dataclass(frozen=True)
class CommandResult:
    """Captured output of a finished command."""

    output: str
    status: int = 0

    @property
    def ok(self) -> bool:
        """Whether the command exited with status 0."""
        return self.status == 0

    def lines(self) -> list[str]:
        """Output split into lines."""
        return self.output.splitlines()


@dataclass
class DryRun:
    """Simulation state for dry-run mode.

    Only branch switching is modelled: ``<tool> checkout <branch>`` moves
    ``current_branch``, everything else is a no-op.
    """

    current_branch: Optional[str] = None


class CommandRunner:
    """Executes external commands inside a repository."""

    def __init__(self, path: Path, dry_run: Optional[DryRun] = None) -> None:
        """Initialize runner.

        Args:
            path: Working directory for all commands
            dry_run: Simulation state; mutating commands are simulated when given
        """
        self.path = Path(path)
        self.dry_run = dry_run
        self._git = Git(str(self.path))

    @property
    def is_dry_run(self) -> bool:
        """Whether mutating commands are only simulated."""
        return self.dry_run is not None

    def execute(self, argv: Sequence[str], dry_run: bool = False) -> CommandResult:
        """Execute a command and capture its output.

        Non-zero exit statuses are returned, not raised.

        Raises:
            GitError: If the program could not be started
        """
        argv = list(argv)
        if dry_run:
            return self._simulate(argv)
        logger.debug("running %s", " ".join(argv))
        return self._spawn(argv)

    def output(self, *argv: str) -> str:
        """Execute a query and return its output.

        Raises:
            GitError: If the command exits with a non-zero status
        """
        result = self.execute(argv)
        if not result.ok:
            raise GitError(f"'{' '.join(argv)}' failed with status {result.status}", argv, result.status)
        return result.output

    def output_contains_line(self, line: str, *argv: str) -> bool:
        """Check whether a query prints the given line.

        A failing command counts as not containing the line.
        """
        result = self.execute(argv)
        if not result.ok:
            return False
        return any(candidate.strip() == line for candidate in result.lines())

    def run(self, *argv: str) -> CommandResult:
        """Execute a command that changes the repository.

        In dry-run mode the command is only logged and simulated.

        Raises:
            GitError: If the command exits with a non-zero status
        """
        if self.is_dry_run:
            logger.info("[dry-run] %s", " ".join(argv))
            return self.execute(argv, dry_run=True)
        logger.info("%s", " ".join(argv))
        result = self.execute(argv)
        if not result.ok:
            raise GitError(f"'{' '.join(argv)}' failed with status {result.status}", argv, result.status)
        return result

    def _simulate(self, argv: list[str]) -> CommandResult:
        # A live runner stays live; only its own simulation state is tracked
        if len(argv) == 3 and argv[1] == "checkout" and self.dry_run is not None:
            self.dry_run.current_branch = argv[2]
        return CommandResult("", 0)

    def _spawn(self, argv: list[str]) -> CommandResult:
        try:
            status, stdout, _ = self._git.execute(argv, with_extended_output=True, with_exceptions=False)
        except CommandError as err:
            raise GitError(f"Failed to run '{' '.join(argv)}': {err}", argv) from err
        return CommandResult(stdout, status)
