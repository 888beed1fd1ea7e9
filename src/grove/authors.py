"""Choosing the author of a squash commit."""

import re
from dataclasses import dataclass
from typing import Optional, Protocol

from rich.console import Console
from rich.markup import escape

from grove.git import CommandRunner, GroveError, InvalidSelection, ParseError
from grove.log import get_logger

logger = get_logger(__name__)

NUMBER_PATTERN = re.compile(r"^[0-9]+$")

HEADER_TEMPLATE = """
Multiple people authored the '{branch}' branch.
Please choose an author for the squash commit.
"""

PROMPT = "Enter user's number or a custom author (default: 1): "


@dataclass(frozen=True)
class Author:
    """Someone who committed on a branch."""

    name_and_email: str
    commit_count: int

    @property
    def commit_stat(self) -> str:
        """Commit count with the noun pluralized, e.g. "5 commits"."""
        noun = "commit" if self.commit_count == 1 else "commits"
        return f"{self.commit_count} {noun}"


class UserInput(Protocol):
    """Source of operator input."""

    def read_line(self) -> str:
        """Block until the operator enters a line, return it untrimmed."""
        ...


class ConsoleInput:
    """Reads operator input from the terminal."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def read_line(self) -> str:
        """Read one line from the terminal."""
        return self.console.input()


def parse_shortlog(output: str) -> list[Author]:
    """Parse `git shortlog -s -n -e` output into authors.

    Raises:
        ParseError: If a line is not "<count>\\t<author>"
    """
    authors = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        parts = line.split("\t")
        if len(parts) != 2:
            raise ParseError(f"Unexpected shortlog line: {line!r}")
        count, name_and_email = parts
        if not NUMBER_PATTERN.match(count.strip()):
            raise ParseError(f"Unexpected commit count in shortlog line: {line!r}")
        authors.append(Author(name_and_email=name_and_email, commit_count=int(count)))
    return authors


def select_author(user_input: str, authors: list[Author]) -> str:
    """Turn one line of operator input into an author.

    Empty input picks the first author, a number picks that author, and any
    other text is taken as a custom author.

    Raises:
        InvalidSelection: If the number is not in the list
    """
    user_input = user_input.strip()
    if user_input == "":
        return authors[0].name_and_email
    if NUMBER_PATTERN.match(user_input):
        index = int(user_input)
        if 1 <= index <= len(authors):
            return authors[index - 1].name_and_email
        raise InvalidSelection("Invalid author number")
    return user_input


class SquashAuthorResolver:
    """Finds the author to attribute a squashed branch to."""

    def __init__(
        self,
        runner: CommandRunner,
        main_branch: str,
        user_input: Optional[UserInput] = None,
        console: Optional[Console] = None,
    ) -> None:
        """Initialize resolver.

        Args:
            runner: Runs the git queries
            main_branch: Commits reachable from here are not part of the branch
            user_input: Where to read the choice from when there are several authors
            console: Where to print the list of authors
        """
        self.runner = runner
        self.main_branch = main_branch
        self.console = console or Console()
        self.user_input = user_input or ConsoleInput(self.console)

    def branch_authors(self, branch: str) -> list[Author]:
        """Authors of the commits in main..branch, most commits first.

        Raises:
            GroveError: If no main branch is configured
        """
        if not self.main_branch:
            raise GroveError("No main branch configured")
        output = self.runner.output("git", "shortlog", "-s", "-n", "-e", f"{self.main_branch}..{branch}")
        return parse_shortlog(output)

    def resolve(self, branch: str) -> str:
        """Author for the squash commit of branch, asking the user if there are several.

        Raises:
            GroveError: If the branch has no commits of its own
        """
        authors = self.branch_authors(branch)
        if not authors:
            raise GroveError(f"Branch '{branch}' has no commits to squash")
        if len(authors) == 1:
            return authors[0].name_and_email
        self.console.print(HEADER_TEMPLATE.format(branch=branch), markup=False, highlight=False)
        for number, author in enumerate(authors, start=1):
            self.console.print(f"  [bold]{number}[/bold]: {escape(author.name_and_email)} ({author.commit_stat})", highlight=False)
        self.console.print()
        return self._ask(authors)

    def _ask(self, authors: list[Author]) -> str:
        # No retry limit: free text is always accepted, so only bad numbers loop
        while True:
            self.console.print(PROMPT, end="", markup=False, highlight=False)
            try:
                choice = select_author(self.user_input.read_line(), authors)
            except InvalidSelection as err:
                self.console.print(f"[red]Error:[/red] {err}")
                continue
            logger.debug("squash author: %s", choice)
            return choice
