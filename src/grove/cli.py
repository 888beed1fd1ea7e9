"""Command line interface for grove."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich import print
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from grove.branches import SyncState
from grove.git import GroveError
from grove.log import setup_logging
from grove.repo import Repository

app = typer.Typer(help="Branch hierarchy workflows on top of git")
console = Console()

DRY_RUN_MESSAGE = """In dry run mode. No commands will be run. When run in normal mode, the command
output will appear beneath the command. Some commands will only be run if
necessary. For example: 'git push' will run if and only if there are local
commits not on the remote."""


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Turn grove errors into a failing exit status."""
    try:
        yield
    except GroveError as err:
        print(f"[red]Error:[/red] {err}")
        raise typer.Exit(code=1) from err


def get_repo(ctx: typer.Context) -> Repository:
    """Get the repository selected by the global options."""
    options = ctx.obj
    if options.get("repo") is None:
        with exit_on_error():
            options["repo"] = Repository(options["path"], dry_run=options["dry_run"])
    return options["repo"]


def parse_flag(value: str) -> bool:
    """Parse "true"/"false" the way git config stores booleans."""
    normalized = value.strip().lower()
    if normalized not in ("true", "false"):
        raise typer.BadParameter("expected 'true' or 'false'")
    return normalized == "true"


@app.callback()
def main(
    ctx: typer.Context,
    path: Annotated[Path, typer.Option(help="Path to git repository")] = Path("."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print mutating commands instead of running them"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every git command"),
) -> None:
    """Branch hierarchy workflows on top of git."""
    if verbose:
        setup_logging("DEBUG")
    elif dry_run:
        setup_logging("INFO")
    else:
        setup_logging("WARNING")
    if dry_run:
        console.print(Panel(DRY_RUN_MESSAGE, style="blue", padding=(0, 2), expand=False))
    ctx.obj = {"path": path, "dry_run": dry_run, "repo": None}


@app.command("main-branch")
def main_branch(ctx: typer.Context, name: Annotated[Optional[str], typer.Argument(help="New main branch")] = None) -> None:
    """Show or set the main branch."""
    repo = get_repo(ctx)
    with exit_on_error():
        if name:
            repo.hierarchy.set_main_branch(name)
        current = repo.hierarchy.get_main_branch()
    console.print(current if current else "[yellow](not set)[/yellow]")


@app.command("perennial-branches")
def perennial_branches(
    ctx: typer.Context,
    add: Optional[str] = typer.Option(None, "--add", "-a", help="Mark a branch as perennial"),
    set_: Optional[str] = typer.Option(None, "--set", help="Comma-separated list replacing all perennial branches"),
) -> None:
    """Show or change the perennial branches."""
    repo = get_repo(ctx)
    with exit_on_error():
        if set_ is not None:
            repo.hierarchy.set_perennials([b.strip() for b in set_.split(",") if b.strip()])
        if add:
            repo.hierarchy.add_perennial(add)
        perennials = sorted(repo.hierarchy.get_perennials())
    if not perennials:
        console.print("[yellow](none)[/yellow]")
    for branch in perennials:
        console.print(branch)


@app.command()
def parent(
    ctx: typer.Context,
    branch: Annotated[str, typer.Argument(help="Branch to inspect")],
    new_parent: Annotated[Optional[str], typer.Argument(help="New parent branch")] = None,
    delete: bool = typer.Option(False, "--delete", "-d", help="Remove the parent entry"),
) -> None:
    """Show, set or delete the parent of a branch."""
    repo = get_repo(ctx)
    with exit_on_error():
        if delete:
            repo.hierarchy.delete_parent(branch)
        elif new_parent:
            repo.hierarchy.set_parent(branch, new_parent)
        current = repo.hierarchy.get_parent(branch)
    console.print(current if current else "[yellow](no parent)[/yellow]")


@app.command()
def children(ctx: typer.Context, branch: Annotated[str, typer.Argument(help="Parent branch")]) -> None:
    """List the direct children of a branch."""
    repo = get_repo(ctx)
    with exit_on_error():
        names = repo.hierarchy.get_children(branch)
    for name in names:
        console.print(name)


@app.command()
def ancestors(
    ctx: typer.Context,
    branch: Annotated[str, typer.Argument(help="Branch to inspect")],
    compile_: bool = typer.Option(False, "--compile", "-c", help="Recompute the chain from the parent entries"),
) -> None:
    """Show the cached ancestor chain of a branch."""
    repo = get_repo(ctx)
    with exit_on_error():
        if compile_:
            chain = repo.hierarchy.compile_ancestors(branch)
        else:
            chain = repo.hierarchy.lookup_ancestors(branch)
    if chain is None:
        console.print("[yellow](not computed, run with --compile)[/yellow]")
    elif not chain:
        console.print("[yellow](none)[/yellow]")
    else:
        console.print(" -> ".join([*chain, branch]))


@app.command("clear-ancestors")
def clear_ancestors(ctx: typer.Context) -> None:
    """Delete every cached ancestor chain."""
    repo = get_repo(ctx)
    with exit_on_error():
        repo.hierarchy.delete_all_ancestor_caches()
    console.print("[green]Ancestor caches cleared[/green]")


@app.command()
def status(
    ctx: typer.Context,
    branches: Annotated[Optional[list[str]], typer.Argument(help="Branches to check (default: all local)")] = None,
) -> None:
    """Show how local branches relate to their tracking branches."""
    repo = get_repo(ctx)
    with exit_on_error():
        resolver = repo.branches()
        names = branches or resolver.local_branches()
        rows = []
        for name in names:
            state = resolver.sync_state(name)
            unmerged = bool(repo.main_branch) and name != repo.main_branch and resolver.has_unmerged_commits(name)
            rows.append((name, state, unmerged))

    table = Table(
        title="Branches",
        show_header=True,
        header_style="bold",
        title_style="bold blue",
        show_edge=True,
    )
    table.add_column("Branch", style="cyan", no_wrap=True)
    table.add_column("State", style="magenta", justify="center", no_wrap=True)
    table.add_column("Unmerged?", justify="center", no_wrap=True)
    for name, state, unmerged in rows:
        if state == SyncState.IN_SYNC:
            state_display = f"[green]{state.value}[/green]"
        elif state == SyncState.NO_TRACKING_BRANCH:
            state_display = f"[dim]{state.value}[/dim]"
        else:
            state_display = f"[bright_yellow]{state.value}[/bright_yellow]"
        table.add_row(name, state_display, "yes" if unmerged else "")
    console.print(table)


@app.command("squash-author")
def squash_author(ctx: typer.Context, branch: Annotated[str, typer.Argument(help="Branch to squash")]) -> None:
    """Pick the author for a squash commit of a branch."""
    repo = get_repo(ctx)
    with exit_on_error():
        if not repo.main_branch:
            raise GroveError("No main branch configured, run 'grove main-branch <name>' first")
        author = repo.squash_authors(console=console).resolve(branch)
    console.print(author, markup=False, highlight=False)


@app.command("pull-strategy")
def pull_strategy(ctx: typer.Context, strategy: Annotated[Optional[str], typer.Argument(help="rebase or merge")] = None) -> None:
    """Show or set the pull branch strategy."""
    repo = get_repo(ctx)
    with exit_on_error():
        if strategy:
            if strategy not in ("rebase", "merge"):
                raise typer.BadParameter("expected 'rebase' or 'merge'")
            repo.settings.set_pull_branch_strategy(strategy)
        current = repo.settings.pull_branch_strategy
    console.print(current)


@app.command()
def offline(ctx: typer.Context, value: Annotated[Optional[str], typer.Argument(help="true or false")] = None) -> None:
    """Show or set offline mode (stored globally)."""
    repo = get_repo(ctx)
    with exit_on_error():
        if value is not None:
            repo.settings.set_offline(parse_flag(value))
        current = repo.settings.is_offline
    console.print("true" if current else "false")


@app.command("hack-push")
def hack_push(ctx: typer.Context, value: Annotated[Optional[str], typer.Argument(help="true or false")] = None) -> None:
    """Show or set whether new branches are pushed to origin."""
    repo = get_repo(ctx)
    with exit_on_error():
        if value is not None:
            repo.settings.set_hack_push(parse_flag(value))
        current = repo.settings.should_hack_push
    console.print("true" if current else "false")


@app.command()
def checkout(ctx: typer.Context, branch: Annotated[str, typer.Argument(help="Branch to switch to")]) -> None:
    """Switch to a branch."""
    repo = get_repo(ctx)
    with exit_on_error():
        repo.checkout(branch)
        current = repo.branches().current_branch_name()
    console.print(f"On branch [cyan]{current}[/cyan]")


@app.command()
def reset(
    ctx: typer.Context,
    no_interactive: bool = typer.Option(False, "--no-interactive", "-y", help="Skip confirmation prompts"),
) -> None:
    """Remove all grove configuration from the repository."""
    repo = get_repo(ctx)
    if not no_interactive:
        confirm = input("Remove the branch hierarchy and all settings? [y/N] ")
        if confirm.lower() != "y":
            console.print("\n[yellow]Operation cancelled[/yellow]")
            return
    with exit_on_error():
        repo.settings.remove_all_configuration()
    console.print("[green]Configuration removed[/green]")


if __name__ == "__main__":
    app()
