"""CLI for modsync."""

import functools
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from . import __version__
from .config import ModsyncConfig, load_config
from .errors import ModsyncError
from .git import GitSession
from .status import RevStatus
from .status_builder import StatusBuilder
from .workspace import modules_from_workspace, sync_start_revision, upload_revisions

console = Console()
error_console = Console(stderr=True)

logger = logging.getLogger("modsync")


def get_project_root() -> Path:
    """Get the workspace root (top level of the current git working copy)."""
    return GitSession(Path.cwd()).toplevel()


def open_workspace(verbose: bool = False) -> tuple[Path, ModsyncConfig, GitSession]:
    """Load config and open a git session on the current workspace."""
    project_root = get_project_root()
    config = load_config(project_root)
    if not verbose:
        logger.setLevel(config.log_level)
    return project_root, config, GitSession(project_root, timeout=config.git_timeout)


def handle_errors(func):
    """Report modsync errors and exit with failure."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ModsyncError as e:
            error_console.print(f"[red]Error:[/red] ({e.operation})", Text(str(e)))
            sys.exit(1)

    return wrapper


@click.group()
@click.version_option(version=__version__, prog_name="modsync")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """modsync - Status of embedded modules across a git history."""
    ctx.obj = {"verbose": verbose}
    if not logger.handlers:
        logger.addHandler(RichHandler(console=error_console, show_path=False))
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@main.command()
@click.argument("revision", required=False)
@click.option("--detailed", "-d", is_flag=True, help="Print dirty modules of each commit")
@click.option("--verify-clean", is_flag=True, help="Exit with error code 1 if commits are dirty")
@click.option("--fast", is_flag=True, help="Assume modules in boundary commits are clean")
@click.option("--gerrit", is_flag=True, help="Stop at any commit known to a ref")
@click.pass_context
@handle_errors
def status(
    ctx: click.Context,
    revision: str | None,
    detailed: bool,
    verify_clean: bool,
    fast: bool,
    gerrit: bool,
) -> None:
    """Print commits and their module status.

    Without REVISION checks the working copy and the current branch with all
    local ancestors. With a single TO-REV checks that revision and all local
    ancestors. With FROM-REV..TO-REV checks TO-REV and ancestors without
    FROM-REV and its ancestors.
    """
    project_root, config, git = open_workspace(ctx.obj["verbose"])
    builder = StatusBuilder(git)
    mode = "gerrit" if gerrit else config.mode
    fast = fast or config.fast

    stats: list[RevStatus] = []
    if revision:
        if ".." in revision:
            from_rev, to_rev = revision.split("..", 1)
        else:
            from_rev, to_rev = "", revision
        stats.append(builder.history(to_rev or "HEAD", stop_rev=from_rev or None, mode=mode, fast=fast))
    else:
        if git.has_uncommitted_changes():
            stats.append(builder.fs_status(project_root, config.exclude_patterns))
        stats.append(builder.history("HEAD", mode=mode, fast=fast))

    for stat in stats:
        print_status(git, stat, detailed)

    # Boundary commits count, uncommitted changes do not
    if verify_clean and stats[-1].any_dirty():
        sys.exit(1)


def print_status(git: GitSession, stat: RevStatus, detailed: bool) -> None:
    """Print one line per node, skipping boundary nodes."""
    for node in stat.walk():
        # Boundary nodes are remote commits (or the initial commit)
        if node.is_boundary:
            continue
        dirty_mods = node.dirty_modules
        line = Text()
        if dirty_mods:
            line.append("[DIRTY]", style="bold red")
        else:
            line.append("[   OK]", style="green")
        if node.rev:
            line.append(f" {node.rev[:7]} {git.commit_subject(node.rev)}")
        else:
            line.append(" ------- uncommitted changes", style="dim")

        if detailed:
            console.print(line)
            for m in dirty_mods:
                console.print(f"        - {m.dir}", markup=False)
        else:
            if dirty_mods:
                line.append(f" ({len(dirty_mods)} modules dirty)")
            console.print(line)


@main.command()
@click.argument("path")
@click.option("--rev", default="HEAD", help="Revision to check")
@click.pass_context
@handle_errors
def module(ctx: click.Context, path: str, rev: str) -> None:
    """Show the status of the module at PATH in a single revision."""
    _, _, git = open_workspace(ctx.obj["verbose"])
    builder = StatusBuilder(git)
    mod = builder.require_module_status(rev, path)

    table = Table(title=f"Module {mod.dir}")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Revision", git.resolve(rev))
    table.add_row("Remote", mod.info.remote_url)
    table.add_row("Target revision", mod.info.target_revision or "-")
    table.add_row("Synced from", mod.info.revision_sha1 or "-")
    table.add_row("Ignores", ", ".join(mod.info.ignores) or "-")
    if mod.dirty:
        table.add_row("Status", "[red]Dirty[/red]")
    else:
        table.add_row("Status", "[green]Clean[/green]")

    console.print(table)


@main.command()
@click.pass_context
@handle_errors
def modules(ctx: click.Context) -> None:
    """List the modules in the working copy."""
    project_root, config, git = open_workspace(ctx.obj["verbose"])
    infos = modules_from_workspace(project_root, StatusBuilder(git), config.exclude_patterns)

    if not infos:
        console.print("[dim]No modules found.[/dim]")
        return

    table = Table(title="Modules")
    table.add_column("Path", style="cyan")
    table.add_column("Remote")
    table.add_column("Target revision")
    table.add_column("Ignores")

    for info in infos:
        table.add_row(
            info.local_path,
            info.remote_url,
            info.target_revision or "-",
            ", ".join(info.ignores),
        )

    console.print(table)


@main.command("sync-base")
@click.argument("revision", default="HEAD")
@click.pass_context
@handle_errors
def sync_base(ctx: click.Context, revision: str) -> None:
    """Print the revision a sync of REVISION starts from."""
    _, _, git = open_workspace(ctx.obj["verbose"])
    start = sync_start_revision(git, revision)
    if start is None:
        console.print("[dim]No start revision - history ends before.[/dim]")
    else:
        console.print(start)


@main.command("upload-revs")
@click.argument("path")
@click.argument("revision", default="HEAD")
@click.pass_context
@handle_errors
def upload_revs(ctx: click.Context, path: str, revision: str) -> None:
    """List local revisions with changes of the module at PATH."""
    _, _, git = open_workspace(ctx.obj["verbose"])
    revs = upload_revisions(StatusBuilder(git), revision, path)
    if not revs:
        console.print(f"[dim]No changes to module {path}.[/dim]", highlight=False)
        return
    for sha in revs:
        console.print(f"{sha[:7]} {git.commit_subject(sha)}", markup=False, highlight=False)


if __name__ == "__main__":
    main()
