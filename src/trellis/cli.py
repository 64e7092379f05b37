"""Command line interface for trellis."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Iterator, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from trellis.config import load_config
from trellis.errors import FatalVcsFailure, WorkflowError
from trellis.git import CommandRunner, GitRepo
from trellis.messaging import Messenger
from trellis.operator import ConsoleOperator
from trellis.workflow import Workflow

app = typer.Typer(help="Git branching workflow tool")
console = Console()


def configure_logging(trace: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if trace else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def print_error(err: Exception) -> None:
    console.print(f"[red]Error:[/red] {escape(str(err))}", soft_wrap=True)


def get_repo(path: Path) -> GitRepo:
    """Get git repository instance."""
    try:
        return GitRepo(path)
    except WorkflowError as err:
        print_error(err)
        raise typer.Exit(code=1) from err


def build_workflow(path: Path, quiet: bool) -> Workflow:
    """Wire the workflow for the repository at `path`."""
    repo = get_repo(path)
    try:
        config = load_config(repo.repo, quiet=quiet)
    except WorkflowError as err:
        print_error(err)
        raise typer.Exit(code=1) from err
    repo.remote = config.remote
    return Workflow(
        config,
        repo,
        CommandRunner(repo.repo),
        ConsoleOperator(console),
        Messenger(config.webhook_url, quiet=config.quiet),
    )


def create_branch_table(title: str, branches: list[str], title_style: str) -> Table:
    """Create a one-column branch table wide enough for its title."""
    table = Table(
        title=title,
        show_header=True,
        header_style="bold",
        title_style=title_style,
        show_edge=True,
    )
    width = max([len(title), *(len(branch) for branch in branches)])
    table.add_column("Branch", style="cyan", min_width=width, no_wrap=True)
    for branch in branches:
        table.add_row(branch)
    return table


@contextmanager
def workflow_errors() -> Iterator[None]:
    """Report workflow errors and exit with status 1."""
    try:
        yield
    except FatalVcsFailure as err:
        print_error(err)
        console.print(
            Panel(
                "\n".join(escape(command) for command in err.log),
                title="Commands issued",
                title_align="left",
                border_style="red",
                padding=(0, 2),
                expand=False,
            )
        )
        console.print("[yellow]The repository may be mid-sequence and need manual attention[/yellow]")
        raise typer.Exit(code=1) from err
    except WorkflowError as err:
        print_error(err)
        raise typer.Exit(code=1) from err


def _workflow(ctx: typer.Context) -> Workflow:
    workflow = build_workflow(ctx.obj["path"], ctx.obj["quiet"])
    ctx.call_on_close(workflow.messenger.close)
    return workflow


@app.callback()
def main(
    ctx: typer.Context,
    path: Annotated[Path, typer.Option(help="Path to git repository")] = Path("."),
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Do not post work-log messages")] = False,
    trace: Annotated[bool, typer.Option("--trace", "-v", help="Log every git command and HTTP request")] = False,
) -> None:
    """Git branching workflow tool."""
    configure_logging(trace)
    ctx.obj = {"path": path, "quiet": quiet}


@app.command()
def update(ctx: typer.Context) -> None:
    """Update the current branch with the latest changes from its remote and the base branch."""
    workflow = _workflow(ctx)
    with workflow_errors():
        workflow.update()


@app.command()
def start(
    ctx: typer.Context,
    branch_name: Annotated[Optional[str], typer.Argument(help="Name of the new branch")] = None,
) -> None:
    """Start a new branch with the latest changes from the base branch."""
    workflow = _workflow(ctx)
    with workflow_errors():
        workflow.start(branch_name)


@app.command()
def share(ctx: typer.Context) -> None:
    """Share the current branch in the remote repository."""
    workflow = _workflow(ctx)
    with workflow_errors():
        workflow.share()


@app.command()
def track(ctx: typer.Context) -> None:
    """Set the current branch to track the remote branch with the same name."""
    workflow = _workflow(ctx)
    with workflow_errors():
        workflow.track()


@app.command()
def integrate(
    ctx: typer.Context,
    target_branch: Annotated[Optional[str], typer.Argument(help="Aggregate branch to integrate into")] = None,
) -> None:
    """Integrate the current branch into one of the aggregate branches."""
    workflow = _workflow(ctx)
    with workflow_errors():
        workflow.integrate(target_branch)


@app.command()
def promote(ctx: typer.Context) -> None:
    """(DEPRECATED) Promote the current branch into staging."""
    workflow = _workflow(ctx)
    with workflow_errors():
        workflow.promote()


@app.command()
def nuke(
    ctx: typer.Context,
    bad_branch: Annotated[str, typer.Argument(help="Aggregate branch to reset")],
    destination: Annotated[
        Optional[str], typer.Option("--destination", "-d", help="Branch to reset to")
    ] = None,
) -> None:
    """Nuke an aggregate branch and reset it to a known good state."""
    workflow = _workflow(ctx)
    with workflow_errors():
        result = workflow.nuke(bad_branch, destination)

    if result.affected_branches:
        console.print(create_branch_table("Affected Branches", result.affected_branches, "bold yellow"))
    console.print(f"[green]{bad_branch} has been reset to {result.good_branch}[/green]")


@app.command()
def release(ctx: typer.Context) -> None:
    """Release the current branch to production."""
    workflow = _workflow(ctx)
    with workflow_errors():
        workflow.release()


@app.command()
def cleanup(ctx: typer.Context) -> None:
    """Clean up branches that have been merged into the base branch."""
    workflow = _workflow(ctx)
    with workflow_errors():
        result = workflow.cleanup()

    if result.deleted_branches:
        title = f"Successfully deleted {len(result.deleted_branches)} branch(es)"
        console.print()
        console.print(create_branch_table(title, result.deleted_branches, "bold green"))
    else:
        console.print(
            Panel(
                "[green]Your branches are clean[/green]",
                style="green",
                padding=(0, 2),
                expand=False,
            )
        )


@app.command()
def reviewrequest(
    ctx: typer.Context,
    description: Annotated[
        Optional[str], typer.Option("--description", "-d", help="Pull request description")
    ] = None,
) -> None:
    """Create a pull request on GitHub."""
    workflow = _workflow(ctx)
    with workflow_errors():
        workflow.reviewrequest(description)


if __name__ == "__main__":
    app()
