"""Command-line interface for git-yearbook."""

import asyncio
import logging
from collections import Counter
from collections.abc import Coroutine
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich import print
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.prompt import Confirm, Prompt
from rich.table import Table

from git_yearbook import (
    CacheError,
    CommitRecord,
    Config,
    FetchScope,
    GitHubActivity,
    MalformedResponseError,
    NotFoundError,
    TransientRateLimitError,
    TransportError,
    YearbookError,
)
from git_yearbook.cache import CacheEntry, CacheKey, CommitCache, FileCommitCache, NoOpCache
from git_yearbook.engine import CommitRetrievalEngine, deadline_in
from git_yearbook.progress import ProgressEvent, ProgressEventType
from git_yearbook.transport import GhCliTransport, HttpGraphQLTransport, Transport

app = typer.Typer(
    name="git-yearbook",
    help="Collect an organization's or user's GitHub commit history for a period",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

TRANSPORTS = ("http", "gh")

T = TypeVar("T")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _resolve_scope(
    login: str,
    from_date: datetime | None,
    to_date: datetime | None,
    year: int | None,
    start_month: int,
    author: str | None,
) -> FetchScope:
    """Build the scope from either an explicit range or a fiscal year.

    Raises:
        typer.BadParameter: If the options are incomplete or invalid
    """
    try:
        if from_date is not None or to_date is not None:
            if from_date is None or to_date is None:
                raise typer.BadParameter("--from and --to must be given together")
            if year is not None:
                raise typer.BadParameter("Use either --from/--to or --year, not both")
            return FetchScope(
                org_or_user=login,
                from_date=from_date.date(),
                to_date=to_date.date(),
                author_filter=author,
            )

        if year is None:
            raise typer.BadParameter("Either --from/--to or --year is required")
        return FetchScope.for_fiscal_year(login, year, start_month, author_filter=author)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


def _build_transport(transport: str, token: str | None) -> Transport:
    if transport == "gh":
        return GhCliTransport()

    if not token:
        token = Config().get_token()
    if not token:
        print("[red]Error: GitHub token is required for the http transport[/red]")
        print(
            "[yellow]Pass --token, set GITHUB_TOKEN, run [bold]git-yearbook auth[/bold], "
            "or use --transport gh[/yellow]"
        )
        raise typer.Exit(1)
    return HttpGraphQLTransport(token)


async def _fetch(
    engine: CommitRetrievalEngine,
    transport: Transport,
    scope: FetchScope,
    deadline: float | None,
) -> list[CommitRecord]:
    try:
        return await engine.fetch_all(scope, deadline=deadline)
    finally:
        if isinstance(transport, HttpGraphQLTransport):
            await transport.close()


async def _fetch_activity(
    engine: CommitRetrievalEngine,
    transport: Transport,
    scopes: list[FetchScope],
    deadline: float | None,
) -> list[GitHubActivity]:
    try:
        return [await engine.fetch_activity(scope, deadline=deadline) for scope in scopes]
    finally:
        if isinstance(transport, HttpGraphQLTransport):
            await transport.close()


def _run_or_exit(coroutine: Coroutine[Any, Any, T]) -> T:
    """Run ``coroutine``, turning retrieval failures into a message and exit code."""
    try:
        return asyncio.run(coroutine)
    except NotFoundError as e:
        print(f"[red]Not found: {e}[/red]")
        raise typer.Exit(1)
    except TransientRateLimitError as e:
        print(f"[red]Rate limit persisted after retries: {e}[/red]")
        raise typer.Exit(1)
    except MalformedResponseError as e:
        print(f"[red]Unexpected response from GitHub: {e}[/red]")
        raise typer.Exit(1)
    except TransportError as e:
        print(f"[red]Request failed: {e}[/red]")
        raise typer.Exit(1)
    except CacheError as e:
        print(f"[red]Cache error: {e}[/red]")
        raise typer.Exit(1)
    except YearbookError as e:
        print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        print("\n[yellow]Collection cancelled by user[/yellow]")
        raise typer.Exit(130)


def _open_cache(no_cache: bool) -> CommitCache:
    if no_cache:
        return NoOpCache()
    try:
        return FileCommitCache(Config().get_cache_dir())
    except CacheError as e:
        print(f"[red]Cache error: {e}[/red]")
        print(
            "[yellow]Choose another directory with [bold]git-yearbook cache-dir[/bold] "
            "or pass --no-cache[/yellow]"
        )
        raise typer.Exit(1)


def _print_commit_summary(scope: FetchScope, commits: list[CommitRecord]) -> None:
    """Print a nicely formatted summary to the console."""
    summary_text = (
        f"[bold cyan]Collection Complete![/bold cyan]\n\n"
        f"[white]Owner:[/white] [green]{scope.org_or_user}[/green]\n"
        f"[white]Period:[/white] [blue]{scope.from_date} to {scope.to_date}[/blue]\n"
        f"[white]Author:[/white] [magenta]{scope.author_filter or 'all authors'}[/magenta]\n"
        f"[white]Commits:[/white] [yellow]{len(commits)}[/yellow]"
    )
    console.print(Panel.fit(summary_text, title="Commit History"))

    if not commits:
        return

    table = Table(
        title="Commits per Repository", show_header=True, header_style="bold magenta"
    )
    table.add_column("Repository", style="cyan", no_wrap=True)
    table.add_column("Commits", style="green", justify="right")

    for repository, count in Counter(c.repository for c in commits).most_common():
        table.add_row(repository, str(count))

    console.print(table)


@app.command()
def version() -> None:
    """Show the version and exit."""
    from git_yearbook import __version__

    print(f"git-yearbook {__version__}")


@app.command()
def commits(
    login: str = typer.Argument(..., help="GitHub organization or user login"),
    from_date: datetime | None = typer.Option(
        None, "--from", formats=["%Y-%m-%d"], help="First day of the period"
    ),
    to_date: datetime | None = typer.Option(
        None, "--to", formats=["%Y-%m-%d"], help="Last day of the period"
    ),
    year: int | None = typer.Option(
        None, "--year", "-y", help="Fiscal year to collect (alternative to --from/--to)"
    ),
    start_month: int = typer.Option(
        1, "--start-month", help="First month of the fiscal year (1-12)"
    ),
    author: str | None = typer.Option(
        None, "--author", "-a", help="Only include commits by this login"
    ),
    token: str | None = typer.Option(
        None,
        "--token",
        "-t",
        help="GitHub Personal Access Token (or set GITHUB_TOKEN env var)",
        envvar="GITHUB_TOKEN",
    ),
    transport: str = typer.Option(
        "http", "--transport", help="How to reach GitHub: 'http' (token) or 'gh' (GitHub CLI)"
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write commits as JSON instead of printing a summary"
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the commit cache"),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Stop requesting new pages after this many seconds"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Collect all default-branch commits of LOGIN for a period."""
    _configure_logging(verbose)

    if transport not in TRANSPORTS:
        raise typer.BadParameter(f"--transport must be one of: {', '.join(TRANSPORTS)}")

    scope = _resolve_scope(login, from_date, to_date, year, start_month, author)
    cache = _open_cache(no_cache)
    selected_transport = _build_transport(transport, token)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=err_console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"Fetching commits for {scope.scope_id}", total=None)

        def progress_callback(event: ProgressEvent) -> None:
            progress.update(task, description=event.message)
            if event.event_type == ProgressEventType.SKIPPED:
                progress.console.print(f"[dim]{event.message}[/dim]")

        engine = CommitRetrievalEngine(
            selected_transport, cache=cache, progress_callback=progress_callback
        )
        deadline = deadline_in(timeout) if timeout is not None else None

        result = _run_or_exit(_fetch(engine, selected_transport, scope, deadline))

    if output:
        document = CacheEntry.build(CacheKey.from_scope(scope), result).to_json()
        output.write_text(document, encoding="utf-8")
        print(f"[green]✓ {len(result)} commits saved to {output}[/green]")
    else:
        _print_commit_summary(scope, result)


@app.command()
def activity(
    logins: list[str] = typer.Argument(
        ..., help="One or more organization or user logins, e.g. a department's organizations"
    ),
    from_date: datetime | None = typer.Option(
        None, "--from", formats=["%Y-%m-%d"], help="First day of the period"
    ),
    to_date: datetime | None = typer.Option(
        None, "--to", formats=["%Y-%m-%d"], help="Last day of the period"
    ),
    year: int | None = typer.Option(
        None, "--year", "-y", help="Fiscal year to count (alternative to --from/--to)"
    ),
    start_month: int = typer.Option(
        1, "--start-month", help="First month of the fiscal year (1-12)"
    ),
    author: str | None = typer.Option(
        None, "--author", "-a", help="Only count commits by this login"
    ),
    token: str | None = typer.Option(
        None,
        "--token",
        "-t",
        help="GitHub Personal Access Token (or set GITHUB_TOKEN env var)",
        envvar="GITHUB_TOKEN",
    ),
    transport: str = typer.Option(
        "http", "--transport", help="How to reach GitHub: 'http' (token) or 'gh' (GitHub CLI)"
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Stop requesting new pages after this many seconds"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Count commits, pull requests and issues of LOGINS for a period."""
    _configure_logging(verbose)

    if transport not in TRANSPORTS:
        raise typer.BadParameter(f"--transport must be one of: {', '.join(TRANSPORTS)}")

    scopes = [
        _resolve_scope(login, from_date, to_date, year, start_month, author)
        for login in logins
    ]
    selected_transport = _build_transport(transport, token)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=err_console,
        transient=True,
    ) as progress:
        task = progress.add_task("Counting activity", total=None)

        def progress_callback(event: ProgressEvent) -> None:
            progress.update(task, description=event.message)

        engine = CommitRetrievalEngine(selected_transport, progress_callback=progress_callback)
        deadline = deadline_in(timeout) if timeout is not None else None

        results = _run_or_exit(_fetch_activity(engine, selected_transport, scopes, deadline))

    table = Table(
        title=f"Activity {scopes[0].from_date} to {scopes[0].to_date}",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Owner", style="cyan", no_wrap=True)
    table.add_column("Commits", style="green", justify="right")
    table.add_column("Pull Requests", style="green", justify="right")
    table.add_column("Issues", style="green", justify="right")

    rows = [(scope.org_or_user, result) for scope, result in zip(scopes, results)]
    if len(rows) > 1:
        rows.append(("Total", GitHubActivity.total(results)))
    for owner, counts in rows:
        table.add_row(
            owner, str(counts.commits), str(counts.pull_requests), str(counts.issues)
        )

    console.print(table)


@app.command("cache-clear")
def cache_clear() -> None:
    """Remove every cached commit list."""
    try:
        cache = FileCommitCache(Config().get_cache_dir())
        removed = cache.clear()
    except CacheError as e:
        print(f"[red]Cache error: {e}[/red]")
        raise typer.Exit(1)
    print(f"[green]✓[/green] Removed {removed} cached commit lists from {cache.cache_dir}")


@app.command("cache-dir")
def cache_dir(
    path: Path | None = typer.Argument(
        None, help="New cache directory; omit to show the current one"
    ),
) -> None:
    """Show or change where cached commit lists are stored."""
    config = Config()

    if path is None:
        print(f"Cache directory: [cyan]{config.get_cache_dir()}[/cyan]")
        return

    path = path.expanduser().resolve()
    try:
        FileCommitCache(path)
    except CacheError as e:
        print(f"[red]Cache error: {e}[/red]")
        raise typer.Exit(1)

    config.set_cache_dir(path)
    print(f"[green]✓[/green] Cache directory set to {path}")


@app.command()
def auth() -> None:
    """Manage GitHub authentication (interactive setup)."""
    config = Config()

    print("[bold cyan]GitHub Authentication Setup[/bold cyan]")
    print()
    print("The http transport needs a GitHub Personal Access Token.")
    print("You can create one at: [link]https://github.com/settings/tokens[/link]")
    print()
    print("[dim]Required scopes: read:org and repo (for private repositories)[/dim]")
    print()

    if config.get_token():
        print("[green]✓[/green] You already have a token stored locally")

        if not Confirm.ask("Would you like to replace it with a new token?"):
            return

    token = Prompt.ask("[cyan]Enter your GitHub Personal Access Token", password=True)

    if not token:
        print("[red]No token provided[/red]")
        return

    config.set_token(token)
    print("[green]✓[/green] Authentication setup complete!")


@app.command()
def auth_status() -> None:
    """Show current authentication status."""
    info = Config().get_config_info()

    table = Table(title="Authentication Status")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Config File", info["config_file"])
    table.add_row("GitHub Token", "✓ Yes" if info["has_token"] else "✗ No")
    table.add_row("Cache Directory", info["cache_dir"])

    if info["config_exists"]:
        table.add_row("File Permissions", info["config_file_permissions"] or "unknown")

    print(table)

    if not info["has_token"]:
        print()
        print(
            "[yellow]No GitHub token found. Run [bold]git-yearbook auth[/bold] to set up authentication.[/yellow]"
        )


@app.command()
def auth_remove() -> None:
    """Remove stored authentication token."""
    config = Config()

    if not config.get_token():
        print("[yellow]No token is currently stored[/yellow]")
        return

    if Confirm.ask("[red]Are you sure you want to remove the stored token?[/red]"):
        config.remove_token()
    else:
        print("Token removal cancelled")


if __name__ == "__main__":
    app()
