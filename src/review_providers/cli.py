"""
Command-line interface for review-providers.

A small diagnostic CLI: resolve a git remote to its backend, list pull
requests through the adapted provider, and check connectivity.
"""

import asyncio
import logging
from enum import Enum
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import ReviewSettings
from .exceptions import InvalidRemoteError, ReviewProviderError
from .factory import provider_from_remote
from .models import ListPRsParams, PRListResult, PRState, ProviderCapabilities
from .rate_limit import RateLimitTracker
from .retry import call_with_retry
from .urls import parse_git_remote, resolve_base_url

# Create Typer app
app = typer.Typer(
    name="review-providers",
    help="Inspect pull requests on GitHub, GitLab, Bitbucket, Azure DevOps and Gitea",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()
error_console = Console(stderr=True)


class LogLevel(str, Enum):
    """Log level options."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def setup_logging(level: LogLevel, verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    log_level = getattr(logging, level.value.upper())

    if verbose:
        log_level = logging.DEBUG

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_time=False, show_path=False)],
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"review-providers version {__version__}")
        raise typer.Exit


def _print_error(e: ReviewProviderError) -> None:
    error_console.print(f"[red]✗[/red] {e.message}")
    if e.hint:
        error_console.print(f"  [dim]Hint: {e.hint}[/dim]")


@app.callback()
def root(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """Provider abstraction diagnostics."""


@app.command()
def resolve(
    remote: Annotated[str, typer.Argument(help="Git remote URL (SSH or HTTPS)")],
) -> None:
    """
    Show which backend, repository and API base URL a remote resolves to.

    Self-hosted hosts are read from GITHUB_HOSTS, GITLAB_HOSTS and GITEA_HOSTS.
    """
    try:
        settings = ReviewSettings.from_env()
        parsed = parse_git_remote(remote, settings.configured_hosts)
        if parsed is None:
            raise InvalidRemoteError(remote, "unrecognized URL format")
    except ReviewProviderError as e:
        _print_error(e)
        raise typer.Exit(1) from None

    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()
    provider_name = parsed.provider.value if parsed.provider else "[yellow]unknown[/yellow]"
    table.add_row("Provider:", provider_name)
    table.add_row("Host:", parsed.host)
    table.add_row("Owner:", parsed.owner)
    table.add_row("Repository:", parsed.repo)
    if parsed.provider is not None:
        table.add_row(
            "API base URL:",
            resolve_base_url(parsed.provider, remote, settings.configured_hosts),
        )
    console.print(Panel(table, title="Remote", border_style="blue"))

    if parsed.provider is None:
        error_console.print(
            f"[yellow]Host {parsed.host} is not a known provider; "
            "add it to GITHUB_HOSTS, GITLAB_HOSTS or GITEA_HOSTS[/yellow]"
        )
        raise typer.Exit(1)


async def _list_prs(
    remote: str,
    settings: ReviewSettings,
    params: ListPRsParams,
    rate_limits: RateLimitTracker,
) -> PRListResult:
    provider = provider_from_remote(remote, settings, rate_limits=rate_limits)
    try:
        return await call_with_retry(lambda: provider.list_prs(params))
    finally:
        await provider.close()


@app.command()
def prs(
    remote: Annotated[str, typer.Argument(help="Git remote URL (SSH or HTTPS)")],
    state: Annotated[
        PRState,
        typer.Option("-s", "--state", help="Filter by state"),
    ] = PRState.OPEN,
    limit: Annotated[
        int,
        typer.Option("-n", "--limit", min=1, max=100, help="Pull requests per page"),
    ] = 30,
    page: Annotated[
        int,
        typer.Option("--page", min=1, help="Page to fetch"),
    ] = 1,
    log_level: Annotated[
        LogLevel,
        typer.Option("--log-level", help="Logging level"),
    ] = LogLevel.WARNING,
    verbose: Annotated[
        bool,
        typer.Option("-v", "--verbose", help="Enable debug logging"),
    ] = False,
) -> None:
    """
    List pull requests of the repository behind REMOTE.

    Transient failures (network errors, 429, 5xx) are retried with backoff.
    """
    setup_logging(log_level, verbose)

    rate_limits = RateLimitTracker()
    try:
        settings = ReviewSettings.from_env()
        params = ListPRsParams(state=state, per_page=limit, page=page)
        with console.status("Fetching pull requests..."):
            result = asyncio.run(_list_prs(remote, settings, params, rate_limits))
    except ReviewProviderError as e:
        _print_error(e)
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        error_console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130) from None

    _display_prs(result)

    parsed = parse_git_remote(remote, settings.configured_hosts)
    if parsed is not None and parsed.provider is not None:
        snapshot = rate_limits.snapshot(parsed.provider)
        if snapshot is not None and snapshot.remaining is not None:
            limit_text = f"/{snapshot.limit}" if snapshot.limit is not None else ""
            console.print(f"[dim]Rate limit remaining: {snapshot.remaining}{limit_text}[/dim]")


def _display_prs(result: PRListResult) -> None:
    """Display pull requests as a formatted table."""
    if not result.items:
        console.print("[yellow]No pull requests found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Author")
    table.add_column("State")
    table.add_column("Branch")

    state_styles = {
        PRState.OPEN: "green",
        PRState.MERGED: "magenta",
        PRState.CLOSED: "red",
    }
    for pr in result.items:
        style = state_styles.get(pr.state, "white")
        title = f"[dim]Draft:[/dim] {pr.title}" if pr.draft else pr.title
        branch = f"{pr.source_branch} → {pr.target_branch}" if pr.source_branch else ""
        table.add_row(
            str(pr.number),
            title,
            pr.author.login,
            f"[{style}]{pr.state.value}[/{style}]",
            branch,
        )

    console.print(table)
    if result.total_count is not None:
        console.print(f"\nShowing {len(result.items)} of {result.total_count}")


def _display_capabilities(capabilities: ProviderCapabilities) -> None:
    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="bold")
    grid.add_column()
    for name, value in capabilities.model_dump().items():
        label = name.removeprefix("supports_").replace("_", " ")
        if isinstance(value, bool):
            text = "[green]yes[/green]" if value else "[dim]no[/dim]"
        else:
            text = ", ".join(value) or "[dim]none[/dim]"
        grid.add_row(label, text)
    console.print(Panel(grid, title="Capabilities", border_style="green"))


async def _check(remote: str, settings: ReviewSettings) -> ProviderCapabilities:
    provider = provider_from_remote(remote, settings)
    try:
        await provider.list_prs(ListPRsParams(per_page=1))
        return provider.capabilities
    finally:
        await provider.close()


@app.command()
def check(
    remote: Annotated[str, typer.Argument(help="Git remote URL (SSH or HTTPS)")],
    verbose: Annotated[
        bool,
        typer.Option("-v", "--verbose", help="Show detailed status"),
    ] = False,
) -> None:
    """
    Check that the provider behind REMOTE is reachable and the token works.
    """
    setup_logging(LogLevel.INFO, verbose)

    with console.status("Checking provider connection..."):
        try:
            settings = ReviewSettings.from_env()
            capabilities = asyncio.run(_check(remote, settings))
        except ReviewProviderError as e:
            _print_error(e)
            raise typer.Exit(1) from None

    console.print("[green]✓[/green] Provider is reachable")
    console.print("[green]✓[/green] Authentication valid")
    _display_capabilities(capabilities)
    console.print("\n[green]All checks passed![/green]")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
