"""rugby_sync data sync CLI.

Mirrors the api-sports.io rugby API into a local Parquet store, one entity
type at a time or all at once, and reports how complete the store is.

Usage:
    python sync.py credentials set <api-key>
    python sync.py countries
    python sync.py leagues --force-refresh
    python sync.py games --league 16 --start-year 2022 --end-year 2024
    python sync.py auto
    python sync.py stats --watch
    python sync.py --data-dir data/ clear --yes
"""

from __future__ import annotations

import contextlib
import time
from collections.abc import Callable, Iterator
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.table import Table

from rugby_sync.config import SyncSettings, build_connector
from rugby_sync.ingest import (
    CompletionStats,
    ConnectorError,
    ParquetRepository,
    StorageError,
    SyncEngine,
    SyncResult,
    SyncStatus,
    compute_completion_stats,
)
from rugby_sync.utils.credentials import ChainedCredentialProvider, default_credential_provider
from rugby_sync.utils.logger import VERBOSE, configure_logging, get_logger

app = typer.Typer(help="rugby_sync data sync command")
credentials_app = typer.Typer(help="Manage the stored api-sports.io API key")
app.add_typer(credentials_app, name="credentials")

console = Console()
err_console = Console(stderr=True)
log = get_logger("cli")

_STATUS_STYLE = {
    SyncStatus.STORED: "green",
    SyncStatus.SKIPPED: "yellow",
    SyncStatus.FAILED: "red",
}


def _fail(message: str) -> typer.Exit:
    err_console.print(f"[red]Error: {escape(message)}[/red]")
    return typer.Exit(code=1)


@app.callback()
def _callback(
    ctx: typer.Context,
    data_dir: Path | None = typer.Option(None, "--data-dir", help="Local Parquet data directory"),
    log_level: str | None = typer.Option(None, "--log-level", help="QUIET | NORMAL | VERBOSE | DEBUG"),
) -> None:
    """rugby_sync CLI: incremental local cache of api-sports.io rugby data."""
    try:
        configure_logging(log_level)
        ctx.obj = SyncSettings.from_env(data_dir=data_dir)
    except (ValueError, ValidationError) as exc:
        raise _fail(str(exc)) from exc


def _repository(settings: SyncSettings) -> ParquetRepository:
    return ParquetRepository(base_path=settings.data_dir)


@contextlib.contextmanager
def _engine(ctx: typer.Context) -> Iterator[SyncEngine]:
    """Yield an engine over the configured store; close the connector afterwards."""
    settings: SyncSettings = ctx.obj
    repo = _repository(settings)
    log.log(VERBOSE, "store %s, api %s", settings.data_dir, settings.base_url)
    try:
        connector = build_connector(settings, default_credential_provider())
    except ConnectorError as exc:
        raise _fail(str(exc)) from exc
    with contextlib.closing(connector):
        yield SyncEngine(repo, connector, media_host=settings.media_host, cdn_host=settings.cdn_host)


def _report(results: list[SyncResult], elapsed: float) -> None:
    """Print each result and exit 1 when one of them was a fatal storage failure."""
    for result in results:
        style = _STATUS_STYLE[result.status]
        console.print(f"[{style}]{escape(result.summary())}[/{style}]")
    console.print(f"Done in {elapsed:.1f}s")
    fatal = next((r for r in results if r.fatal), None)
    if fatal is not None:
        log.error("stopped after a storage failure in %s", fatal.entity)
        raise _fail(fatal.error or "storage failure")


def _run(ctx: typer.Context, operation: Callable[[SyncEngine], list[SyncResult]]) -> None:
    start = time.monotonic()
    with _engine(ctx) as engine:
        results = operation(engine)
    _report(results, time.monotonic() - start)


# ---------------------------------------------------------------------------
# Sync commands
# ---------------------------------------------------------------------------

_FORCE_REFRESH = typer.Option(False, "--force-refresh", help="Fetch even when records are already stored")


@app.command()
def countries(ctx: typer.Context, force_refresh: bool = _FORCE_REFRESH) -> None:
    """Fetch and store countries."""
    _run(ctx, lambda engine: [engine.sync_countries(force_refresh=force_refresh)])


@app.command()
def seasons(ctx: typer.Context, force_refresh: bool = _FORCE_REFRESH) -> None:
    """Fetch and store season years."""
    _run(ctx, lambda engine: [engine.sync_seasons(force_refresh=force_refresh)])


@app.command()
def leagues(ctx: typer.Context, force_refresh: bool = _FORCE_REFRESH) -> None:
    """Fetch and store leagues."""
    _run(ctx, lambda engine: [engine.sync_leagues(force_refresh=force_refresh)])


@app.command()
def games(
    ctx: typer.Context,
    league: int = typer.Option(..., "--league", help="League id"),
    start_year: int = typer.Option(..., "--start-year", help="First season year (inclusive)"),
    end_year: int | None = typer.Option(None, "--end-year", help="Last season year (default: --start-year)"),
) -> None:
    """Fetch the games (and their teams) of one league over a range of seasons."""
    last = start_year if end_year is None else end_year
    _run(ctx, lambda engine: [engine.sync_games_for_league_and_years(league, start_year, last)])


@app.command("all-games")
def all_games(ctx: typer.Context) -> None:
    """Fetch games for every stored league across every stored season."""
    _run(ctx, lambda engine: [engine.sync_all_games_and_teams()])


@app.command()
def auto(ctx: typer.Context) -> None:
    """Fetch countries, seasons, leagues and then all games, in that order."""
    _run(ctx, lambda engine: engine.auto_fetch_all_incomplete())


# ---------------------------------------------------------------------------
# Store commands
# ---------------------------------------------------------------------------


def _stats_table(stats: CompletionStats) -> Table:
    table = Table(title="Data completion")
    table.add_column("Entity")
    table.add_column("Complete", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("%", justify="right")
    for label, completion in stats.rows():
        table.add_row(label, str(completion.complete), str(completion.total), f"{completion.percent:.1f}")
    return table


@app.command()
def stats(
    ctx: typer.Context,
    watch: bool = typer.Option(False, "--watch", help="Keep refreshing until interrupted"),
    interval: float = typer.Option(5.0, "--interval", min=0.1, help="Refresh interval in seconds (with --watch)"),
) -> None:
    """Show how many stored records of each type are complete."""
    repo = _repository(ctx.obj)
    try:
        if not watch:
            console.print(_stats_table(compute_completion_stats(repo)))
            return
        with Live(_stats_table(compute_completion_stats(repo)), console=console) as live:
            while True:
                time.sleep(interval)
                live.update(_stats_table(compute_completion_stats(repo)))
    except StorageError as exc:
        raise _fail(str(exc)) from exc
    except KeyboardInterrupt:
        return


@app.command()
def clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete every stored record."""
    settings: SyncSettings = ctx.obj
    if not yes:
        typer.confirm(f"Delete all data in {settings.data_dir}?", abort=True)
    try:
        _repository(settings).clear_all()
    except StorageError as exc:
        raise _fail(str(exc)) from exc
    console.print("[green]All data cleared.[/green]")


@app.command()
def status(ctx: typer.Context) -> None:
    """Show the API account plan and today's request quota."""
    settings: SyncSettings = ctx.obj
    try:
        connector = build_connector(settings, default_credential_provider())
    except ConnectorError as exc:
        raise _fail(str(exc)) from exc
    with contextlib.closing(connector):
        result = connector.fetch_status()
    if result.error is not None or not result.records:
        raise _fail(result.error or "empty status response")

    account = result.records[0]
    table = Table(title="api-sports.io account")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Email", account.email or "-")
    table.add_row("Plan", account.plan or "-")
    table.add_row("Active", "yes" if account.active else "no")
    table.add_row("Subscription end", str(account.subscription_end or "-"))
    used = "-" if account.requests_current is None else str(account.requests_current)
    limit = "-" if account.requests_limit_day is None else str(account.requests_limit_day)
    table.add_row("Requests today", f"{used} / {limit}")
    console.print(table)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@credentials_app.command("set")
def credentials_set(api_key: str = typer.Argument(..., help="api-sports.io API key")) -> None:
    """Store the API key in the per-user key file."""
    try:
        default_credential_provider().set(api_key)
    except (ValueError, OSError) as exc:
        raise _fail(str(exc)) from exc
    console.print("[green]API key saved.[/green]")


@credentials_app.command("clear")
def credentials_clear() -> None:
    """Remove the API key from the per-user key file."""
    try:
        default_credential_provider().clear()
    except OSError as exc:
        raise _fail(str(exc)) from exc
    console.print("API key removed.")


@credentials_app.command("show")
def credentials_show() -> None:
    """Report whether an API key is available and where it comes from."""
    provider: ChainedCredentialProvider = default_credential_provider()
    key = provider.get()
    if key is None:
        console.print("[yellow]No API key configured.[/yellow]")
        raise typer.Exit(code=1)
    masked = f"{key[:4]}{'*' * max(len(key) - 4, 0)}"
    console.print(f"API key {masked} (from: {', '.join(provider.sources())})")


if __name__ == "__main__":
    app()
