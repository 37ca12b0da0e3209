"""
CLI interface for Claude Tracker.

Wires configuration, the ledger and the Clockify client together.
"""

import logging
import sys
from datetime import date, datetime, tzinfo
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from claude_tracker.config.loader import TrackerConfig, load_tracker_config
from claude_tracker.core.allocation import work_day_boundaries
from claude_tracker.core.sync import SyncSummary, run_sync
from claude_tracker.sdk.clockify_client import ClockifyClient
from claude_tracker.storage.repository import LedgerRepository, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

DEFAULT_CONFIG_PATH = "claude_tracker.yaml"

ConfigOption = typer.Option(
    DEFAULT_CONFIG_PATH,
    "--config",
    "-c",
    help="Path to the tracker YAML configuration"
)
DayOption = typer.Option(
    None,
    "--day",
    "-d",
    help="Day to inspect (YYYY-MM-DD), defaults to today"
)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _parse_day(value: Optional[str], tz: Optional[tzinfo] = None) -> date:
    if value is None:
        return datetime.now(tz).date()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Invalid date {value!r}, expected YYYY-MM-DD")


def _open_repository(config: TrackerConfig) -> LedgerRepository:
    initialize_schema(config.database)
    return LedgerRepository(config.database, tz=config.tzinfo)


def _format_duration(seconds: int) -> str:
    """Format seconds as e.g. 1h 05m."""
    hours, rest = divmod(seconds, 3600)
    return f"{hours}h {rest // 60:02d}m"


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
):
    """Claude Tracker CLI."""
    _setup_logging(verbose)
    if ctx.invoked_subcommand is None:
        console.print("Claude Tracker - Use --help to see available commands")


@app.command()
def init(
    config_path: str = ConfigOption,
    database: Optional[str] = typer.Option(
        None,
        "--database",
        help="SQLite database path, overrides the configured one"
    )
):
    """Initialize the tracker database named in the configuration."""
    try:
        if database is None:
            database = load_tracker_config(config_path).database
        initialize_schema(database)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def sync(config_path: str = ConfigOption):
    """
    Post allocations for every unsynced weekday up to yesterday.

    Safe to re-run: entries already posted are never posted twice, and a
    run that stopped on an error resumes where it left off.
    """
    try:
        config = load_tracker_config(config_path)
        repository = _open_repository(config)
        client = ClockifyClient(config.workspace_id)
        try:
            summary = run_sync(repository, config, client.post_time_entry)
        finally:
            client.close()
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    _display_summary(summary)
    sys.exit(EXIT_CODE_PASS if summary.ok else EXIT_CODE_FAIL)


def _display_summary(summary: SyncSummary) -> None:
    console.print("\n[bold]Sync Result[/bold]")
    console.print("-" * 40)
    console.print(f"Days synced: {summary.days_processed}")
    console.print(f"Entries posted: {summary.entries_posted}")
    console.print(f"Days already synced: {summary.days_skipped}")
    if summary.error is not None:
        console.print(f"\n[red]Stopped:[/] {summary.error}")
        console.print("Re-run sync to resume; posted entries will not be duplicated.")


@app.command()
def sessions(config_path: str = ConfigOption, day: Optional[str] = DayOption):
    """Show sessions overlapping a day's work-day window."""
    try:
        config = load_tracker_config(config_path)
        target = _parse_day(day, config.tzinfo)
        repository = _open_repository(config)
        start, end = work_day_boundaries(
            config.work_day.start, config.work_day.end, target, config.tzinfo
        )
        found = repository.query_range(start, end)
    except typer.BadParameter:
        raise
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if not found:
        console.print(f"No sessions for {target}.")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title=f"Sessions for {target}")
    table.add_column("Project")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Active", justify="right")
    table.add_column("Tokens", justify="right")

    total = 0
    for session in found:
        total += session.duration_seconds
        table.add_row(
            session.project or "(unknown)",
            session.start.astimezone(config.tzinfo).strftime("%H:%M"),
            session.end.astimezone(config.tzinfo).strftime("%H:%M"),
            _format_duration(session.duration_seconds),
            f"{session.usage.total_tokens:,}",
        )
    console.print(table)
    console.print(f"Total: {_format_duration(total)} across {len(found)} session(s)")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def status(config_path: str = ConfigOption, day: Optional[str] = DayOption):
    """Show the sync state of a day and the entries recorded for it."""
    try:
        config = load_tracker_config(config_path)
        target = _parse_day(day, config.tzinfo)
        repository = _open_repository(config)
        state = repository.day_state(target, config.workspace_id)
        entries = repository.synced_entries(target, config.workspace_id)
    except typer.BadParameter:
        raise
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"{target}: [bold]{state.value}[/bold]")
    for entry in entries:
        console.print(f"  {entry.project_id} -> {entry.entry_id}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def projects(config_path: str = ConfigOption):
    """List the projects of the configured Clockify workspace."""
    try:
        config = load_tracker_config(config_path)
        client = ClockifyClient(config.workspace_id)
        try:
            found = client.list_projects()
        finally:
            client.close()
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title="Clockify projects")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Archived")
    for project in found:
        table.add_row(project.id, project.name, "yes" if project.archived else "")
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


if __name__ == "__main__":
    app()
