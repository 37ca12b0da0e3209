"""
Sync orchestration.

Walks every complete weekday from the earliest stored session through
yesterday and posts that day's allocations to the time tracker exactly once.

Per-day state machine:
1. UNSYNCED - no entries recorded for the day
2. PARTIAL - some entries posted and recorded in synced_entries
3. COMPLETE - every entry recorded, day marker written to synced_days

An entry row is written immediately after its post succeeds and the day
marker only after every entry row exists, so a run that stops midway can
be resumed by simply running again.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Iterator, Optional

from .allocation import UnmappedProjectError, compute_allocations, work_day_boundaries
from claude_tracker.config.loader import TrackerConfig
from claude_tracker.storage.repository import LedgerRepository

logger = logging.getLogger(__name__)

# (project_id, start_utc, end_utc, description) -> external entry id
Poster = Callable[[str, datetime, datetime, str], str]


class SyncError(Exception):
    """Raised when a day cannot be synced; carries the day, project and cause."""
    def __init__(self, day: date, project_id: Optional[str], cause: Exception):
        target = f"{day.isoformat()}/{project_id}" if project_id else day.isoformat()
        super().__init__(f"Sync failed for {target}: {cause}")
        self.day = day
        self.project_id = project_id
        self.cause = cause


@dataclass
class SyncSummary:
    """Outcome of a sync run."""
    days_processed: int = 0
    entries_posted: int = 0
    days_skipped: int = 0
    error: Optional[SyncError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def is_weekday(day: date) -> bool:
    """Check if a date falls Monday through Friday."""
    return day.weekday() < 5


def iter_sync_days(first: date, today: date) -> Iterator[date]:
    """Yield weekdays from first through the day before today, ascending."""
    current = first
    while current < today:
        if is_weekday(current):
            yield current
        current += timedelta(days=1)


def sync_day(
    repository: LedgerRepository,
    config: TrackerConfig,
    poster: Poster,
    day: date
) -> Optional[int]:
    """Post the allocations for a single day.

    Args:
        repository: Ledger repository
        config: Tracker configuration
        poster: Callable that creates a time entry and returns its id
        day: Day to sync

    Returns:
        Number of entries posted, or None if the day had no sessions
        and was left unmarked

    Raises:
        SyncError: If the work day cannot be resolved, or allocation or any
            post fails
    """
    try:
        start, end = work_day_boundaries(
            config.work_day.start,
            config.work_day.end,
            day,
            config.tzinfo
        )
    except ValueError as e:
        raise SyncError(day, None, e) from e

    sessions = repository.query_range(start, end)
    if not sessions:
        logger.debug("%s - no sessions, leaving unsynced", day)
        return None

    try:
        allocations = compute_allocations(
            sessions,
            config.project_mapping,
            config.other_project_id,
            start,
            end
        )
    except UnmappedProjectError as e:
        raise SyncError(day, None, e) from e

    posted = 0
    for allocation in allocations:
        if repository.is_entry_synced(day, config.workspace_id, allocation.project_id):
            logger.info("%s - %s already posted, skipping", day, allocation.project_id)
            continue

        try:
            entry_id = poster(
                allocation.project_id,
                allocation.start,
                allocation.end,
                config.description
            )
        except Exception as e:
            raise SyncError(day, allocation.project_id, e) from e

        repository.mark_entry_synced(day, config.workspace_id, allocation.project_id, entry_id)
        posted += 1
        logger.info(
            "%s - posted %s (%s to %s) as %s",
            day, allocation.project_id, allocation.start, allocation.end, entry_id
        )

    repository.mark_day_synced(day, config.workspace_id)
    return posted


def run_sync(
    repository: LedgerRepository,
    config: TrackerConfig,
    poster: Poster,
    today: Optional[date] = None
) -> SyncSummary:
    """Sync every unsynced weekday from the earliest session through yesterday.

    Today is never synced because its work day is not over. A failing post
    stops the run immediately; nothing is retried; the next run resumes
    from the entries already recorded.

    Args:
        repository: Ledger repository
        config: Tracker configuration
        poster: Callable that creates a time entry and returns its id
        today: Local date treated as today (defaults to the current date)

    Returns:
        SyncSummary with counts and the first error, if any

    Raises:
        sqlite3.Error: If the ledger cannot be read or written
    """
    summary = SyncSummary()
    first = repository.earliest_session_date()
    if first is None:
        logger.info("No sessions found. Nothing to sync.")
        return summary

    if today is None:
        today = datetime.now(config.tzinfo).date()

    if first >= today:
        logger.info("No complete workdays to sync.")
        return summary

    logger.info("Syncing workdays from %s to %s", first, today - timedelta(days=1))

    for day in iter_sync_days(first, today):
        if repository.is_day_synced(day, config.workspace_id):
            summary.days_skipped += 1
            continue

        try:
            posted = sync_day(repository, config, poster, day)
        except SyncError as e:
            logger.error("%s", e)
            summary.error = e
            break

        if posted is None:
            continue
        summary.days_processed += 1
        summary.entries_posted += posted

    logger.info(
        "Synced %d days, %d total entries",
        summary.days_processed, summary.entries_posted
    )
    return summary
