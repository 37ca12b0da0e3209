"""
Data models for storage layer.

Defines session records and sync ledger entries.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from claude_tracker.core.token_counter import TokenUsage


class DayState(Enum):
    """Sync progress of one work day, derived from persisted ledger rows."""
    UNSYNCED = "unsynced"  # No entries posted yet
    PARTIAL = "partial"    # Some entries posted, day not marked complete
    COMPLETE = "complete"  # Every entry posted and day marker written


@dataclass(frozen=True)
class Session:
    """Snapshot of one assembled session.
    
    Sessions are re-derived from their source log on every scan and stored
    by replacing the whole row keyed by source_path. Fields are never
    mutated in place.
    """
    source_path: str
    project: str
    start: datetime
    end: datetime
    duration_seconds: int
    usage: TokenUsage = field(default_factory=TokenUsage)
    
    def __post_init__(self):
        """Validate the active duration fits inside the wall-clock span."""
        if self.end < self.start:
            raise ValueError("end must not be before start")
        if self.duration_seconds < 0:
            raise ValueError("duration_seconds cannot be negative")
        if self.duration_seconds > (self.end - self.start).total_seconds():
            raise ValueError("duration_seconds cannot exceed end - start")


@dataclass(frozen=True)
class SyncedEntry:
    """Audit row for a time entry that was successfully posted."""
    day: date
    workspace_id: str
    project_id: str
    entry_id: str
