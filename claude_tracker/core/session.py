"""
Session assembly from ordered transcript events.

Turns the user/assistant messages of one session log into a single
Session record with an idle-aware active duration and summed token usage,
and feeds that record into the ledger.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Sequence

from .token_counter import TokenUsage
from claude_tracker.config.loader import TrackerConfig
from claude_tracker.storage.models import Session
from claude_tracker.storage.repository import LedgerRepository

DEFAULT_IDLE_THRESHOLD = timedelta(minutes=15)


class Role(Enum):
    """Author of a transcript message."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Event:
    """One relevant message from a session log.

    Usage is only meaningful on assistant messages. cwd is the working
    directory recorded on the message, when present.
    """
    timestamp: datetime
    role: Role
    usage: Optional[TokenUsage] = None
    cwd: Optional[str] = None


def assemble_session(
    events: Sequence[Event],
    source_path: str,
    project: Optional[str] = None,
    idle_threshold: timedelta = DEFAULT_IDLE_THRESHOLD
) -> Optional[Session]:
    """Assemble chronologically ordered events into one session.

    Gaps between consecutive events shorter than idle_threshold count as
    active time; longer gaps are excluded from the duration but do not
    split the session. start and end stay the first and last timestamps.

    Args:
        events: Events of one session log, oldest first
        source_path: Stable identity of the session (its log's relative path)
        project: Bucket key; taken from the first event with a cwd when None
        idle_threshold: Smallest gap treated as idle

    Returns:
        The assembled Session, or None for an empty sequence
    """
    if not events:
        return None

    active = timedelta(0)
    for previous, current in zip(events, events[1:]):
        gap = current.timestamp - previous.timestamp
        if gap < idle_threshold:
            active += gap

    usage = TokenUsage()
    for event in events:
        if event.role == Role.ASSISTANT and event.usage is not None:
            usage = usage + event.usage

    if project is None:
        project = next((e.cwd for e in events if e.cwd), "")

    return Session(
        source_path=source_path,
        project=project,
        start=events[0].timestamp,
        end=events[-1].timestamp,
        duration_seconds=int(active.total_seconds()),
        usage=usage
    )


def ingest_events(
    repository: LedgerRepository,
    config: TrackerConfig,
    events: Sequence[Event],
    source_path: str,
    project: Optional[str] = None
) -> Optional[Session]:
    """Assemble one source's events and store the result in the ledger.

    Meant to be called repeatedly as a session log grows: each call stores
    the latest snapshot, replacing the previous row for the same source.
    An empty sequence leaves the ledger untouched.

    Returns:
        The stored Session, or None if there were no events
    """
    session = assemble_session(
        events,
        source_path,
        project=project,
        idle_threshold=config.idle_threshold
    )
    if session is None:
        return None
    repository.upsert_session(session)
    return session
