"""
Work-day allocation.

Spreads one configured work day across Clockify projects in proportion
to the active time tracked for each project that day.

Allocation rules:
1. Sessions are grouped by exact project path; unmapped paths go to "Other"
2. Groups are sorted by project id so output is deterministic
3. Every group but the last gets floor(work_day * share) seconds
4. The last group ends exactly at the work-day end, absorbing the remainder
5. Groups with no tracked time, or whose floored share is 0 seconds, get
   no allocation
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Optional, Tuple

from claude_tracker.config.loader import TrackerConfig
from claude_tracker.storage.models import Session


class UnmappedProjectError(Exception):
    """Raised when sessions have no mapped project and no "Other" project is configured."""
    def __init__(self, projects: List[str]):
        super().__init__(
            "No other_project_id configured for unmapped projects: "
            + ", ".join(projects)
        )
        self.projects = projects


@dataclass(frozen=True)
class Allocation:
    """A contiguous slice of the work day assigned to one project."""
    project_id: str
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


def work_day_boundaries(
    start: time,
    end: time,
    day: date,
    tz: Optional[tzinfo] = None
) -> Tuple[datetime, datetime]:
    """Convert a local work day on a given date into UTC boundaries.

    Args:
        start: Local start of the work day
        end: Local end of the work day
        day: Calendar date
        tz: Timezone of the work day (system local time when None)

    Returns:
        (start, end) as UTC datetimes

    Raises:
        ValueError: If end is not after start
    """
    if tz is None:
        local_start = datetime.combine(day, start).astimezone()
        local_end = datetime.combine(day, end).astimezone()
    else:
        local_start = datetime.combine(day, start, tzinfo=tz)
        local_end = datetime.combine(day, end, tzinfo=tz)

    start_utc = local_start.astimezone(timezone.utc)
    end_utc = local_end.astimezone(timezone.utc)
    if end_utc <= start_utc:
        raise ValueError(f"Work day on {day} ends before it starts")
    return start_utc, end_utc


def _group_by_project(
    sessions: Iterable[Session],
    project_mapping: Dict[str, str],
    other_project_id: Optional[str]
) -> Tuple[Dict[str, int], Dict[str, int]]:
    """Sum tracked seconds and session counts per project id."""
    seconds: Dict[str, int] = {}
    counts: Dict[str, int] = {}
    unmapped: List[str] = []

    for session in sessions:
        project_id = project_mapping.get(session.project)
        if project_id is None:
            if other_project_id is None:
                if session.project not in unmapped:
                    unmapped.append(session.project)
                continue
            project_id = other_project_id
        seconds[project_id] = seconds.get(project_id, 0) + session.duration_seconds
        counts[project_id] = counts.get(project_id, 0) + 1

    if unmapped:
        raise UnmappedProjectError(sorted(unmapped))
    return seconds, counts


def compute_allocations(
    sessions: List[Session],
    project_mapping: Dict[str, str],
    other_project_id: Optional[str],
    work_day_start: datetime,
    work_day_end: datetime
) -> List[Allocation]:
    """Allocate the work day across projects in proportion to tracked time.

    Pure and deterministic: identical inputs always produce identical
    allocations, which is what lets a resumed sync skip entries that were
    already posted.

    Args:
        sessions: Sessions touching the day
        project_mapping: Exact project path -> Clockify project id
        other_project_id: Project id for unmapped paths, or None
        work_day_start: UTC start of the work day
        work_day_end: UTC end of the work day

    Returns:
        Contiguous allocations sorted by project id, covering the whole
        work day, or an empty list when there are no sessions or only
        zero-length unmapped ones

    Raises:
        UnmappedProjectError: If a path is unmapped and other_project_id is None
    """
    if not sessions:
        return []

    seconds, counts = _group_by_project(sessions, project_mapping, other_project_id)

    total = sum(seconds.values())
    if total > 0:
        # Groups with no tracked time get no slice of the day
        weights = {pid: secs for pid, secs in seconds.items() if secs > 0}
    else:
        # Nothing but zero-length sessions: mapped groups split by session count
        weights = {pid: n for pid, n in counts.items() if pid != other_project_id}
        total = sum(weights.values())
        if not weights:
            return []

    work_day_seconds = int((work_day_end - work_day_start).total_seconds())
    project_ids = sorted(weights)

    allocations = []
    current_start = work_day_start
    for index, project_id in enumerate(project_ids):
        if index == len(project_ids) - 1:
            end = work_day_end
        else:
            share = work_day_seconds * weights[project_id] // total
            if share == 0:
                continue
            end = current_start + timedelta(seconds=share)
        allocations.append(Allocation(project_id=project_id, start=current_start, end=end))
        current_start = end

    return allocations


def allocate(sessions: List[Session], config: TrackerConfig, day: date) -> List[Allocation]:
    """Allocate one local work day using the tracker configuration.

    Args:
        sessions: Sessions touching the day
        config: Tracker configuration
        day: Calendar date being allocated

    Returns:
        Allocations for the day (empty when there are no sessions)
    """
    if not sessions:
        return []
    start, end = work_day_boundaries(
        config.work_day.start,
        config.work_day.end,
        day,
        config.tzinfo
    )
    return compute_allocations(
        sessions,
        config.project_mapping,
        config.other_project_id,
        start,
        end
    )
