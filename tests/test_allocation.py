"""
Unit tests for work-day allocation.

All tests call compute_allocations with UTC boundaries so results do not
depend on the machine's timezone.
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from claude_tracker.config.loader import TrackerConfig, WorkDayConfig
from claude_tracker.core.allocation import (
    Allocation,
    UnmappedProjectError,
    allocate,
    compute_allocations,
    work_day_boundaries
)
from claude_tracker.storage.models import Session

# Work day: 09:00-17:00 UTC on 2026-02-04 (8h = 28800s)
START = datetime(2026, 2, 4, 9, 0, tzinfo=timezone.utc)
END = datetime(2026, 2, 4, 17, 0, tzinfo=timezone.utc)
WORK_DAY_SECS = 28800

_counter = iter(range(10_000))


def _session(project: str, duration_secs: int) -> Session:
    start = datetime(2026, 2, 4, 8, 0, tzinfo=timezone.utc)
    return Session(
        source_path=f"proj/session-{next(_counter)}.jsonl",
        project=project,
        start=start,
        end=start + timedelta(seconds=duration_secs),
        duration_seconds=duration_secs
    )


def _total(allocations) -> int:
    return sum(int(a.duration.total_seconds()) for a in allocations)


def _assert_contiguous(allocations):
    assert allocations[0].start == START
    assert allocations[-1].end == END
    for previous, current in zip(allocations, allocations[1:]):
        assert current.start == previous.end


class TestComputeAllocations:
    """Test proportional allocation of the work day."""

    def test_zero_sessions_returns_empty(self):
        """No sessions means no allocations."""
        result = compute_allocations([], {"/work/foo": "proj-foo"}, "proj-other", START, END)
        assert result == []

    def test_single_mapped_project_fills_entire_work_day(self):
        """One project gets the whole work day."""
        result = compute_allocations(
            [_session("/work/myapp", 3600)],
            {"/work/myapp": "proj-myapp"},
            "proj-other",
            START,
            END
        )

        assert result == [Allocation(project_id="proj-myapp", start=START, end=END)]

    def test_two_projects_split_proportionally(self):
        """3h + 1h tracked gives 6h + 2h of an 8h day."""
        result = compute_allocations(
            [_session("/work/alpha", 10800), _session("/work/beta", 3600)],
            {"/work/alpha": "proj-a", "/work/beta": "proj-b"},
            "proj-other",
            START,
            END
        )

        assert [a.project_id for a in result] == ["proj-a", "proj-b"]
        assert result[0].duration == timedelta(hours=6)
        assert result[1].duration == timedelta(hours=2)
        _assert_contiguous(result)

    def test_three_to_one_to_one_split(self):
        """ProjectX 3h, ProjectY 1h, unmapped 1h over 09:00-17:00."""
        result = compute_allocations(
            [
                _session("/work/x", 3 * 3600),
                _session("/work/y", 3600),
                _session("/work/unmapped", 3600),
            ],
            {"/work/x": "project-x", "/work/y": "project-y"},
            "zz-other",
            START,
            END
        )

        assert [(a.project_id, a.start, a.end) for a in result] == [
            ("project-x", START, START + timedelta(hours=4, minutes=48)),
            ("project-y", datetime(2026, 2, 4, 13, 48, tzinfo=timezone.utc),
             datetime(2026, 2, 4, 15, 24, tzinfo=timezone.utc)),
            ("zz-other", datetime(2026, 2, 4, 15, 24, tzinfo=timezone.utc), END),
        ]

    def test_sessions_of_same_project_are_summed(self):
        """Multiple sessions for one path form one bucket."""
        result = compute_allocations(
            [_session("/work/a", 1800), _session("/work/a", 1800), _session("/work/b", 3600)],
            {"/work/a": "proj-a", "/work/b": "proj-b"},
            None,
            START,
            END
        )

        assert [a.duration for a in result] == [timedelta(hours=4), timedelta(hours=4)]

    def test_paths_mapped_to_same_project_share_a_bucket(self):
        """Two paths with the same project id produce one allocation."""
        result = compute_allocations(
            [_session("/work/a", 1800), _session("/work/a-docs", 1800)],
            {"/work/a": "proj-a", "/work/a-docs": "proj-a"},
            None,
            START,
            END
        )

        assert result == [Allocation(project_id="proj-a", start=START, end=END)]

    def test_no_other_allocation_when_everything_mapped(self):
        """Fully mapped input never produces an Other allocation."""
        result = compute_allocations(
            [_session("/work/a", 100), _session("/work/b", 200)],
            {"/work/a": "proj-a", "/work/b": "proj-b"},
            "proj-other",
            START,
            END
        )

        assert "proj-other" not in [a.project_id for a in result]

    def test_unmapped_goes_to_other(self):
        """Unmapped paths are grouped into the Other project."""
        result = compute_allocations(
            [_session("/work/x", 3600), _session("/work/y", 3600)],
            {},
            "proj-other",
            START,
            END
        )

        assert result == [Allocation(project_id="proj-other", start=START, end=END)]

    def test_matching_is_exact_string_equality(self):
        """Subdirectories and trailing slashes do not match a mapped path."""
        result = compute_allocations(
            [
                _session("/work/app/sub", 3600),
                _session("/work/app/", 3600),
                _session("/WORK/APP", 3600),
            ],
            {"/work/app": "proj-app"},
            "proj-other",
            START,
            END
        )

        assert [a.project_id for a in result] == ["proj-other"]

    def test_unmapped_without_other_raises_error(self):
        """Unmapped sessions with no Other project configured are fatal."""
        with pytest.raises(UnmappedProjectError) as exc_info:
            compute_allocations(
                [_session("/work/a", 100), _session("/work/zeta", 100), _session("/work/beta", 5)],
                {"/work/a": "proj-a"},
                None,
                START,
                END
            )

        assert exc_info.value.projects == ["/work/beta", "/work/zeta"]
        assert "/work/zeta" in str(exc_info.value)

    def test_zero_duration_group_is_not_emitted(self):
        """A bucket that tracked no active time gets no allocation."""
        result = compute_allocations(
            [_session("/work/a", 3600), _session("/work/unmapped", 0)],
            {"/work/a": "proj-a"},
            "proj-other",
            START,
            END
        )

        assert result == [Allocation(project_id="proj-a", start=START, end=END)]

    def test_all_zero_durations_split_by_session_count(self):
        """With no active time at all, session counts set the ratio."""
        result = compute_allocations(
            [_session("/work/a", 0), _session("/work/a", 0), _session("/work/b", 0),
             _session("/work/b", 0)],
            {"/work/a": "proj-a", "/work/b": "proj-b"},
            None,
            START,
            END
        )

        assert [a.duration for a in result] == [timedelta(hours=4), timedelta(hours=4)]

    def test_all_zero_durations_leave_other_out(self):
        """A zero-length unmapped session does not earn Other a share by count."""
        result = compute_allocations(
            [_session("/work/a", 0), _session("/work/unmapped", 0)],
            {"/work/a": "proj-a"},
            "proj-other",
            START,
            END
        )

        assert result == [Allocation(project_id="proj-a", start=START, end=END)]

    def test_only_zero_length_unmapped_sessions_allocate_nothing(self):
        """With only a zero-length Other bucket there is nothing to allocate."""
        result = compute_allocations(
            [_session("/work/unmapped", 0)],
            {"/work/a": "proj-a"},
            "proj-other",
            START,
            END
        )

        assert result == []

    def test_share_flooring_to_zero_is_dropped(self):
        """A tiny non-last group that floors to 0 seconds gets no entry."""
        result = compute_allocations(
            [_session("/work/a", 1), _session("/work/b", 10 ** 9)],
            {"/work/a": "proj-a", "/work/b": "proj-b"},
            None,
            START,
            END
        )

        assert result == [Allocation(project_id="proj-b", start=START, end=END)]

    def test_output_sorted_by_project_id(self):
        """Buckets are ordered by project id regardless of input order."""
        result = compute_allocations(
            [_session("/work/c", 100), _session("/work/a", 100), _session("/work/b", 100)],
            {"/work/a": "proj-3", "/work/b": "proj-1", "/work/c": "proj-2"},
            None,
            START,
            END
        )

        assert [a.project_id for a in result] == ["proj-1", "proj-2", "proj-3"]

    def test_deterministic_for_shuffled_input(self):
        """Input order does not change the output."""
        sessions = [_session("/work/a", 1000), _session("/work/b", 2000), _session("/work/c", 7)]
        mapping = {"/work/a": "proj-a", "/work/b": "proj-b"}

        first = compute_allocations(sessions, mapping, "proj-other", START, END)
        second = compute_allocations(list(reversed(sessions)), mapping, "proj-other", START, END)

        assert first == second

    @pytest.mark.parametrize("durations", [
        [1, 1, 1],
        [1, 2],
        [7, 11, 13, 17],
        [3600, 1, 1],
        [1, 3599, 59, 61, 7],
        [10 ** 9, 1],
    ])
    def test_sum_equals_work_day_exactly(self, durations):
        """Allocations always cover the work day to the second."""
        sessions = [_session(f"/work/{i}", d) for i, d in enumerate(durations)]
        mapping = {f"/work/{i}": f"proj-{i}" for i in range(len(durations))}

        result = compute_allocations(sessions, mapping, None, START, END)

        assert _total(result) == WORK_DAY_SECS
        _assert_contiguous(result)

    def test_odd_work_day_length(self):
        """A work day that doesn't divide evenly still sums exactly."""
        end = START + timedelta(seconds=10007)
        result = compute_allocations(
            [_session("/work/a", 1), _session("/work/b", 1), _session("/work/c", 1)],
            {"/work/a": "a", "/work/b": "b", "/work/c": "c"},
            None,
            START,
            end
        )

        assert [int(a.duration.total_seconds()) for a in result] == [3335, 3335, 3337]
        assert result[-1].end == end


class TestWorkDayBoundaries:
    """Test local work day conversion to UTC."""

    def test_explicit_utc_timezone(self):
        """With a UTC timezone the boundaries are unchanged."""
        start, end = work_day_boundaries(time(9), time(17), date(2026, 2, 4), timezone.utc)

        assert start == START
        assert end == END

    def test_fixed_offset_timezone(self):
        """Local times are shifted to UTC."""
        plus_two = timezone(timedelta(hours=2))
        start, end = work_day_boundaries(time(9), time(17), date(2026, 2, 4), plus_two)

        assert start == datetime(2026, 2, 4, 7, 0, tzinfo=timezone.utc)
        assert end == datetime(2026, 2, 4, 15, 0, tzinfo=timezone.utc)

    def test_system_local_time_by_default(self):
        """Without a timezone the boundaries are eight hours apart and in UTC."""
        start, end = work_day_boundaries(time(9), time(17), date(2026, 2, 4))

        assert start.tzinfo == timezone.utc
        assert end - start == timedelta(hours=8)

    def test_end_before_start_raises_error(self):
        """An inverted work day is rejected."""
        with pytest.raises(ValueError, match="ends before it starts"):
            work_day_boundaries(time(17), time(9), date(2026, 2, 4), timezone.utc)


class TestAllocate:
    """Test allocation driven by tracker configuration."""

    def _config(self, **overrides) -> TrackerConfig:
        values = dict(
            workspace_id="ws",
            work_day=WorkDayConfig(start=time(9), end=time(17)),
            project_mapping={"/work/a": "proj-a"},
            other_project_id="proj-other"
        )
        values.update(overrides)
        return TrackerConfig(**values)

    def test_empty_sessions_returns_empty(self):
        """No sessions skip boundary computation entirely."""
        assert allocate([], self._config(), date(2026, 2, 4)) == []

    def test_allocates_configured_work_day(self):
        """The configured local work day is fully allocated."""
        result = allocate(
            [_session("/work/a", 3600), _session("/work/b", 3600)],
            self._config(),
            date(2026, 2, 4)
        )

        assert [a.project_id for a in result] == ["proj-a", "proj-other"]
        assert _total(result) == WORK_DAY_SECS
