"""
Unit tests for the analytics aggregation engine.
All tests pin ``now`` so bucket boundaries are deterministic.
"""

import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from timetrack.analytics.engine import (
    TaskStats,
    build_analytics,
    filter_by_date_range,
    monthly_tasks,
    most_time_consuming_tasks,
    priority_distribution,
    project_distribution,
    round_half_up,
    seconds_to_hours,
    task_stats,
    time_spent_by_month,
    week_bounds,
    weekly_progress,
)
from timetrack.core.models import Task, TimeEntry

# Wednesday 18 June 2025, noon UTC
NOW = datetime(2025, 6, 18, 12, 0, tzinfo=timezone.utc)


def at(month, day, hour=9):
    return datetime(2025, month, day, hour, 0, tzinfo=timezone.utc)


@pytest.fixture
def two_tasks():
    return [
        Task(title="Ship release", time_spent=7200, priority="high",
             project="Work", completed=True, created_at=at(6, 16)),
        Task(title="Read book", time_spent=0, priority="low",
             project="", completed=False, created_at=at(6, 17)),
    ]


@pytest.fixture
def mixed_tasks():
    return [
        Task(title="A", time_spent=300, priority="medium", project="Work",
             completed=True, created_at=at(1, 10)),
        Task(title="B", time_spent=3600, priority="high", project="Home",
             created_at=at(3, 5)),
        Task(title="C", time_spent=3600, priority="low", project="Work",
             completed=True, created_at=at(6, 15, 23)),
        Task(title="D", priority="urgent", project=None, created_at=None),
        Task(title="E", time_spent=60, created_at=at(6, 18, 8)),
    ]


class TestTaskStats:

    def test_two_task_scenario(self, two_tasks):
        stats = task_stats(two_tasks, NOW)

        assert (stats.total, stats.completed, stats.pending, stats.completion_rate) == (2, 1, 1, 50)

    def test_empty_list(self):
        assert task_stats([], NOW) == TaskStats(0, 0, 0, 0, 0)

    def test_completed_plus_pending_equals_total(self, mixed_tasks):
        stats = task_stats(mixed_tasks, NOW)
        assert stats.completed + stats.pending == stats.total

    def test_completion_rate_rounds_half_up(self):
        tasks = [Task(completed=True)] + [Task() for _ in range(7)]
        # 1/8 = 12.5%
        assert task_stats(tasks, NOW).completion_rate == 13

    def test_overdue_counts_incomplete_past_due(self):
        tasks = [
            Task(due_date=NOW - timedelta(days=1)),
            Task(due_date=NOW - timedelta(days=1), completed=True),
            Task(due_date=NOW + timedelta(days=1)),
        ]
        assert task_stats(tasks, NOW).overdue == 1


class TestDistributions:

    def test_two_task_scenario_projects(self, two_tasks):
        slices = project_distribution(two_tasks)

        assert [(s.name, s.value) for s in slices] == [("Work", 1), ("No Project", 1)]

    def test_two_task_scenario_priorities(self, two_tasks):
        slices = priority_distribution(two_tasks)

        assert [(s.name, s.value, s.color) for s in slices] == [
            ("High Priority", 1, "#EF4444"),
            ("Low Priority", 1, "#10B981"),
        ]

    def test_project_counts_sum_to_task_count(self, mixed_tasks):
        assert sum(s.value for s in project_distribution(mixed_tasks)) == len(mixed_tasks)

    def test_empty_project_grouped(self):
        slices = project_distribution([Task(project=""), Task(project=None), Task(project="X")])
        assert [(s.name, s.value) for s in slices] == [("No Project", 2), ("X", 1)]

    def test_project_labels_kept_as_stored(self):
        slices = project_distribution([Task(project="Work "), Task(project="Work")])
        assert [(s.name, s.value) for s in slices] == [("Work ", 1), ("Work", 1)]

    def test_priority_never_includes_zero_tier(self, mixed_tasks):
        slices = priority_distribution(mixed_tasks)

        assert all(s.value > 0 for s in slices)
        # Unknown priorities count as medium
        assert [(s.name, s.value) for s in slices] == [
            ("High Priority", 1), ("Medium Priority", 3), ("Low Priority", 1),
        ]

    def test_empty_distributions(self):
        assert project_distribution([]) == []
        assert priority_distribution([]) == []


class TestMostTimeConsuming:

    def test_sorted_descending_and_stable(self, mixed_tasks):
        result = most_time_consuming_tasks(mixed_tasks)

        assert [r.name for r in result] == ["B", "C", "A", "E"]
        assert [r.value for r in result] == sorted((r.value for r in result), reverse=True)

    def test_excludes_untracked_and_respects_limit(self):
        tasks = [Task(title=f"T{i}", time_spent=i * 60) for i in range(15)]

        result = most_time_consuming_tasks(tasks)

        assert len(result) == 10
        assert result[0].name == "T14"
        assert all(r.value > 0 for r in result)
        assert len(most_time_consuming_tasks(tasks, limit=3)) == 3

    def test_long_names_truncated(self):
        title = "x" * 30
        result = most_time_consuming_tasks([Task(title=title, time_spent=60)])

        assert result[0].name == "x" * 25 + "..."

    def test_hours_and_priority(self, two_tasks):
        result = most_time_consuming_tasks(two_tasks)

        assert len(result) == 1
        assert result[0].hours == 2.0
        assert result[0].priority == "high"


class TestMonthlySeries:

    def test_monthly_tasks_labels_oldest_first(self, mixed_tasks):
        result = monthly_tasks(mixed_tasks, months=6, now=NOW)

        assert [m.month for m in result] == [
            "Jan 2025", "Feb 2025", "Mar 2025", "Apr 2025", "May 2025", "Jun 2025",
        ]

    def test_monthly_tasks_counts(self, mixed_tasks):
        result = {m.month: m for m in monthly_tasks(mixed_tasks, now=NOW)}

        assert (result["Jan 2025"].total, result["Jan 2025"].completed) == (1, 1)
        assert (result["Mar 2025"].total, result["Mar 2025"].pending) == (1, 1)
        assert (result["Jun 2025"].total, result["Jun 2025"].completed) == (2, 1)
        assert result["Feb 2025"].total == 0

    def test_monthly_window_crosses_year(self):
        result = monthly_tasks([], months=3, now=datetime(2025, 2, 10, tzinfo=timezone.utc))
        assert [m.month for m in result] == ["Dec 2024", "Jan 2025", "Feb 2025"]

    def test_time_spent_by_month(self):
        entries = [
            TimeEntry(duration=5400, started_at=at(6, 1)),
            TimeEntry(duration=1800, started_at=at(6, 30, 20)),
            TimeEntry(duration=360, started_at=at(4, 2)),
            TimeEntry(duration=7200, started_at=datetime(2024, 6, 1, tzinfo=timezone.utc)),
            TimeEntry(duration=600, started_at=None),
        ]

        result = {m.month: m.hours for m in time_spent_by_month(entries, now=NOW)}

        assert result["Jun 2025"] == 2.0
        assert result["Apr 2025"] == 0.1
        assert result["Jan 2025"] == 0.0

    def test_bucket_hours_sum_to_total(self):
        entries = [TimeEntry(duration=d, started_at=at(m, 3))
                   for m, d in ((1, 1234), (2, 999), (4, 4321), (6, 60))]

        buckets = time_spent_by_month(entries, now=NOW)
        total_hours = seconds_to_hours(sum(e.duration for e in entries))

        assert all(b.hours >= 0 for b in buckets)
        assert sum(b.hours for b in buckets) == pytest.approx(total_hours, abs=0.05 * len(buckets))

    def test_aware_timestamps_converted_to_now_zone(self):
        """An entry just after midnight UTC on 1 July is still June in UTC-5."""
        eastern = timezone(timedelta(hours=-5))
        now = datetime(2025, 7, 15, 12, 0, tzinfo=eastern)
        entry = TimeEntry(duration=3600, started_at=datetime(2025, 7, 1, 2, 0, tzinfo=timezone.utc))

        result = {m.month: m.hours for m in time_spent_by_month([entry], now=now)}

        assert result["Jun 2025"] == 1.0
        assert result["Jul 2025"] == 0.0


class TestWeeklyProgress:

    def test_week_starts_sunday_by_default(self):
        start, end = week_bounds(NOW)

        assert start.date().isoformat() == "2025-06-15"
        assert end.date().isoformat() == "2025-06-21"

    def test_week_starts_monday(self):
        start, _ = week_bounds(NOW, "monday")
        assert start.date().isoformat() == "2025-06-16"

    def test_weekly_progress_days(self, mixed_tasks, two_tasks):
        result = weekly_progress(mixed_tasks + two_tasks, now=NOW)

        assert [d.day for d in result] == ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
        by_date = {d.date: d for d in result}
        assert (by_date["2025-06-15"].total, by_date["2025-06-15"].completion_rate) == (1, 100)
        assert by_date["2025-06-16"].completed == 1
        assert by_date["2025-06-17"].completion_rate == 0
        assert by_date["2025-06-18"].total == 1
        assert by_date["2025-06-20"].total == 0

    def test_monday_week_labels(self):
        result = weekly_progress([], now=NOW, week_start="monday")
        assert result[0].day == "Mon"
        assert result[-1].day == "Sun"


class TestDateRangeAndBundle:

    def test_filter_by_date_range_inclusive(self, mixed_tasks):
        entries = [TimeEntry(duration=60, started_at=at(3, 1)), TimeEntry(duration=60, started_at=at(5, 1))]
        start = at(3, 1)
        end = at(6, 15, 23)

        tasks, kept_entries = filter_by_date_range(mixed_tasks, entries, start, end)

        assert [t.title for t in tasks] == ["B", "C"]
        assert len(kept_entries) == 2

    def test_filter_with_one_naive_bound(self, mixed_tasks):
        start = datetime(2025, 3, 1, 9, 0)
        end = at(6, 15, 23)

        tasks, _ = filter_by_date_range(mixed_tasks, [], start, end)

        assert [t.title for t in tasks] == ["B", "C"]

    def test_build_analytics(self, two_tasks):
        view = build_analytics(two_tasks, [], now=NOW, category_count=3)

        assert view.stats.completion_rate == 50
        assert len(view.monthly_tasks) == 6
        assert len(view.weekly_progress) == 7
        assert view.category_count == 3
        assert not view.is_empty

        data = view.to_dict()
        assert data["generated_at"] == NOW.isoformat()
        assert data["stats"]["completion_rate"] == 50
        assert data["is_empty"] is False

    def test_empty_view(self):
        assert build_analytics([], [], now=NOW).is_empty

    def test_idempotent(self, mixed_tasks):
        entries = [TimeEntry(duration=900, started_at=at(5, 20))]

        assert build_analytics(mixed_tasks, entries, now=NOW) == build_analytics(mixed_tasks, entries, now=NOW)
        assert weekly_progress(mixed_tasks, NOW) == weekly_progress(mixed_tasks, NOW)


@pytest.mark.parametrize("value,expected", [(2.5, 3), (2.4, 2), (0, 0), (49.5, 50)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected
