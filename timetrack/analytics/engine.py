"""
Analytics aggregation engine.

Turns raw task and time-entry collections into the chart-ready series shown
on the dashboard. Every function is pure and synchronous: identical input
and an identical ``now`` always produce identical output.

Time bucketing uses calendar boundaries in the time zone of ``now``.
Timestamps carrying tzinfo are converted to that zone first; naive
timestamps are taken to already be in it.
"""

import math
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta

from timetrack.core.models import Task, TimeEntry, Priority
from timetrack.utils.time import align_timezones


NO_PROJECT = "No Project"
NAME_MAX_LENGTH = 25

MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
DAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

# (tier, display name, color) in display order
PRIORITY_TIERS = (
    (Priority.HIGH, "High Priority", "#EF4444"),
    (Priority.MEDIUM, "Medium Priority", "#F59E0B"),
    (Priority.LOW, "Low Priority", "#10B981"),
)

WEEK_STARTS = {"monday": 0, "sunday": 6}


# =============================================================================
# Result types
# =============================================================================

@dataclass(frozen=True)
class TaskStats:
    total: int = 0
    completed: int = 0
    pending: int = 0
    completion_rate: int = 0
    overdue: int = 0


@dataclass(frozen=True)
class MonthlyTasks:
    month: str
    total: int
    completed: int
    pending: int


@dataclass(frozen=True)
class MonthlyHours:
    month: str
    hours: float


@dataclass(frozen=True)
class TimeConsumingTask:
    name: str
    value: int  # seconds
    hours: float
    priority: str


@dataclass(frozen=True)
class DistributionSlice:
    name: str
    value: int
    color: Optional[str] = None


@dataclass(frozen=True)
class DayProgress:
    day: str
    date: str
    total: int
    completed: int
    completion_rate: int


@dataclass(frozen=True)
class AnalyticsView:
    """Every derived series for one dashboard render."""
    generated_at: datetime
    stats: TaskStats
    monthly_tasks: Tuple[MonthlyTasks, ...]
    time_spent_by_month: Tuple[MonthlyHours, ...]
    most_time_consuming_tasks: Tuple[TimeConsumingTask, ...]
    project_distribution: Tuple[DistributionSlice, ...]
    priority_distribution: Tuple[DistributionSlice, ...]
    weekly_progress: Tuple[DayProgress, ...]
    task_count: int = 0
    time_entry_count: int = 0
    category_count: int = 0

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to chart yet."""
        return self.task_count == 0 and self.time_entry_count == 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["generated_at"] = self.generated_at.isoformat()
        data["is_empty"] = self.is_empty
        return data


# =============================================================================
# Helpers
# =============================================================================

def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def seconds_to_hours(seconds: float) -> float:
    """Seconds to hours, rounded to one decimal place."""
    return round_half_up(seconds / 3600 * 10) / 10


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def _localize(moment: Optional[datetime], now: datetime) -> Optional[datetime]:
    """Express ``moment`` in the zone of ``now``."""
    if moment is None:
        return None
    if moment.tzinfo is not None and now.tzinfo is not None:
        return moment.astimezone(now.tzinfo)
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    if now.tzinfo is not None:
        return moment.replace(tzinfo=now.tzinfo)
    return moment


def _month_windows(months: int, now: datetime) -> List[Tuple[str, datetime, datetime]]:
    """(label, start, end) for the trailing ``months`` calendar months, oldest first."""
    windows = []
    current_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    for offset in range(months - 1, -1, -1):
        start = current_start - relativedelta(months=offset)
        end = start + relativedelta(months=1) - timedelta(microseconds=1)
        label = f"{MONTH_LABELS[start.month - 1]} {start.year}"
        windows.append((label, start, end))
    return windows


def _in_window(moment: Optional[datetime], start: datetime, end: datetime) -> bool:
    return moment is not None and start <= moment <= end


def _rate(completed: int, total: int) -> int:
    return round_half_up(completed / total * 100) if total else 0


# =============================================================================
# Aggregations
# =============================================================================

def task_stats(tasks: Sequence[Task], now: Optional[datetime] = None) -> TaskStats:
    """
    Totals and completion rate.

    ``completion_rate`` is a whole percentage, 0 for an empty list.
    ``overdue`` counts incomplete tasks whose due date has passed.
    """
    now = _now(now)
    total = len(tasks)
    completed = sum(1 for t in tasks if t.completed)
    overdue = sum(1 for t in tasks if t.is_overdue(now))

    return TaskStats(
        total=total,
        completed=completed,
        pending=total - completed,
        completion_rate=_rate(completed, total),
        overdue=overdue,
    )


def monthly_tasks(tasks: Sequence[Task], months: int = 6,
                  now: Optional[datetime] = None) -> List[MonthlyTasks]:
    """Tasks created per calendar month for the trailing ``months`` months."""
    now = _now(now)
    created = [(_localize(t.created_at, now), t.completed) for t in tasks]

    result = []
    for label, start, end in _month_windows(months, now):
        in_month = [done for moment, done in created if _in_window(moment, start, end)]
        completed = sum(1 for done in in_month if done)
        result.append(MonthlyTasks(
            month=label,
            total=len(in_month),
            completed=completed,
            pending=len(in_month) - completed,
        ))
    return result


def time_spent_by_month(entries: Sequence[TimeEntry], months: int = 6,
                        now: Optional[datetime] = None) -> List[MonthlyHours]:
    """Hours tracked per calendar month, bucketed by entry start time."""
    now = _now(now)
    started = [(_localize(e.started_at, now), e.duration or 0) for e in entries]

    result = []
    for label, start, end in _month_windows(months, now):
        seconds = sum(d for moment, d in started if _in_window(moment, start, end))
        result.append(MonthlyHours(month=label, hours=seconds_to_hours(seconds)))
    return result


def _short_name(title: str) -> str:
    title = title or ""
    if len(title) > NAME_MAX_LENGTH:
        return title[:NAME_MAX_LENGTH] + "..."
    return title


def most_time_consuming_tasks(tasks: Sequence[Task], limit: int = 10) -> List[TimeConsumingTask]:
    """Tasks with tracked time, largest first (ties keep input order)."""
    tracked = [t for t in tasks if (t.time_spent or 0) > 0]
    tracked.sort(key=lambda t: t.time_spent or 0, reverse=True)

    return [
        TimeConsumingTask(
            name=_short_name(t.title),
            value=t.time_spent,
            hours=seconds_to_hours(t.time_spent),
            priority=Priority.coerce(t.priority).value,
        )
        for t in tracked[:limit]
    ]


def project_distribution(tasks: Sequence[Task]) -> List[DistributionSlice]:
    """Task count per project, in first-seen order."""
    counts: Dict[str, int] = {}
    for task in tasks:
        project = task.project or NO_PROJECT
        counts[project] = counts.get(project, 0) + 1

    return [DistributionSlice(name=name, value=value) for name, value in counts.items()]


def priority_distribution(tasks: Sequence[Task]) -> List[DistributionSlice]:
    """Task count per priority tier; tiers with no tasks are omitted."""
    counts = {tier: 0 for tier, _, _ in PRIORITY_TIERS}
    for task in tasks:
        counts[Priority.coerce(task.priority)] += 1

    return [
        DistributionSlice(name=name, value=counts[tier], color=color)
        for tier, name, color in PRIORITY_TIERS
        if counts[tier] > 0
    ]


def week_bounds(now: datetime, week_start: str = "sunday") -> Tuple[datetime, datetime]:
    """First and last instant of the calendar week containing ``now``."""
    first_weekday = WEEK_STARTS.get(week_start.lower(), WEEK_STARTS["sunday"])
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start = today - timedelta(days=(today.weekday() - first_weekday) % 7)
    end = start + timedelta(days=7) - timedelta(microseconds=1)
    return start, end


def weekly_progress(tasks: Sequence[Task], now: Optional[datetime] = None,
                    week_start: str = "sunday") -> List[DayProgress]:
    """Tasks created on each day of the current week with completion rates."""
    now = _now(now)
    start, _ = week_bounds(now, week_start)
    created = [(_localize(t.created_at, now), t.completed) for t in tasks]

    result = []
    for offset in range(7):
        day = (start + timedelta(days=offset)).date()
        on_day = [done for moment, done in created if moment is not None and moment.date() == day]
        completed = sum(1 for done in on_day if done)
        result.append(DayProgress(
            day=DAY_LABELS[day.weekday()],
            date=day.isoformat(),
            total=len(on_day),
            completed=completed,
            completion_rate=_rate(completed, len(on_day)),
        ))
    return result


def filter_by_date_range(tasks: Iterable[Task], entries: Iterable[TimeEntry],
                         start: datetime, end: datetime) -> Tuple[List[Task], List[TimeEntry]]:
    """
    Restrict collections to an inclusive date range.

    Tasks are matched on creation time, entries on start time. Records
    without the relevant timestamp are excluded. A naive bound is read in
    the zone of an aware one.
    """
    start, end = align_timezones(start, end)
    tasks_in_range = [
        t for t in tasks if _in_window(_localize(t.created_at, start), start, end)
    ]
    entries_in_range = [
        e for e in entries if _in_window(_localize(e.started_at, start), start, end)
    ]
    return tasks_in_range, entries_in_range


def build_analytics(tasks: Sequence[Task], entries: Sequence[TimeEntry],
                    now: Optional[datetime] = None, months: int = 6,
                    top_limit: int = 10, week_start: str = "sunday",
                    category_count: int = 0) -> AnalyticsView:
    """
    Compute every dashboard series in one pass.

    Args:
        tasks: The user's tasks
        entries: The user's time entries
        now: Reference time for month/week buckets (defaults to UTC now)
        months: Number of trailing months in the monthly series
        top_limit: Size of the most-time-consuming list
        week_start: "sunday" or "monday"
        category_count: Number of categories, reported alongside the series

    Returns:
        AnalyticsView with all derived series
    """
    now = _now(now)
    return AnalyticsView(
        generated_at=now,
        stats=task_stats(tasks, now),
        monthly_tasks=tuple(monthly_tasks(tasks, months, now)),
        time_spent_by_month=tuple(time_spent_by_month(entries, months, now)),
        most_time_consuming_tasks=tuple(most_time_consuming_tasks(tasks, top_limit)),
        project_distribution=tuple(project_distribution(tasks)),
        priority_distribution=tuple(priority_distribution(tasks)),
        weekly_progress=tuple(weekly_progress(tasks, now, week_start)),
        task_count=len(tasks),
        time_entry_count=len(entries),
        category_count=category_count,
    )
