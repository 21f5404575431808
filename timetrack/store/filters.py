"""
Task search and filtering.

Applied to an already-fetched, user-scoped task list; every criterion is
optional and criteria combine with AND.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from timetrack.core.models import Task
from timetrack.utils.time import align_timezones


def _matches_query(task: Task, query: str) -> bool:
    needle = query.lower()
    return needle in task.title.lower() or needle in (task.description or "").lower()


def _created_between(task: Task, date_from: Optional[datetime],
                     date_to: Optional[datetime]) -> bool:
    if task.created_at is None:
        return False
    if date_from is not None:
        created, bound = align_timezones(task.created_at, date_from)
        if created < bound:
            return False
    if date_to is not None:
        created, bound = align_timezones(task.created_at, date_to)
        if created > bound:
            return False
    return True


def filter_tasks(tasks: Iterable[Task],
                 query: Optional[str] = None,
                 project: Optional[str] = None,
                 priority: Optional[str] = None,
                 completed: Optional[bool] = None,
                 date_from: Optional[datetime] = None,
                 date_to: Optional[datetime] = None) -> List[Task]:
    """
    Filter tasks, keeping their order.

    Args:
        tasks: Tasks to filter
        query: Case-insensitive text matched against title and description
        project: Exact project label
        priority: low, medium or high
        completed: Completion state
        date_from: Earliest creation time (inclusive)
        date_to: Latest creation time (inclusive)

    Tasks without a creation time are dropped when a date bound is given.
    """
    result = list(tasks)

    if query:
        result = [t for t in result if _matches_query(t, query)]
    if project is not None:
        result = [t for t in result if t.project == project]
    if priority:
        result = [t for t in result if t.priority == priority.lower()]
    if completed is not None:
        result = [t for t in result if t.completed == completed]
    if date_from is not None or date_to is not None:
        result = [t for t in result if _created_between(t, date_from, date_to)]

    return result
