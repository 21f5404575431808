"""
CSV export of a user's tasks.
"""

import csv
import io
from typing import Iterable

from timetrack.core.models import Task

EXPORT_FIELDS = [
    "id",
    "title",
    "description",
    "project",
    "priority",
    "completed",
    "time_spent",
    "due_date",
    "created_at",
    "updated_at",
]


def tasks_to_csv(tasks: Iterable[Task]) -> str:
    """Render tasks as CSV text with a header row, one task per line."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_FIELDS, lineterminator="\n")
    writer.writeheader()
    for task in tasks:
        row = task.to_dict()
        row["completed"] = "true" if task.completed else "false"
        writer.writerow({key: "" if row.get(key) is None else row[key] for key in EXPORT_FIELDS})
    return buffer.getvalue()
