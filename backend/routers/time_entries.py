"""
Time entry API endpoints.

Entries are normally produced by saving the stopwatch (see timer.py);
this router also accepts manually logged time for an existing task.
"""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from backend.dependencies import get_record_store, require_user
from backend.schemas import TimeEntryCreate, TimeEntryResponse, TimeEntryListResponse
from timetrack.store.record_store import RecordStore
from timetrack.utils.errors import ValidationError
from timetrack.utils.time import (
    align_timezones,
    elapsed_seconds,
    is_valid_time_input,
    parse_time_input,
)
from timetrack.utils.validation import sanitize_input, validate_manual_time_entry

router = APIRouter(prefix="/api/time-entries", tags=["time-entries"])


@router.get("", response_model=TimeEntryListResponse)
async def list_time_entries(
    task_id: Optional[str] = Query(None, description="Only entries for this task"),
    user_id: str = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
):
    entries = store.list_time_entries(user_id, task_id=task_id)
    return TimeEntryListResponse(
        time_entries=[TimeEntryResponse(**e.to_dict()) for e in entries],
        total=len(entries),
    )


@router.post("", response_model=TimeEntryResponse, status_code=201)
async def create_time_entry(
    entry: TimeEntryCreate,
    user_id: str = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
):
    """
    Log time manually against a task.

    The end is either given directly or derived from a free-text duration
    ("2h 30m", "90m", "45"). The duration is added to the task's
    accumulated time.
    """
    started_at, ended_at = align_timezones(entry.started_at, entry.ended_at)
    if ended_at is None and entry.duration:
        if not is_valid_time_input(entry.duration):
            raise ValidationError("Please enter a duration like 1h 30m", field="duration")
        ended_at = started_at + timedelta(seconds=parse_time_input(entry.duration))

    validate_manual_time_entry(
        entry.task_id, started_at, ended_at, entry.notes
    ).raise_if_invalid()

    task = store.get_task(user_id, entry.task_id)
    duration = elapsed_seconds(started_at, ended_at)
    created = store.create_time_entry(user_id, {
        "task_id": task.id,
        "task_name": entry.task_name or task.title,
        "duration": duration,
        "started_at": started_at,
        "ended_at": ended_at,
        "notes": sanitize_input(entry.notes) if entry.notes else None,
    })
    store.add_time_spent(user_id, task.id, duration)
    return TimeEntryResponse(**created.to_dict())


@router.delete("/{entry_id}", status_code=204)
async def delete_time_entry(
    entry_id: str,
    user_id: str = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
):
    store.delete_time_entry(user_id, entry_id)
    return Response(status_code=204)
