"""
Stopwatch API endpoints.

Each user has one server-side stopwatch. Starting it records which task
is being timed; saving pauses it, stores a time entry, adds the elapsed
seconds to the task, and resets it.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from backend.dependencies import get_record_store, get_timer_registry, require_user
from backend.schemas import TimerSaveResponse, TimerState, TimerTarget, TimeEntryResponse
from backend.timers import TimerRegistry
from timetrack.store.record_store import RecordStore
from timetrack.timer import save_timer_entry

router = APIRouter(prefix="/api/timer", tags=["timer"])


def _apply_target(session, target: Optional[TimerTarget], store: RecordStore, user_id: str) -> None:
    if target is None:
        return
    if target.task_id:
        task = store.get_task(user_id, target.task_id)
        session.task_id = task.id
        session.task_name = target.task_name or task.title
    elif target.task_name:
        session.task_id = None
        session.task_name = target.task_name


@router.get("", response_model=TimerState)
async def get_timer(
    user_id: str = Depends(require_user),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    return TimerState(**registry.get(user_id).state())


@router.post("/start", response_model=TimerState)
async def start_timer(
    target: Optional[TimerTarget] = None,
    user_id: str = Depends(require_user),
    registry: TimerRegistry = Depends(get_timer_registry),
    store: RecordStore = Depends(get_record_store),
):
    session = registry.get(user_id)
    _apply_target(session, target, store, user_id)
    session.stopwatch.start()
    registry.notify(user_id)
    return TimerState(**session.state())


@router.post("/pause", response_model=TimerState)
async def pause_timer(
    user_id: str = Depends(require_user),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    session = registry.get(user_id)
    session.stopwatch.pause()
    registry.notify(user_id)
    return TimerState(**session.state())


@router.post("/reset", response_model=TimerState)
async def reset_timer(
    user_id: str = Depends(require_user),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    session = registry.get(user_id)
    session.stopwatch.reset()
    registry.notify(user_id)
    return TimerState(**session.state())


@router.post("/save", response_model=TimerSaveResponse, status_code=201)
async def save_timer(
    target: Optional[TimerTarget] = None,
    user_id: str = Depends(require_user),
    registry: TimerRegistry = Depends(get_timer_registry),
    store: RecordStore = Depends(get_record_store),
):
    """Stop the stopwatch and record the elapsed time."""
    session = registry.get(user_id)
    _apply_target(session, target, store, user_id)
    session.stopwatch.pause()

    entry = save_timer_entry(
        store,
        user_id,
        session.stopwatch.elapsed,
        session.task_name or "",
        task_id=session.task_id,
    )
    session.stopwatch.reset()
    registry.notify(user_id)
    return TimerSaveResponse(
        time_entry=TimeEntryResponse(**entry.to_dict()),
        timer=TimerState(**session.state()),
    )
