"""
Task management API endpoints.

CRUD for the signed-in user's tasks. Every write goes through the
RecordStore, which pushes a fresh snapshot to live subscribers
(WebSocket clients and dashboard controllers).
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from backend.dependencies import get_config, get_record_store, require_user
from backend.schemas import TaskCreate, TaskUpdate, TaskResponse, TaskListResponse
from timetrack.core.config import Config
from timetrack.core.models import Task
from timetrack.store.export import tasks_to_csv
from timetrack.store.filters import filter_tasks
from timetrack.store.record_store import RecordStore
from timetrack.utils.validation import sanitize_input, validate_task

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def _task_response(task: Task) -> TaskResponse:
    return TaskResponse(**task.to_dict())


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    q: Optional[str] = Query(None, description="Search title and description"),
    completed: Optional[bool] = Query(None, description="Filter by completion"),
    project: Optional[str] = Query(None, description="Filter by project"),
    priority: Optional[str] = Query(None, description="Filter by priority (low, medium, high)"),
    date_from: Optional[datetime] = Query(None, description="Created at or after (ISO 8601)"),
    date_to: Optional[datetime] = Query(None, description="Created at or before (ISO 8601)"),
    user_id: str = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
):
    """List tasks, newest first."""
    tasks = filter_tasks(
        store.list_tasks(user_id),
        query=q,
        project=project,
        priority=priority,
        completed=completed,
        date_from=date_from,
        date_to=date_to,
    )
    return TaskListResponse(tasks=[_task_response(t) for t in tasks], total=len(tasks))


@router.get("/export")
async def export_tasks(
    user_id: str = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
):
    """Download every task as ``tasks.csv``."""
    return Response(
        content=tasks_to_csv(store.list_tasks(user_id)),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="tasks.csv"'},
    )


@router.post("", response_model=TaskResponse, status_code=201)
async def create_task(
    task: TaskCreate,
    user_id: str = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
    config: Config = Depends(get_config),
):
    """Create a new task."""
    validate_task(task.title, task.description).raise_if_invalid()

    data = task.model_dump()
    data["title"] = sanitize_input(task.title)
    if task.description:
        data["description"] = sanitize_input(task.description)
    if not task.priority:
        data["priority"] = config.get("default_task_priority", "preferences", "medium")

    return _task_response(store.create_task(user_id, data))


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    user_id: str = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
):
    return _task_response(store.get_task(user_id, task_id))


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    task: TaskUpdate,
    user_id: str = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
):
    """Update only the fields that were sent."""
    changes = task.model_dump(exclude_unset=True)
    if "title" in changes or "description" in changes:
        current = store.get_task(user_id, task_id)
        validate_task(
            changes.get("title", current.title),
            changes.get("description", current.description),
        ).raise_if_invalid()
        for key in ("title", "description"):
            if changes.get(key):
                changes[key] = sanitize_input(changes[key])

    return _task_response(store.update_task(user_id, task_id, changes))


@router.post("/{task_id}/toggle", response_model=TaskResponse)
async def toggle_task(
    task_id: str,
    user_id: str = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
):
    """Flip the completed flag."""
    return _task_response(store.toggle_task(user_id, task_id))


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    task_id: str,
    cascade: bool = Query(False, description="Also delete the task's time entries"),
    user_id: str = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
):
    store.delete_task(user_id, task_id, cascade=cascade)
    return Response(status_code=204)
