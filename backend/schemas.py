"""
Pydantic schemas for API request/response validation.

These schemas provide:
- Type safety for API inputs and outputs
- Automatic validation and error messages
- OpenAPI documentation generation

Field-level rules (title length, category color ...) are checked by
timetrack.utils.validation so that API and library callers share them;
the schemas only enforce shape and types.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# =============================================================================
# Base Response Schemas
# =============================================================================

class ErrorResponse(BaseModel):
    """Error response for API errors."""
    error: str
    field: Optional[str] = None


class SuccessResponse(BaseModel):
    success: bool = True


class UserResponse(BaseModel):
    uid: str
    email: str
    display_name: Optional[str] = None


class AuthResponse(BaseModel):
    """Returned by login/register for JSON clients."""
    success: bool = True
    user: Optional[UserResponse] = None


# =============================================================================
# Task Schemas
# =============================================================================

class TaskCreate(BaseModel):
    """Request body for creating a task."""
    title: str
    description: Optional[str] = None
    project: Optional[str] = None
    priority: Optional[str] = None  # low, medium, high
    due_date: Optional[datetime] = None
    time_spent: int = Field(default=0, ge=0)


class TaskUpdate(BaseModel):
    """Request body for updating a task (PATCH semantics)."""
    title: Optional[str] = None
    description: Optional[str] = None
    project: Optional[str] = None
    priority: Optional[str] = None
    completed: Optional[bool] = None
    time_spent: Optional[int] = Field(default=None, ge=0)
    due_date: Optional[datetime] = None


class TaskResponse(BaseModel):
    """Task data returned from API."""
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    project: Optional[str] = None
    priority: str
    completed: bool
    time_spent: int
    due_date: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class TaskListResponse(BaseModel):
    tasks: List[TaskResponse]
    total: int


# =============================================================================
# Category Schemas
# =============================================================================

class CategoryCreate(BaseModel):
    name: str
    color: Optional[str] = None


class CategoryResponse(BaseModel):
    id: str
    user_id: str
    name: str
    color: Optional[str] = None
    created_at: Optional[str] = None


class CategoryListResponse(BaseModel):
    categories: List[CategoryResponse]
    total: int


# =============================================================================
# Time Entry Schemas
# =============================================================================

class TimeEntryCreate(BaseModel):
    """Manually logged time; give either ended_at or a duration such as "1h 30m"."""
    task_id: Optional[str] = None
    task_name: Optional[str] = None
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration: Optional[str] = None
    notes: Optional[str] = None


class TimeEntryResponse(BaseModel):
    id: str
    user_id: str
    task_id: Optional[str] = None
    task_name: str
    duration: int
    started_at: Optional[str] = None
    ended_at: Optional[str] = None
    notes: Optional[str] = None


class TimeEntryListResponse(BaseModel):
    time_entries: List[TimeEntryResponse]
    total: int


# =============================================================================
# Timer Schemas
# =============================================================================

class TimerTarget(BaseModel):
    """Task the stopwatch runs against; either an id or a free-text name."""
    task_id: Optional[str] = None
    task_name: Optional[str] = None


class TimerState(BaseModel):
    elapsed: int
    display: str
    is_running: bool
    task_id: Optional[str] = None
    task_name: Optional[str] = None


class TimerSaveResponse(BaseModel):
    time_entry: TimeEntryResponse
    timer: TimerState


# =============================================================================
# Dashboard Schemas
# =============================================================================

class AnalyticsResponse(BaseModel):
    """Serialized AnalyticsView."""
    generated_at: str
    is_empty: bool
    stats: Dict[str, int]
    monthly_tasks: List[Dict[str, Any]]
    time_spent_by_month: List[Dict[str, Any]]
    most_time_consuming_tasks: List[Dict[str, Any]]
    project_distribution: List[Dict[str, Any]]
    priority_distribution: List[Dict[str, Any]]
    weekly_progress: List[Dict[str, Any]]
    task_count: int
    time_entry_count: int
    category_count: int
