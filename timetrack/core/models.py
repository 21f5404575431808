"""
Data models for Timetrack
Defines core data structures for tasks, categories, time entries and users.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
import uuid

from dateutil import parser as date_parser


class Priority(str, Enum):
    """Task priority tiers"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def coerce(cls, value: Any) -> "Priority":
        """Map any stored value onto a tier, defaulting to medium."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.MEDIUM


def new_id() -> str:
    """Generate a record identifier."""
    return uuid.uuid4().hex


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (or pass through a datetime) from storage"""
    if isinstance(value, datetime):
        return value
    if value:
        try:
            return date_parser.isoparse(str(value))
        except (ValueError, TypeError, OverflowError):
            return None
    return None


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Task:
    """Task data model"""
    id: Optional[str] = None
    user_id: str = ""
    title: str = ""
    description: Optional[str] = None
    project: str = ""
    priority: str = Priority.MEDIUM.value
    completed: bool = False
    time_spent: int = 0  # seconds
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.priority = Priority.coerce(self.priority).value
        self.time_spent = max(0, int(self.time_spent or 0))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Task':
        """
        Create Task from a database row or request dictionary.

        Records written with the older ``status`` field are migrated:
        ``status == "completed"`` becomes ``completed=True``.
        """
        if 'completed' in data and data['completed'] is not None:
            completed = bool(data['completed'])
        else:
            completed = data.get('status') == 'completed'

        return cls(
            id=data.get('id'),
            user_id=data.get('user_id', ''),
            title=data.get('title', ''),
            description=data.get('description'),
            project=data.get('project') or '',
            priority=data.get('priority'),
            completed=completed,
            time_spent=data.get('time_spent') or 0,
            due_date=parse_datetime(data.get('due_date')),
            created_at=parse_datetime(data.get('created_at')),
            updated_at=parse_datetime(data.get('updated_at')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "project": self.project,
            "priority": self.priority,
            "completed": self.completed,
            "time_spent": self.time_spent,
            "due_date": format_datetime(self.due_date),
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    def is_overdue(self, now: datetime) -> bool:
        """Check if task is overdue relative to ``now``"""
        if self.completed or self.due_date is None:
            return False
        due = self.due_date
        if (due.tzinfo is None) != (now.tzinfo is None):
            due = due.replace(tzinfo=now.tzinfo)
        return due < now


@dataclass
class Category:
    """Category data model"""
    id: Optional[str] = None
    user_id: str = ""
    name: str = ""
    color: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Category':
        return cls(
            id=data.get('id'),
            user_id=data.get('user_id', ''),
            name=data.get('name', ''),
            color=data.get('color'),
            created_at=parse_datetime(data.get('created_at')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "color": self.color,
            "created_at": format_datetime(self.created_at),
        }


@dataclass
class TimeEntry:
    """
    A saved stopwatch session.

    ``task_name`` is captured when the entry is saved and is not kept in
    sync with later task renames.
    """
    id: Optional[str] = None
    user_id: str = ""
    task_id: Optional[str] = None
    task_name: str = ""
    duration: int = 0  # seconds
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    notes: Optional[str] = None

    def __post_init__(self):
        self.duration = max(0, int(self.duration or 0))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimeEntry':
        return cls(
            id=data.get('id'),
            user_id=data.get('user_id', ''),
            task_id=data.get('task_id'),
            task_name=data.get('task_name', ''),
            duration=data.get('duration') or 0,
            started_at=parse_datetime(data.get('started_at')),
            ended_at=parse_datetime(data.get('ended_at')),
            notes=data.get('notes'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "task_id": self.task_id,
            "task_name": self.task_name,
            "duration": self.duration,
            "started_at": format_datetime(self.started_at),
            "ended_at": format_datetime(self.ended_at),
            "notes": self.notes,
        }


@dataclass
class UserAccount:
    """Identity provider account (password hash excluded)"""
    uid: str = ""
    email: str = ""
    display_name: Optional[str] = None
    disabled: bool = False
    created_at: Optional[datetime] = None
    claims: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserAccount':
        return cls(
            uid=data.get('uid', ''),
            email=data.get('email', ''),
            display_name=data.get('display_name'),
            disabled=bool(data.get('disabled', False)),
            created_at=parse_datetime(data.get('created_at')),
        )
