"""
Record Store gateway.

Create/update/delete operations for tasks, categories and time entries,
every one scoped by the owning user's id, plus live subscriptions that push
a fresh Snapshot of the affected collection after each write.

Persistence errors are logged and re-raised as RecordStoreError with a
generic "Failed to ..." message; no partial-state recovery is attempted.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from timetrack.core.database import Database
from timetrack.core.models import Task, Category, TimeEntry, Priority, new_id
from timetrack.store.subscriptions import (
    Collection,
    Snapshot,
    SnapshotCallback,
    Subscription,
    SubscriptionHub,
)
from timetrack.utils.errors import ErrorCodes, NotFoundError, RecordStoreError, retry_operation

logger = logging.getLogger("timetrack.store")

# Fields a client may change on an existing task
TASK_UPDATABLE_FIELDS = (
    "title", "description", "project", "priority", "completed", "time_spent", "due_date",
)


def _error_code(error: sqlite3.Error) -> str:
    """Busy or unreachable database files are reported as unavailable."""
    text = str(error).lower()
    if isinstance(error, sqlite3.OperationalError) and ("locked" in text or "unable to open" in text):
        return ErrorCodes.STORE_UNAVAILABLE
    return ErrorCodes.STORE_INTERNAL


def _iso(value: Any) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return value or None


class RecordStore:
    """
    Per-user document store with live subscriptions.

    Args:
        db: Database connection
        hub: Subscription registry (a private one is created if omitted)
        clock: Returns the current time; used for created/updated stamps
        read_retries: Attempts for idempotent reads
        retry_delay: Base backoff in seconds between read attempts. Reads
            run on the event loop thread, so this blocks it while waiting.
    """

    def __init__(self, db: Database, hub: Optional[SubscriptionHub] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 read_retries: int = 3, retry_delay: float = 0.05):
        self.db = db
        self.hub = hub if hub else SubscriptionHub()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.read_retries = read_retries
        self.retry_delay = retry_delay

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _read(self, operation: str, query: str, params: tuple) -> List[Dict[str, Any]]:
        def run():
            try:
                return self.db.execute(query, params)
            except sqlite3.Error as e:
                logger.error("Failed to %s: %s", operation, e, exc_info=True)
                raise RecordStoreError(f"Failed to {operation}", _error_code(e))

        return retry_operation(run, max_retries=self.read_retries, delay=self.retry_delay)

    def _write(self, operation: str, query: str, params: tuple) -> int:
        try:
            return self.db.execute_write(query, params)
        except sqlite3.Error as e:
            logger.error("Failed to %s: %s", operation, e, exc_info=True)
            raise RecordStoreError(f"Failed to {operation}", _error_code(e))

    def _now(self) -> str:
        return self._clock().isoformat()

    def _publish(self, user_id: str, collection: Collection) -> None:
        if self.hub.has_subscribers(user_id, collection.value):
            self.hub.publish(self.snapshot(user_id, collection.value))

    # =========================================================================
    # Queries
    # =========================================================================

    def list_tasks(self, user_id: str) -> List[Task]:
        rows = self._read(
            "fetch tasks",
            "SELECT * FROM tasks WHERE user_id = ? ORDER BY created_at DESC",
            (user_id,),
        )
        return [Task.from_dict(r) for r in rows]

    def list_categories(self, user_id: str) -> List[Category]:
        rows = self._read(
            "fetch categories",
            "SELECT * FROM categories WHERE user_id = ? ORDER BY created_at DESC",
            (user_id,),
        )
        return [Category.from_dict(r) for r in rows]

    def list_time_entries(self, user_id: str, task_id: Optional[str] = None) -> List[TimeEntry]:
        query = "SELECT * FROM time_entries WHERE user_id = ?"
        params: tuple = (user_id,)
        if task_id:
            query += " AND task_id = ?"
            params += (task_id,)
        query += " ORDER BY started_at DESC"
        rows = self._read("fetch time entries", query, params)
        return [TimeEntry.from_dict(r) for r in rows]

    def get_task(self, user_id: str, task_id: str) -> Task:
        rows = self._read(
            "fetch task",
            "SELECT * FROM tasks WHERE user_id = ? AND id = ?",
            (user_id, task_id),
        )
        if not rows:
            raise NotFoundError(f"Task not found: {task_id}")
        return Task.from_dict(rows[0])

    # =========================================================================
    # Live subscriptions
    # =========================================================================

    def snapshot(self, user_id: str, collection: str) -> Snapshot:
        """Build a snapshot of one collection; query failures become error snapshots."""
        loaders = {
            Collection.TASKS.value: self.list_tasks,
            Collection.CATEGORIES.value: self.list_categories,
            Collection.TIME_ENTRIES.value: self.list_time_entries,
        }
        collection = Collection(collection).value
        try:
            items = tuple(loaders[collection](user_id))
        except RecordStoreError as e:
            return Snapshot(collection=collection, user_id=user_id, error=e.message)
        return Snapshot(collection=collection, user_id=user_id, items=items)

    def subscribe(self, user_id: str, collection: str,
                  callback: SnapshotCallback) -> Subscription:
        """
        Subscribe to live changes of a collection.

        The current contents are delivered immediately, then again after
        every write to the collection for this user.
        """
        subscription = self.hub.subscribe(user_id, collection, callback)
        self.hub.deliver(subscription, self.snapshot(user_id, collection))
        return subscription

    def subscribe_tasks(self, user_id: str, callback: SnapshotCallback) -> Subscription:
        return self.subscribe(user_id, Collection.TASKS.value, callback)

    def subscribe_categories(self, user_id: str, callback: SnapshotCallback) -> Subscription:
        return self.subscribe(user_id, Collection.CATEGORIES.value, callback)

    def subscribe_time_entries(self, user_id: str, callback: SnapshotCallback) -> Subscription:
        return self.subscribe(user_id, Collection.TIME_ENTRIES.value, callback)

    # =========================================================================
    # Tasks
    # =========================================================================

    def create_task(self, user_id: str, data: Dict[str, Any]) -> Task:
        """
        Create a task.

        Args:
            user_id: Owning user
            data: title (required), description, project, priority,
                due_date, completed, time_spent

        Returns:
            The stored Task
        """
        now = self._now()
        task = Task(
            id=new_id(),
            user_id=user_id,
            title=data["title"].strip(),
            description=data.get("description") or "",
            project=(data.get("project") or "").strip(),
            priority=data.get("priority") or Priority.MEDIUM.value,
            completed=bool(data.get("completed", False)),
            time_spent=data.get("time_spent") or 0,
        )
        self._write(
            "create task",
            """
            INSERT INTO tasks (id, user_id, title, description, project, priority,
                               completed, time_spent, due_date, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (task.id, user_id, task.title, task.description, task.project, task.priority,
             int(task.completed), task.time_spent, _iso(data.get("due_date")), now, now),
        )
        logger.info("Created task %s for user %s", task.id, user_id)
        self._publish(user_id, Collection.TASKS)
        return self.get_task(user_id, task.id)

    def update_task(self, user_id: str, task_id: str, changes: Dict[str, Any]) -> Task:
        """Apply a partial update; unknown fields are ignored."""
        updates = {k: v for k, v in changes.items() if k in TASK_UPDATABLE_FIELDS}
        if "priority" in updates:
            updates["priority"] = Priority.coerce(updates["priority"]).value
        if "completed" in updates:
            updates["completed"] = int(bool(updates["completed"]))
        if "time_spent" in updates:
            updates["time_spent"] = max(0, int(updates["time_spent"] or 0))
        if "due_date" in updates:
            updates["due_date"] = _iso(updates["due_date"])

        updates["updated_at"] = self._now()
        assignments = ", ".join(f"{k} = ?" for k in updates)
        count = self._write(
            "update task",
            f"UPDATE tasks SET {assignments} WHERE user_id = ? AND id = ?",
            tuple(updates.values()) + (user_id, task_id),
        )
        if count == 0:
            raise NotFoundError(f"Task not found: {task_id}")

        self._publish(user_id, Collection.TASKS)
        return self.get_task(user_id, task_id)

    def toggle_task(self, user_id: str, task_id: str) -> Task:
        task = self.get_task(user_id, task_id)
        return self.update_task(user_id, task_id, {"completed": not task.completed})

    def add_time_spent(self, user_id: str, task_id: str, seconds: int) -> Task:
        """Add elapsed stopwatch seconds to a task's accumulated time."""
        count = self._write(
            "update task time",
            """
            UPDATE tasks SET time_spent = time_spent + ?, updated_at = ?
            WHERE user_id = ? AND id = ?
            """,
            (max(0, int(seconds)), self._now(), user_id, task_id),
        )
        if count == 0:
            raise NotFoundError(f"Task not found: {task_id}")

        self._publish(user_id, Collection.TASKS)
        return self.get_task(user_id, task_id)

    def delete_task(self, user_id: str, task_id: str, cascade: bool = False) -> None:
        """
        Delete a task.

        Args:
            cascade: Also delete the task's time entries
        """
        count = self._write(
            "delete task",
            "DELETE FROM tasks WHERE user_id = ? AND id = ?",
            (user_id, task_id),
        )
        if count == 0:
            raise NotFoundError(f"Task not found: {task_id}")

        if cascade:
            removed = self._write(
                "delete task time entries",
                "DELETE FROM time_entries WHERE user_id = ? AND task_id = ?",
                (user_id, task_id),
            )
            logger.info("Deleted %d time entries with task %s", removed, task_id)
            self._publish(user_id, Collection.TIME_ENTRIES)

        self._publish(user_id, Collection.TASKS)

    # =========================================================================
    # Categories
    # =========================================================================

    def create_category(self, user_id: str, name: str, color: Optional[str] = None) -> Category:
        category = Category(
            id=new_id(),
            user_id=user_id,
            name=name.strip(),
            color=color,
            created_at=self._clock(),
        )
        self._write(
            "create category",
            "INSERT INTO categories (id, user_id, name, color, created_at) VALUES (?, ?, ?, ?, ?)",
            (category.id, user_id, category.name, color, category.created_at.isoformat()),
        )
        self._publish(user_id, Collection.CATEGORIES)
        return category

    def delete_category(self, user_id: str, category_id: str) -> None:
        count = self._write(
            "delete category",
            "DELETE FROM categories WHERE user_id = ? AND id = ?",
            (user_id, category_id),
        )
        if count == 0:
            raise NotFoundError(f"Category not found: {category_id}")
        self._publish(user_id, Collection.CATEGORIES)

    # =========================================================================
    # Time entries
    # =========================================================================

    def create_time_entry(self, user_id: str, data: Dict[str, Any]) -> TimeEntry:
        """
        Store a finished time entry. Entries are never updated afterwards.

        Args:
            data: task_name, duration, started_at, ended_at, and optionally
                task_id and notes
        """
        entry = TimeEntry(
            id=new_id(),
            user_id=user_id,
            task_id=data.get("task_id"),
            task_name=data["task_name"].strip(),
            duration=data.get("duration") or 0,
            notes=data.get("notes"),
        )
        started_at = _iso(data.get("started_at"))
        ended_at = _iso(data.get("ended_at"))
        self._write(
            "create time entry",
            """
            INSERT INTO time_entries (id, user_id, task_id, task_name, duration,
                                      started_at, ended_at, notes)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (entry.id, user_id, entry.task_id, entry.task_name, entry.duration,
             started_at, ended_at, entry.notes),
        )
        self._publish(user_id, Collection.TIME_ENTRIES)
        return TimeEntry.from_dict({**entry.to_dict(), "started_at": started_at, "ended_at": ended_at})

    def delete_time_entry(self, user_id: str, entry_id: str) -> None:
        count = self._write(
            "delete time entry",
            "DELETE FROM time_entries WHERE user_id = ? AND id = ?",
            (user_id, entry_id),
        )
        if count == 0:
            raise NotFoundError(f"Time entry not found: {entry_id}")
        self._publish(user_id, Collection.TIME_ENTRIES)
