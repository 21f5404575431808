"""
Stopwatch for tracking time against a task.

The stopwatch counts whole seconds on an asyncio event loop. Each tick is a
``loop.call_later`` handle, so pausing cancels the pending handle and no
tick is delivered after pause() returns.

    watch = Stopwatch(on_tick=lambda s: print(format_timer_display(s)))
    watch.start()
    ...
    watch.pause()
    save_timer_entry(store, uid, watch.elapsed, "Write report", task_id)
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from timetrack.core.models import TimeEntry
from timetrack.utils.errors import ValidationError
from timetrack.utils.time import format_timer_display

logger = logging.getLogger("timetrack.timer")


class Stopwatch:
    """
    One-second stopwatch.

    Args:
        on_tick: Called with the elapsed seconds after every tick
        loop: Event loop to schedule ticks on (the running loop by default)
        interval: Seconds between ticks
    """

    def __init__(self, on_tick: Optional[Callable[[int], None]] = None,
                 loop: Optional[asyncio.AbstractEventLoop] = None,
                 interval: float = 1.0):
        self.on_tick = on_tick
        self.loop = loop
        self.interval = interval
        self._bound_loop = loop is not None
        self.elapsed = 0
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    @property
    def display(self) -> str:
        return format_timer_display(self.elapsed)

    def start(self) -> None:
        """Start counting. No effect if already running."""
        if self.is_running:
            return
        if not self._bound_loop:
            self.loop = asyncio.get_running_loop()
        self._schedule()

    def pause(self) -> None:
        """Stop counting, keeping the elapsed time."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def reset(self) -> None:
        self.pause()
        self.elapsed = 0

    def _schedule(self) -> None:
        self._handle = self.loop.call_later(self.interval, self.tick)

    def tick(self) -> None:
        """Advance one second and schedule the next tick."""
        if self._handle is None:
            return
        self.elapsed += 1
        self._schedule()
        if self.on_tick:
            try:
                self.on_tick(self.elapsed)
            except Exception as e:
                logger.error("Timer tick callback failed: %s", e, exc_info=True)


def save_timer_entry(store, user_id: str, elapsed: int, task_name: str,
                     task_id: Optional[str] = None,
                     now: Optional[datetime] = None) -> TimeEntry:
    """
    Record a stopwatch session as a time entry.

    The entry spans ``[now - elapsed, now]``. When ``task_id`` is given the
    elapsed seconds are added to that task's accumulated time.

    Raises:
        ValidationError: If nothing was timed or the task name is blank
    """
    if not elapsed or elapsed <= 0:
        raise ValidationError("No time recorded", "elapsed")
    if not task_name or not task_name.strip():
        raise ValidationError("Task name is required", "task_name")

    ended_at = now or datetime.now(timezone.utc)
    started_at = ended_at - timedelta(seconds=int(elapsed))

    entry = store.create_time_entry(user_id, {
        "task_id": task_id,
        "task_name": task_name,
        "duration": int(elapsed),
        "started_at": started_at,
        "ended_at": ended_at,
    })
    if task_id:
        store.add_time_spent(user_id, task_id, int(elapsed))

    logger.info("Saved %ds for task %s", elapsed, task_id or task_name)
    return entry
