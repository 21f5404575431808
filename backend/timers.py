"""
Per-user stopwatches for the API.

Each signed-in user gets one Stopwatch plus the task it is running against.
WebSocket connections register listeners to receive the timer state on
every tick and on every start/pause/reset.
"""

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from timetrack.store.subscriptions import Subscription
from timetrack.timer import Stopwatch

logger = logging.getLogger("backend.timers")

TimerListener = Callable[[Dict[str, Any]], None]


@dataclass
class TimerSession:
    """A user's stopwatch and the task it is timing."""
    stopwatch: Stopwatch
    task_id: Optional[str] = None
    task_name: Optional[str] = None
    listeners: List[Subscription] = field(default_factory=list)

    def state(self) -> Dict[str, Any]:
        return {
            "elapsed": self.stopwatch.elapsed,
            "display": self.stopwatch.display,
            "is_running": self.stopwatch.is_running,
            "task_id": self.task_id,
            "task_name": self.task_name,
        }


class TimerRegistry:
    """Stopwatch sessions keyed by user id."""

    def __init__(self):
        self._sessions: Dict[str, TimerSession] = {}

    def get(self, user_id: str) -> TimerSession:
        session = self._sessions.get(user_id)
        if session is None:
            session = TimerSession(stopwatch=Stopwatch(on_tick=partial(self._on_tick, user_id)))
            self._sessions[user_id] = session
        return session

    def _on_tick(self, user_id: str, elapsed: int) -> None:
        self.notify(user_id)

    def notify(self, user_id: str) -> None:
        """Push the current state to every listener of ``user_id``."""
        session = self._sessions.get(user_id)
        if session is None:
            return
        state = session.state()
        for subscription in list(session.listeners):
            if not subscription.active:
                continue
            try:
                subscription.callback(state)
            except Exception as e:
                logger.error("Timer listener failed for %s: %s", user_id, e, exc_info=True)

    def add_listener(self, user_id: str, callback: TimerListener) -> Subscription:
        session = self.get(user_id)

        def release(subscription: Subscription) -> None:
            if subscription in session.listeners:
                session.listeners.remove(subscription)

        subscription = Subscription(release, ("timer", user_id), callback)
        session.listeners.append(subscription)
        return subscription

    def stop_all(self) -> None:
        """Pause every running stopwatch (application shutdown)."""
        for session in self._sessions.values():
            session.stopwatch.pause()
        logger.debug("Stopped %d timers", len(self._sessions))
