"""
Dashboard controller.

Bridges the record store's live subscriptions to the analytics engine.
Three streams (tasks, categories, time entries) are subscribed on
activation; the controller reports "loading" until each stream has
delivered its first snapshot, then recomputes the full AnalyticsView
from scratch after every snapshot.

Usage:
    controller = DashboardController(store, user_id, on_change=render)
    controller.activate()
    ...
    controller.deactivate()   # releases all three subscriptions
"""

import logging
from datetime import datetime, timezone
from functools import partial
from typing import Callable, Dict, Optional, Tuple

from timetrack.analytics.engine import AnalyticsView, build_analytics, filter_by_date_range
from timetrack.store.subscriptions import Collection, Snapshot, Subscription
from timetrack.utils.time import align_timezones
from timetrack.utils.validation import validate_date_range

logger = logging.getLogger("timetrack.dashboard")


class DashboardController:
    """
    Holds the latest combined dashboard view for one user.

    Args:
        gateway: Record store exposing subscribe_tasks, subscribe_categories
            and subscribe_time_entries
        user_id: Owner of the subscribed collections
        on_change: Called with the new AnalyticsView after every recompute
            once the controller is ready
        on_ready: Called once per activation when all streams have arrived
        clock: Returns "now" for month/week bucketing
        months: Trailing months in the monthly series
        top_limit: Size of the most-time-consuming list
        week_start: "sunday" or "monday"
    """

    STREAMS = (
        Collection.TASKS.value,
        Collection.CATEGORIES.value,
        Collection.TIME_ENTRIES.value,
    )

    def __init__(self, gateway, user_id: str,
                 on_change: Optional[Callable[[AnalyticsView], None]] = None,
                 on_ready: Optional[Callable[[AnalyticsView], None]] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 months: int = 6, top_limit: int = 10, week_start: str = "sunday"):
        self.gateway = gateway
        self.user_id = user_id
        self.on_change = on_change
        self.on_ready = on_ready
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.months = months
        self.top_limit = top_limit
        self.week_start = week_start

        self.active = False
        self.loading = True
        self.pending = 0
        self.view: Optional[AnalyticsView] = None
        self.date_range: Optional[Tuple[datetime, datetime]] = None

        self._subscriptions: Dict[str, Subscription] = {}
        self._received = set()
        self._collections: Dict[str, tuple] = {stream: () for stream in self.STREAMS}

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def activate(self) -> None:
        """Open the three subscriptions. Calling twice has no effect."""
        if self.active:
            return
        if not self.user_id:
            raise ValueError("Cannot activate dashboard without a user id")

        self.active = True
        self.loading = True
        self.pending = len(self.STREAMS)
        self._received = set()

        subscribers = {
            Collection.TASKS.value: self.gateway.subscribe_tasks,
            Collection.CATEGORIES.value: self.gateway.subscribe_categories,
            Collection.TIME_ENTRIES.value: self.gateway.subscribe_time_entries,
        }
        try:
            for stream in self.STREAMS:
                self._subscriptions[stream] = subscribers[stream](
                    self.user_id, partial(self._on_snapshot, stream)
                )
        except Exception:
            logger.error("Failed to open dashboard subscriptions for %s", self.user_id)
            self.deactivate()
            raise

        logger.info("Dashboard activated for user %s", self.user_id)

    def deactivate(self) -> None:
        """Release every subscription and drop in-memory collections."""
        for subscription in list(self._subscriptions.values()):
            subscription.unsubscribe()
        self._subscriptions.clear()

        was_active = self.active
        self.active = False
        self.loading = True
        self.pending = 0
        self.view = None
        self._collections = {stream: () for stream in self.STREAMS}

        if was_active:
            logger.info("Dashboard deactivated for user %s", self.user_id)

    def __enter__(self):
        self.activate()
        return self

    def __exit__(self, *exc):
        self.deactivate()

    # =========================================================================
    # Snapshot handling
    # =========================================================================

    def _on_snapshot(self, stream: str, snapshot: Optional[Snapshot]) -> None:
        if not self.active:
            return

        if snapshot is None:
            items: tuple = ()
        elif snapshot.error:
            logger.error("%s stream failed for %s: %s", stream, self.user_id, snapshot.error)
            items = ()
        else:
            items = tuple(snapshot.items)

        # Replace, never mutate, so a reader never sees a half-updated tuple
        self._collections[stream] = items

        if stream not in self._received:
            self._received.add(stream)
            self.pending -= 1

        self._recompute()

        if self.loading and self.pending == 0:
            self.loading = False
            logger.debug("Dashboard ready for %s", self.user_id)
            if self.on_ready:
                self.on_ready(self.view)

        if not self.loading:
            self._notify()

    def _recompute(self) -> None:
        tasks = self._collections[Collection.TASKS.value]
        entries = self._collections[Collection.TIME_ENTRIES.value]
        if self.date_range:
            tasks, entries = filter_by_date_range(tasks, entries, *self.date_range)

        self.view = build_analytics(
            tasks,
            entries,
            now=self._clock(),
            months=self.months,
            top_limit=self.top_limit,
            week_start=self.week_start,
            category_count=len(self._collections[Collection.CATEGORIES.value]),
        )

    def _notify(self) -> None:
        if self.on_change:
            self.on_change(self.view)

    # =========================================================================
    # Filtering
    # =========================================================================

    def set_date_range(self, start: datetime, end: datetime) -> None:
        """
        Restrict the view to records inside [start, end].

        Raises:
            ValidationError: If the range is invalid
        """
        validate_date_range(start, end).raise_if_invalid()
        self.date_range = align_timezones(start, end)
        self._refresh()

    def clear_date_range(self) -> None:
        self.date_range = None
        self._refresh()

    def _refresh(self) -> None:
        if self.active and not self.loading:
            self._recompute()
            self._notify()

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def ready(self) -> bool:
        return self.active and not self.loading

    @property
    def tasks(self) -> tuple:
        return self._collections[Collection.TASKS.value]

    @property
    def categories(self) -> tuple:
        return self._collections[Collection.CATEGORIES.value]

    @property
    def time_entries(self) -> tuple:
        return self._collections[Collection.TIME_ENTRIES.value]
