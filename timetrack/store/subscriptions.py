"""
Live-query subscriptions for the record store.

Pub/Sub: each (user_id, collection) pair is a topic. Writers publish a fresh
snapshot after every change; subscribers receive immutable Snapshot objects
through their callback.

    hub = SubscriptionHub()
    sub = hub.subscribe("uid-1", "tasks", on_tasks)
    hub.publish(Snapshot("tasks", "uid-1", items=(...)))
    sub.unsubscribe()   # no further callbacks after this returns
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Any

logger = logging.getLogger("timetrack.store.subscriptions")


class Collection(str, Enum):
    """Record collections that support live subscriptions"""
    TASKS = "tasks"
    CATEGORIES = "categories"
    TIME_ENTRIES = "time_entries"


@dataclass(frozen=True)
class Snapshot:
    """
    Immutable copy of a collection's current contents for one user.

    ``error`` is set when the query backing the snapshot failed; ``items``
    is then empty.
    """
    collection: str
    user_id: str
    items: Tuple[Any, ...] = ()
    error: Optional[str] = None
    delivered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return self.error is None

    def __len__(self) -> int:
        return len(self.items)


SnapshotCallback = Callable[[Snapshot], None]


class Subscription:
    """Handle returned by subscribe(); call unsubscribe() to stop delivery."""

    def __init__(self, release: Callable[["Subscription"], None],
                 topic: Tuple[str, str], callback: SnapshotCallback):
        self._release = release
        self.topic = topic
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        """Stop delivery. Safe to call more than once."""
        if self.active:
            self.active = False
            self._release(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.unsubscribe()


class SubscriptionHub:
    """
    Registry of live subscriptions keyed by (user_id, collection).

    Delivery and unsubscription share a lock, so once unsubscribe()
    returns the callback will not be invoked again.
    """

    def __init__(self):
        self._subscribers: Dict[Tuple[str, str], List[Subscription]] = {}
        self._lock = threading.RLock()

    def subscribe(self, user_id: str, collection: str,
                  callback: SnapshotCallback) -> Subscription:
        topic = (user_id, Collection(collection).value)
        subscription = Subscription(self._remove, topic, callback)
        with self._lock:
            self._subscribers.setdefault(topic, []).append(subscription)
        logger.debug("Subscribed to %s/%s", collection, user_id)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscribers.get(subscription.topic, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
            if not subscribers:
                self._subscribers.pop(subscription.topic, None)
        logger.debug("Unsubscribed from %s/%s", subscription.topic[1], subscription.topic[0])

    def deliver(self, subscription: Subscription, snapshot: Snapshot) -> None:
        """Deliver a snapshot to one subscriber (used for the initial snapshot)."""
        with self._lock:
            if not subscription.active:
                return
            self._invoke(subscription, snapshot)

    def publish(self, snapshot: Snapshot) -> int:
        """
        Send a snapshot to every subscriber of its topic.

        Returns:
            Number of subscribers the snapshot was delivered to
        """
        topic = (snapshot.user_id, snapshot.collection)
        delivered = 0
        with self._lock:
            # Copy so callbacks may unsubscribe while we iterate
            for subscription in list(self._subscribers.get(topic, [])):
                if subscription.active:
                    self._invoke(subscription, snapshot)
                    delivered += 1
        return delivered

    def _invoke(self, subscription: Subscription, snapshot: Snapshot) -> None:
        try:
            subscription.callback(snapshot)
        except Exception as e:
            # A failing subscriber must not break the writer or other subscribers
            logger.error("Subscriber for %s failed: %s", snapshot.collection, e, exc_info=True)

    def has_subscribers(self, user_id: str, collection: str) -> bool:
        with self._lock:
            return bool(self._subscribers.get((user_id, collection)))

    def subscriber_count(self, user_id: Optional[str] = None) -> int:
        with self._lock:
            return sum(
                len(subs) for (uid, _), subs in self._subscribers.items()
                if user_id is None or uid == user_id
            )
