"""
Unit tests for the subscription hub.
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from timetrack.store.subscriptions import Snapshot, SubscriptionHub


@pytest.fixture
def hub():
    return SubscriptionHub()


class TestSubscriptionHub:

    def test_publish_reaches_topic_subscribers_only(self, hub):
        received = []
        hub.subscribe("u1", "tasks", received.append)
        hub.subscribe("u2", "tasks", lambda s: received.append(("other", s)))
        hub.subscribe("u1", "categories", lambda s: received.append(("cat", s)))

        delivered = hub.publish(Snapshot("tasks", "u1", items=("a",)))

        assert delivered == 1
        assert len(received) == 1
        assert received[0].items == ("a",)

    def test_unknown_collection_rejected(self, hub):
        with pytest.raises(ValueError):
            hub.subscribe("u1", "projects", lambda s: None)

    def test_unsubscribe_stops_delivery(self, hub):
        received = []
        subscription = hub.subscribe("u1", "tasks", received.append)

        subscription.unsubscribe()
        subscription.unsubscribe()
        hub.publish(Snapshot("tasks", "u1"))

        assert received == []
        assert not subscription.active
        assert not hub.has_subscribers("u1", "tasks")

    def test_context_manager_unsubscribes(self, hub):
        with hub.subscribe("u1", "tasks", lambda s: None):
            assert hub.subscriber_count("u1") == 1

        assert hub.subscriber_count() == 0

    def test_deliver_skips_inactive_subscription(self, hub):
        received = []
        subscription = hub.subscribe("u1", "tasks", received.append)
        subscription.unsubscribe()

        hub.deliver(subscription, Snapshot("tasks", "u1"))

        assert received == []

    def test_failing_subscriber_does_not_block_others(self, hub):
        received = []

        def broken(snapshot):
            raise RuntimeError("subscriber bug")

        hub.subscribe("u1", "tasks", broken)
        hub.subscribe("u1", "tasks", received.append)

        assert hub.publish(Snapshot("tasks", "u1")) == 2
        assert len(received) == 1

    def test_callback_may_unsubscribe_itself(self, hub):
        calls = []

        def once(snapshot):
            calls.append(snapshot)
            subscription.unsubscribe()

        subscription = hub.subscribe("u1", "tasks", once)
        hub.publish(Snapshot("tasks", "u1"))
        hub.publish(Snapshot("tasks", "u1"))

        assert len(calls) == 1

    def test_subscriber_count_by_user(self, hub):
        hub.subscribe("u1", "tasks", lambda s: None)
        hub.subscribe("u1", "time_entries", lambda s: None)
        hub.subscribe("u2", "tasks", lambda s: None)

        assert hub.subscriber_count("u1") == 2
        assert hub.subscriber_count() == 3


class TestSnapshot:

    def test_ok_and_len(self):
        snapshot = Snapshot("tasks", "u1", items=(1, 2))

        assert snapshot.ok
        assert len(snapshot) == 2

    def test_error_snapshot(self):
        snapshot = Snapshot("tasks", "u1", error="Failed to fetch tasks")

        assert not snapshot.ok
        assert len(snapshot) == 0
