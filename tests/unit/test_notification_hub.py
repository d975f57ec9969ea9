"""
Unit tests for the notification hub.

Tests cover:
- Per-member routing and topic filters
- Drop-oldest behaviour for slow subscribers
- Lifecycle (publishing when stopped, stop ends iteration)
- Notification serialization
"""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from refnet.services.notification import (
    CommissionCreated,
    CommissionUpdated,
    EdgeAdded,
    NotificationHub,
    NotificationTopic,
    notification_from_json,
    notification_to_json,
)
from refnet.utils.exceptions import ValidationError

AT = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


def edge(member_id="alice", new_member_id="bob", distance=1):
    return EdgeAdded(member_id, new_member_id, distance, occurred_at=AT)


def created(member_id="alice", record_id=1):
    return CommissionCreated(
        member_id=member_id,
        record_id=record_id,
        event_id="tx-1",
        amount=Decimal("10.00"),
        generation_distance=1,
        occurred_at=AT,
    )


class TestRouting:
    """Test delivery to the right subscriptions."""

    async def test_delivers_to_member_subscription(self, hub):
        subscription = hub.subscribe("alice")

        hub.publish(edge())

        notification = await asyncio.wait_for(subscription.get(), 1)
        assert notification == edge()

    async def test_other_members_not_notified(self, hub):
        subscription = hub.subscribe("carol")

        hub.publish(edge(member_id="alice"))

        assert subscription.pending() == 0

    async def test_topic_filter(self, hub):
        ledger_only = hub.subscribe("alice", topics=[NotificationTopic.LEDGER])
        everything = hub.subscribe("alice")

        hub.publish(edge())
        hub.publish(created())

        assert ledger_only.pending() == 1
        assert everything.pending() == 2
        assert (await ledger_only.get()).kind == "commission_created"

    async def test_topic_names_accepted(self, hub):
        subscription = hub.subscribe("alice", topics=["graph"])
        assert subscription.topics == frozenset({NotificationTopic.GRAPH})

    async def test_deliver_counts_subscriptions(self, hub):
        hub.subscribe("alice")
        hub.subscribe("alice")

        assert hub.deliver(edge()) == 2
        assert hub.subscriber_count("alice") == 2
        assert hub.subscriber_count() == 2


class TestBackpressure:
    """Test bounded subscriber queues."""

    async def test_full_queue_drops_oldest(self, hub):
        subscription = hub.subscribe("alice", maxsize=2)

        hub.publish(edge(new_member_id="b1"))
        hub.publish(edge(new_member_id="b2"))
        hub.publish(edge(new_member_id="b3"))

        assert subscription.pending() == 2
        assert subscription.dropped == 1
        assert (await subscription.get()).new_member_id == "b2"
        assert (await subscription.get()).new_member_id == "b3"

    async def test_slow_subscriber_does_not_affect_others(self, hub):
        slow = hub.subscribe("alice", maxsize=1)
        fast = hub.subscribe("alice", maxsize=10)

        for i in range(5):
            hub.publish(edge(new_member_id=f"b{i}"))

        assert slow.dropped == 4
        assert fast.dropped == 0
        assert fast.pending() == 5

    async def test_invalid_maxsize(self, hub):
        with pytest.raises(ValidationError):
            hub.subscribe("alice", maxsize=-1)

    async def test_unknown_topic(self, hub):
        with pytest.raises(ValidationError):
            hub.subscribe("alice", topics=["graph", "nope"])

        assert hub.subscriber_count("alice") == 0


class TestLifecycle:
    """Test hub start and stop."""

    async def test_subscribe_requires_running_hub(self, config):
        hub = NotificationHub(config)

        with pytest.raises(RuntimeError):
            hub.subscribe("alice")

    async def test_publish_when_stopped_is_discarded(self, config):
        hub = NotificationHub(config)
        hub.publish(edge())
        assert hub.deliver(edge()) == 0

    async def test_stop_ends_iteration_after_queued(self, config):
        hub = NotificationHub(config)
        await hub.start()
        subscription = hub.subscribe("alice")
        hub.publish(edge())

        await hub.stop()

        received = [n async for n in subscription]
        assert received == [edge()]
        assert subscription.closed
        assert hub.subscriber_count() == 0

    async def test_waiting_consumer_released_by_stop(self, config):
        hub = NotificationHub(config)
        await hub.start()
        subscription = hub.subscribe("alice")

        async def consume():
            return [n async for n in subscription]

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)
        await hub.stop()

        assert await asyncio.wait_for(consumer, 1) == []

    async def test_context_manager_unsubscribes(self, hub):
        async with hub.subscribe("alice") as subscription:
            assert hub.subscriber_count("alice") == 1

        assert subscription.closed
        assert hub.subscriber_count("alice") == 0
        hub.publish(edge())
        assert subscription.pending() == 0


class TestSerialization:
    """Test notification JSON encoding."""

    def test_commission_created_keeps_decimal(self):
        restored = notification_from_json(notification_to_json(created()))

        assert restored == created()
        assert isinstance(restored.amount, Decimal)

    def test_updated_notification(self):
        updated = CommissionUpdated("alice", 7, "completed", occurred_at=AT)
        assert notification_from_json(notification_to_json(updated)) == updated

    @pytest.mark.parametrize(
        "raw",
        [
            "[]",
            '{"kind": "unknown"}',
            '{"kind": "edge_added", "member_id": "a"}',
            "not json",
        ],
    )
    def test_rejects_invalid_payloads(self, raw):
        with pytest.raises(ValueError):
            notification_from_json(raw)
