"""
Integration tests for change notifications published by the service.

Tests cover:
- Edge notifications to every ancestor within max_depth
- Ledger notifications for created and settled commissions
- Nothing published for redeliveries and no-op settlements
- Subscriptions ending when the service stops
"""

from decimal import Decimal

import pytest

from refnet.models.enums import CommissionStatus
from refnet.services.commission import QualifyingEvent
from refnet.services.notification import (
    CommissionCreated,
    CommissionUpdated,
    EdgeAdded,
    NotificationTopic,
)
from refnet.utils.exceptions import InvalidSponsorCode, ValidationError

pytestmark = pytest.mark.slow


async def drain(subscription):
    """Collect every queued notification."""
    notifications = []
    while subscription.pending():
        notifications.append(await subscription.get())
    return notifications


class TestGraphNotifications:
    """Test EdgeAdded notifications."""

    async def test_ancestors_notified(self, service, chain):
        members = await chain(2)
        root = service.subscribe("m0")
        parent = service.subscribe("m1")

        await service.enroll("m2", members[1].referral_code)

        [to_root] = await drain(root)
        [to_parent] = await drain(parent)
        assert isinstance(to_root, EdgeAdded)
        assert to_root.new_member_id == "m2"
        assert to_root.generation_distance == 2
        assert to_parent.generation_distance == 1

    async def test_beyond_max_depth_not_notified(self, service, chain):
        members = await chain(6)
        root = service.subscribe("m0")
        top_in_range = service.subscribe("m1")

        await service.enroll("m6", members[-1].referral_code)

        assert await drain(root) == []
        [notification] = await drain(top_in_range)
        assert notification.generation_distance == 5

    async def test_failed_enrollment_publishes_nothing(self, service, chain):
        await chain(1)
        root = service.subscribe("m0")

        with pytest.raises(InvalidSponsorCode):
            await service.enroll("m1", "NOPE1234")

        assert await drain(root) == []

    async def test_topic_filter(self, service, chain):
        members = await chain(1)
        ledger_only = service.subscribe("m0", topics=[NotificationTopic.LEDGER])

        await service.enroll("m1", members[0].referral_code)

        assert await drain(ledger_only) == []

    async def test_unknown_topic_rejected(self, service):
        with pytest.raises(ValidationError):
            service.subscribe("m0", topics=["nope"])


class TestLedgerNotifications:
    """Test commission notifications."""

    async def test_distribution_notifies_recipients(self, service, chain):
        await chain(3)
        root = service.subscribe("m0")
        parent = service.subscribe("m1")

        result = await service.distribute(
            QualifyingEvent("tx-1", "m2", Decimal("1000"))
        )

        [to_parent] = await drain(parent)
        [to_root] = await drain(root)
        assert isinstance(to_parent, CommissionCreated)
        assert to_parent.event_id == "tx-1"
        assert to_parent.amount == Decimal("100.00")
        assert to_parent.generation_distance == 1
        assert to_root.amount == Decimal("50.00")
        assert {to_parent.record_id, to_root.record_id} == {
            record.id for record in result.records
        }

    async def test_redelivery_publishes_nothing(self, service, chain):
        await chain(2)
        event = QualifyingEvent("tx-1", "m1", Decimal("1000"))
        await service.distribute(event)
        root = service.subscribe("m0")

        result = await service.distribute(event)

        assert result.already_processed
        assert await drain(root) == []

    async def test_settlement_notifies_recipient(self, service, chain):
        await chain(2)
        result = await service.distribute(
            QualifyingEvent("tx-1", "m1", Decimal("1000"))
        )
        record_id = result.records[0].id
        root = service.subscribe("m0")

        await service.mark_processing(record_id)
        await service.settle(record_id, "completed")
        await service.settle(record_id, "completed")

        notifications = await drain(root)
        assert all(isinstance(n, CommissionUpdated) for n in notifications)
        assert [n.status for n in notifications] == [
            CommissionStatus.PROCESSING,
            CommissionStatus.COMPLETED,
        ]
        assert {n.record_id for n in notifications} == {record_id}

    async def test_graph_only_subscriber_skips_ledger(self, service, chain):
        await chain(2)
        graph_only = service.subscribe("m0", topics=["graph"])

        await service.distribute(QualifyingEvent("tx-1", "m1", Decimal("1000")))

        assert await drain(graph_only) == []


class TestLifecycle:
    """Test subscriptions across service shutdown."""

    async def test_stop_ends_subscriptions(self, service, chain):
        await chain(1)
        subscription = service.subscribe("m0")

        await service.stop()

        received = [notification async for notification in subscription]
        assert received == []
        assert subscription.closed

    async def test_subscribe_after_stop_rejected(self, service):
        await service.stop()

        with pytest.raises(RuntimeError):
            service.subscribe("m0")
