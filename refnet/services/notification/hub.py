"""
Notification hub.

Process-wide fan-out of change notifications to per-member subscriptions.
Each subscription owns a bounded queue: when it is full the oldest
notification is dropped, and publishing never blocks the writer. After a
gap the consumer resynchronizes through the read APIs.
"""

import asyncio
from collections import defaultdict
from collections.abc import Iterable
from typing import TYPE_CHECKING

from loguru import logger

from refnet.config.settings import Settings, settings
from refnet.services.notification.events import (
    ChangeNotification,
    NotificationTopic,
)
from refnet.utils.exceptions import ValidationError

if TYPE_CHECKING:
    from refnet.services.notification.relay import RedisNotificationRelay


_CLOSED = object()


class Subscription:
    """
    Live stream of notifications for one member.

    Usage:
        async with hub.subscribe(member_id) as subscription:
            async for notification in subscription:
                ...
    """

    def __init__(
        self,
        hub: "NotificationHub",
        member_id: str,
        topics: frozenset[NotificationTopic],
        maxsize: int,
    ) -> None:
        self.hub = hub
        self.member_id = member_id
        self.topics = topics
        self.maxsize = maxsize
        self.dropped = 0
        self.closed = False
        # One extra slot so close() can always enqueue its sentinel
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize + 1)

    def matches(self, notification: ChangeNotification) -> bool:
        return (
            not self.closed
            and notification.member_id == self.member_id
            and notification.topic in self.topics
        )

    def offer(self, notification: ChangeNotification) -> None:
        """Enqueue without blocking, dropping the oldest when full."""
        if self.closed:
            return
        if self._queue.qsize() >= self.maxsize:
            self._queue.get_nowait()
            self.dropped += 1
            logger.debug(
                "Notification dropped for slow subscriber",
                extra={"member_id": self.member_id, "dropped": self.dropped},
            )
        self._queue.put_nowait(notification)

    def pending(self) -> int:
        """Number of queued notifications."""
        size = self._queue.qsize()
        if self.closed:
            # Sentinel
            return max(size - 1, 0)
        return size

    async def get(self) -> ChangeNotification:
        """
        Wait for the next notification.

        Raises:
            StopAsyncIteration: Subscription closed
        """
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the sentinel for any other waiter
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        """Stop the subscription and end iteration."""
        if self.closed:
            return
        self.closed = True
        self.hub._remove(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeNotification:
        return await self.get()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class NotificationHub:
    """
    In-process notification hub with an explicit lifecycle.

    publish() is synchronous and must be called from the event loop that
    owns the subscriptions.
    """

    def __init__(
        self,
        config: Settings | None = None,
        queue_size: int | None = None,
    ) -> None:
        self.config = config or settings
        self.queue_size = queue_size or self.config.notification_queue_size
        self.relay: RedisNotificationRelay | None = None
        self._subscriptions: dict[str, set[Subscription]] = defaultdict(set)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def attach_relay(self, relay: "RedisNotificationRelay") -> None:
        """Route publishes through a cross-process relay."""
        self.relay = relay

    async def start(self) -> None:
        """Start accepting subscriptions and publishes."""
        if self._running:
            return
        self._running = True
        if self.relay is not None:
            await self.relay.start()
        logger.info(
            "Notification hub started",
            extra={"relay": self.relay is not None},
        )

    async def stop(self) -> None:
        """Stop the relay and end every subscription."""
        if not self._running:
            return
        self._running = False
        if self.relay is not None:
            await self.relay.stop()

        subscriptions = [
            subscription
            for member_subscriptions in self._subscriptions.values()
            for subscription in member_subscriptions
        ]
        for subscription in subscriptions:
            subscription.close()
        self._subscriptions.clear()
        logger.info(
            "Notification hub stopped",
            extra={"closed_subscriptions": len(subscriptions)},
        )

    def subscribe(
        self,
        member_id: str,
        topics: Iterable[NotificationTopic | str] | None = None,
        maxsize: int | None = None,
    ) -> Subscription:
        """
        Subscribe to a member's notifications.

        Args:
            member_id: Member whose changes to receive
            topics: Topics to receive (all if None)
            maxsize: Queue bound (defaults to notification_queue_size)

        Returns:
            Subscription

        Raises:
            RuntimeError: If the hub is not running
            ValidationError: Unknown topic or maxsize below 1
        """
        if not self._running:
            raise RuntimeError("Notification hub is not running")

        try:
            selected = (
                frozenset(NotificationTopic)
                if topics is None
                else frozenset(NotificationTopic(topic) for topic in topics)
            )
        except ValueError as e:
            raise ValidationError(
                f"Unknown notification topic in {topics!r}", member_id=member_id
            ) from e

        size = maxsize or self.queue_size
        if size < 1:
            raise ValidationError("maxsize must be at least 1", maxsize=maxsize)

        subscription = Subscription(self, member_id, selected, size)
        self._subscriptions[member_id].add(subscription)
        logger.debug(
            "Subscription opened",
            extra={"member_id": member_id, "topics": sorted(selected)},
        )
        return subscription

    def publish(self, notification: ChangeNotification) -> None:
        """
        Publish a notification without blocking.

        Goes through the relay when one is attached, otherwise straight to
        local subscribers.
        """
        if not self._running:
            logger.debug(
                "Notification discarded, hub not running",
                extra={"kind": notification.kind},
            )
            return

        if self.relay is not None and self.relay.running:
            self.relay.enqueue(notification)
            return

        self.deliver(notification)

    def publish_many(self, notifications: Iterable[ChangeNotification]) -> None:
        for notification in notifications:
            self.publish(notification)

    def deliver(self, notification: ChangeNotification) -> int:
        """
        Hand a notification to matching local subscriptions.

        Returns:
            Number of subscriptions that received it
        """
        delivered = 0
        for subscription in list(self._subscriptions.get(notification.member_id, ())):
            if subscription.matches(notification):
                subscription.offer(notification)
                delivered += 1
        return delivered

    def subscriber_count(self, member_id: str | None = None) -> int:
        if member_id is not None:
            return len(self._subscriptions.get(member_id, ()))
        return sum(len(subs) for subs in self._subscriptions.values())

    def _remove(self, subscription: Subscription) -> None:
        member_subscriptions = self._subscriptions.get(subscription.member_id)
        if not member_subscriptions:
            return
        member_subscriptions.discard(subscription)
        if not member_subscriptions:
            del self._subscriptions[subscription.member_id]
