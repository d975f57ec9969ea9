"""
Redis notification relay.

Fans hub publishes out across processes through a Redis pub/sub channel.
Outbound notifications wait in a bounded queue (oldest dropped on
overflow); every process's listener feeds the channel back into its local
hub. When Redis is unavailable notifications are delivered locally.
"""

import asyncio
import contextlib

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import RedisError

from refnet.config.settings import Settings, settings
from refnet.services.notification.events import (
    ChangeNotification,
    notification_from_json,
    notification_to_json,
)
from refnet.services.notification.hub import NotificationHub
from refnet.utils.redis_utils import get_redis_client

OUTBOUND_QUEUE_SIZE = 1000
LISTEN_POLL_SECONDS = 1.0


class RedisNotificationRelay:
    """Cross-process relay for a NotificationHub."""

    def __init__(
        self,
        hub: NotificationHub,
        redis_client: redis.Redis | None = None,
        config: Settings | None = None,
        channel: str | None = None,
        queue_size: int = OUTBOUND_QUEUE_SIZE,
    ) -> None:
        """
        Initialize relay and attach it to the hub.

        Args:
            hub: Local hub receiving relayed notifications
            redis_client: Redis client (created from settings if None)
            config: Settings (defaults to global settings)
            channel: Pub/sub channel (defaults to notification_channel)
            queue_size: Outbound queue bound
        """
        self.hub = hub
        self.config = config or settings
        self.channel = channel or self.config.notification_channel
        self._owns_client = redis_client is None
        self.redis = redis_client or get_redis_client(self.config)
        self.dropped = 0
        self.fallback_deliveries = 0
        self._outbound: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._pubsub = None
        self._tasks: list[asyncio.Task] = []
        self._running = False
        hub.attach_relay(self)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Subscribe to the channel and start forwarding."""
        if self._running:
            return

        try:
            self._pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
            await self._pubsub.subscribe(self.channel)
        except RedisError as e:
            logger.warning(
                f"Notification relay unavailable, delivering locally: {e}"
            )
            self._pubsub = None
            return

        self._running = True
        self._tasks = [
            asyncio.create_task(self._forward(), name="notification-relay-forward"),
            asyncio.create_task(self._listen(), name="notification-relay-listen"),
        ]
        logger.info(
            "Notification relay started", extra={"channel": self.channel}
        )

    async def stop(self) -> None:
        """Stop forwarding and release Redis resources."""
        if not self._running:
            return
        self._running = False

        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []

        # Drain what was never forwarded
        while not self._outbound.empty():
            await self._publish(self._outbound.get_nowait())

        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(self.channel)
                await self._pubsub.aclose()
            except RedisError as e:
                logger.warning(f"Error closing relay subscription: {e}")
            self._pubsub = None

        if self._owns_client:
            await self.redis.aclose()

        logger.info("Notification relay stopped")

    def enqueue(self, notification: ChangeNotification) -> None:
        """Queue a notification for Redis without blocking."""
        if self._outbound.full():
            self._outbound.get_nowait()
            self.dropped += 1
            logger.warning(
                "Notification relay queue full, dropped oldest",
                extra={"dropped": self.dropped},
            )
        self._outbound.put_nowait(notification)

    async def _forward(self) -> None:
        while True:
            notification = await self._outbound.get()
            await self._publish(notification)

    async def _publish(self, notification: ChangeNotification) -> None:
        try:
            await self.redis.publish(
                self.channel, notification_to_json(notification)
            )
        except RedisError as e:
            self.fallback_deliveries += 1
            logger.warning(
                f"Relay publish failed, delivering locally: {e}",
                extra={"kind": notification.kind},
            )
            self.hub.deliver(notification)

    async def _listen(self) -> None:
        while True:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=LISTEN_POLL_SECONDS,
                )
            except RedisError as e:
                logger.warning(f"Relay listener error: {e}")
                await asyncio.sleep(LISTEN_POLL_SECONDS)
                continue

            if not message or message.get("type") != "message":
                continue

            try:
                notification = notification_from_json(message["data"])
            except ValueError as e:
                logger.warning(f"Ignoring malformed relayed notification: {e}")
                continue

            self.hub.deliver(notification)
