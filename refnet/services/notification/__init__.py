"""
Notification services package.

- events: Closed set of change notification kinds
- hub: In-process fan-out with bounded per-subscriber queues
- relay: Cross-process fan-out over Redis pub/sub
"""

from refnet.services.notification.events import (
    ChangeNotification,
    CommissionCreated,
    CommissionUpdated,
    EdgeAdded,
    NotificationTopic,
    notification_from_json,
    notification_to_json,
)
from refnet.services.notification.hub import NotificationHub, Subscription
from refnet.services.notification.relay import RedisNotificationRelay


__all__ = [
    # Notifications
    "ChangeNotification",
    "CommissionCreated",
    "CommissionUpdated",
    "EdgeAdded",
    "NotificationTopic",
    "notification_from_json",
    "notification_to_json",
    # Delivery
    "NotificationHub",
    "RedisNotificationRelay",
    "Subscription",
]
