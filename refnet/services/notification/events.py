"""
Change notifications.

Closed set of notification kinds published after graph and ledger writes
commit. A notification is a hint to re-query, never the payload of record.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any, ClassVar

from refnet.utils.datetime_utils import as_utc, utc_now


class NotificationTopic(StrEnum):
    """Notification topic."""

    GRAPH = "graph"
    LEDGER = "ledger"


@dataclass(frozen=True)
class EdgeAdded:
    """A new member joined within max_depth below member_id."""

    kind: ClassVar[str] = "edge_added"
    topic: ClassVar[NotificationTopic] = NotificationTopic.GRAPH

    member_id: str
    new_member_id: str
    generation_distance: int
    occurred_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class CommissionCreated:
    """A commission record crediting member_id was written."""

    kind: ClassVar[str] = "commission_created"
    topic: ClassVar[NotificationTopic] = NotificationTopic.LEDGER

    member_id: str
    record_id: int
    event_id: str
    amount: Decimal
    generation_distance: int
    occurred_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class CommissionUpdated:
    """A commission record crediting member_id changed status."""

    kind: ClassVar[str] = "commission_updated"
    topic: ClassVar[NotificationTopic] = NotificationTopic.LEDGER

    member_id: str
    record_id: int
    status: str
    occurred_at: datetime = field(default_factory=utc_now)


ChangeNotification = EdgeAdded | CommissionCreated | CommissionUpdated

NOTIFICATION_TYPES: dict[str, type[ChangeNotification]] = {
    EdgeAdded.kind: EdgeAdded,
    CommissionCreated.kind: CommissionCreated,
    CommissionUpdated.kind: CommissionUpdated,
}


def notification_to_json(notification: ChangeNotification) -> str:
    """Serialize a notification, tagged by kind."""
    data: dict[str, Any] = {"kind": notification.kind}
    for key, value in asdict(notification).items():
        if isinstance(value, Decimal):
            value = str(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        data[key] = value
    return json.dumps(data)


def notification_from_json(raw: str | bytes) -> ChangeNotification:
    """
    Deserialize a notification.

    Raises:
        ValueError: Unknown kind or invalid fields
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Notification must be a JSON object")

    kind = data.pop("kind", None)
    notification_type = NOTIFICATION_TYPES.get(kind)
    if notification_type is None:
        raise ValueError(f"Unknown notification kind {kind!r}")

    if "occurred_at" in data:
        data["occurred_at"] = as_utc(datetime.fromisoformat(data["occurred_at"]))
    if notification_type is CommissionCreated:
        data["amount"] = Decimal(data["amount"])

    try:
        return notification_type(**data)
    except TypeError as e:
        raise ValueError(f"Invalid {kind} notification: {e}") from e
