"""
Qualifying events.

A qualifying event is an external occurrence (a settled payment, a signup)
pushed by the settlement collaborator that triggers commission
distribution. Events are closed, typed values; raw payloads are parsed and
validated once at the edge.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from refnet.config.constants import DEFAULT_CURRENCY, MAX_MONEY_AMOUNT
from refnet.models.enums import EventKind
from refnet.utils.datetime_utils import as_utc, utc_now
from refnet.utils.exceptions import MalformedEvent

MAX_EVENT_ID_LENGTH = 128


@dataclass(frozen=True)
class QualifyingEvent:
    """
    Qualifying event.

    Attributes:
        event_id: Idempotency key (e.g. a transaction identifier)
        acting_member_id: Member whose activity triggered the event
        base_amount: Amount commissions are computed from
        currency: Currency code
        kind: Event kind
        occurred_at: When the event happened upstream
    """

    event_id: str
    acting_member_id: str
    base_amount: Decimal
    currency: str = DEFAULT_CURRENCY
    kind: EventKind = EventKind.TRANSACTION
    occurred_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not isinstance(self.event_id, str) or not self.event_id.strip():
            raise MalformedEvent("event_id is required")
        if len(self.event_id) > MAX_EVENT_ID_LENGTH:
            raise MalformedEvent(
                "event_id must be at most 128 characters",
                event_id=self.event_id,
            )
        if (
            not isinstance(self.acting_member_id, str)
            or not self.acting_member_id.strip()
        ):
            raise MalformedEvent(
                "member_id is required", event_id=self.event_id
            )
        if not isinstance(self.base_amount, Decimal):
            raise MalformedEvent(
                "base_amount must be a Decimal", event_id=self.event_id
            )
        if not self.base_amount.is_finite() or self.base_amount < 0:
            raise MalformedEvent(
                f"Invalid base_amount {self.base_amount}",
                event_id=self.event_id,
            )
        if self.base_amount > MAX_MONEY_AMOUNT:
            raise MalformedEvent(
                f"base_amount {self.base_amount} exceeds {MAX_MONEY_AMOUNT}",
                event_id=self.event_id,
            )
        if not isinstance(self.currency, str) or not self.currency.strip():
            raise MalformedEvent(
                "currency is required", event_id=self.event_id
            )
        if not isinstance(self.kind, EventKind):
            raise MalformedEvent(
                f"Unknown event kind {self.kind!r}", event_id=self.event_id
            )
        if not isinstance(self.occurred_at, datetime):
            raise MalformedEvent(
                "occurred_at must be a datetime", event_id=self.event_id
            )

        # Frozen: normalize through object.__setattr__
        object.__setattr__(self, "currency", self.currency.strip().upper())
        object.__setattr__(self, "occurred_at", as_utc(self.occurred_at))

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "QualifyingEvent":
        """
        Parse a pushed payload.

        Accepts member_id or acting_member_id, amount or base_amount,
        and an ISO-8601 occurred_at.

        Args:
            payload: Event payload

        Returns:
            Validated event

        Raises:
            MalformedEvent: If the payload cannot be parsed
        """
        if not isinstance(payload, dict):
            raise MalformedEvent("Event payload must be an object")

        event_id = payload.get("event_id")
        member_id = payload.get("member_id", payload.get("acting_member_id"))
        raw_amount = payload.get("amount", payload.get("base_amount"))

        if raw_amount is None or isinstance(raw_amount, bool):
            raise MalformedEvent("amount is required", event_id=event_id)
        try:
            base_amount = Decimal(str(raw_amount))
        except InvalidOperation as e:
            raise MalformedEvent(
                f"Invalid amount {raw_amount!r}", event_id=event_id
            ) from e

        raw_kind = payload.get("kind", EventKind.TRANSACTION.value)
        try:
            kind = EventKind(raw_kind)
        except ValueError as e:
            raise MalformedEvent(
                f"Unknown event kind {raw_kind!r}", event_id=event_id
            ) from e

        raw_occurred = payload.get("occurred_at")
        if raw_occurred is None:
            occurred_at = utc_now()
        elif isinstance(raw_occurred, datetime):
            occurred_at = raw_occurred
        else:
            try:
                occurred_at = datetime.fromisoformat(str(raw_occurred))
            except ValueError as e:
                raise MalformedEvent(
                    f"Invalid occurred_at {raw_occurred!r}", event_id=event_id
                ) from e

        return cls(
            event_id=event_id,
            acting_member_id=member_id,
            base_amount=base_amount,
            currency=payload.get("currency", DEFAULT_CURRENCY),
            kind=kind,
            occurred_at=occurred_at,
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize for a message queue."""
        return {
            "event_id": self.event_id,
            "member_id": self.acting_member_id,
            "amount": str(self.base_amount),
            "currency": self.currency,
            "kind": self.kind.value,
            "occurred_at": self.occurred_at.isoformat(),
        }
