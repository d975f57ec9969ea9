"""
Unit tests for qualifying event parsing.

Tests cover:
- Payload aliases and normalization
- Rejection of malformed payloads
- Serialization for the message queue
"""

from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from refnet.models.enums import EventKind
from refnet.services.commission.events import QualifyingEvent
from refnet.utils.exceptions import MalformedEvent, ValidationError


class TestQualifyingEvent:
    """Test event construction."""

    def test_defaults(self):
        """Test default currency, kind and timestamp."""
        event = QualifyingEvent("tx-1", "m-1", Decimal("10"))

        assert event.currency == "USD"
        assert event.kind == EventKind.TRANSACTION
        assert event.occurred_at.tzinfo is not None

    def test_currency_is_upper_cased(self):
        event = QualifyingEvent("tx-1", "m-1", Decimal("10"), currency=" usd ")
        assert event.currency == "USD"

    def test_occurred_at_normalized_to_utc(self):
        """Test offsets are converted to UTC."""
        local = datetime(2026, 3, 15, 14, 0, tzinfo=timezone(timedelta(hours=2)))

        event = QualifyingEvent("tx-1", "m-1", Decimal("10"), occurred_at=local)

        assert event.occurred_at == datetime(2026, 3, 15, 12, 0, tzinfo=UTC)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"event_id": "", "acting_member_id": "m-1", "base_amount": Decimal("1")},
            {"event_id": "x" * 129, "acting_member_id": "m-1", "base_amount": Decimal("1")},
            {"event_id": "tx", "acting_member_id": " ", "base_amount": Decimal("1")},
            {"event_id": "tx", "acting_member_id": "m-1", "base_amount": Decimal("-1")},
            {"event_id": "tx", "acting_member_id": "m-1", "base_amount": Decimal("NaN")},
            {"event_id": "tx", "acting_member_id": "m-1", "base_amount": 10},
            {"event_id": "tx", "acting_member_id": "m-1", "base_amount": Decimal("100000000000")},
        ],
    )
    def test_rejects_invalid_fields(self, kwargs):
        """Test malformed events are validation errors."""
        with pytest.raises(MalformedEvent) as exc_info:
            QualifyingEvent(**kwargs)
        assert isinstance(exc_info.value, ValidationError)


class TestFromPayload:
    """Test parsing pushed payloads."""

    def test_parses_member_id_and_amount(self):
        event = QualifyingEvent.from_payload(
            {
                "event_id": "tx-9",
                "member_id": "m-1",
                "amount": "125.50",
                "currency": "usd",
                "kind": "signup",
                "occurred_at": "2026-03-01T10:00:00+00:00",
            }
        )

        assert event.event_id == "tx-9"
        assert event.acting_member_id == "m-1"
        assert event.base_amount == Decimal("125.50")
        assert event.currency == "USD"
        assert event.kind == EventKind.SIGNUP
        assert event.occurred_at == datetime(2026, 3, 1, 10, 0, tzinfo=UTC)

    def test_accepts_long_field_names(self):
        event = QualifyingEvent.from_payload(
            {"event_id": "tx-1", "acting_member_id": "m-1", "base_amount": 5}
        )
        assert event.acting_member_id == "m-1"
        assert event.base_amount == Decimal("5")

    def test_naive_timestamp_is_utc(self):
        event = QualifyingEvent.from_payload(
            {
                "event_id": "tx-1",
                "member_id": "m-1",
                "amount": "1",
                "occurred_at": "2026-03-01T10:00:00",
            }
        )
        assert event.occurred_at == datetime(2026, 3, 1, 10, 0, tzinfo=UTC)

    @pytest.mark.parametrize(
        "payload",
        [
            "not a dict",
            {"event_id": "tx-1", "member_id": "m-1"},
            {"event_id": "tx-1", "member_id": "m-1", "amount": "ten"},
            {"event_id": "tx-1", "member_id": "m-1", "amount": True},
            {"event_id": "tx-1", "member_id": "m-1", "amount": "1", "kind": "refund"},
            {"event_id": "tx-1", "member_id": "m-1", "amount": "1", "occurred_at": "yesterday"},
            {"member_id": "m-1", "amount": "1"},
            {"event_id": "tx-1", "member_id": "m-1", "amount": "1e11"},
        ],
    )
    def test_rejects_malformed_payloads(self, payload):
        with pytest.raises(MalformedEvent):
            QualifyingEvent.from_payload(payload)

    def test_payload_survives_queue_serialization(self):
        """Test to_payload output parses back to the same event."""
        event = QualifyingEvent(
            "tx-1",
            "m-1",
            Decimal("99.99"),
            occurred_at=datetime(2026, 3, 1, tzinfo=UTC),
        )

        assert QualifyingEvent.from_payload(event.to_payload()) == event

    def test_largest_storable_amount_accepted(self):
        event = QualifyingEvent.from_payload(
            {"event_id": "tx-1", "member_id": "m-1", "amount": "9999999999.99999999"}
        )

        assert event.base_amount == Decimal("9999999999.99999999")
