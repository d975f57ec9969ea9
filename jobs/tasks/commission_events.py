"""
Commission event tasks.

Qualifying events arrive at least once from upstream systems. Distribution
is idempotent per event id, so redelivery is safe; transient failures are
retried by the broker with backoff, invalid events are logged and dropped.
"""

from typing import Any

import dramatiq
from loguru import logger

from jobs.async_runner import run_async
from jobs.broker import broker  # noqa: F401  (sets the default broker)
from jobs.utils.database import task_service
from refnet.config.constants import EVENT_TIME_LIMIT_MS
from refnet.config.settings import settings
from refnet.models.commission_record import CommissionRecord
from refnet.services.commission import DistributionResult
from refnet.services.network_service import ReferralNetworkService
from refnet.utils.exceptions import ValidationError


@dramatiq.actor(max_retries=settings.event_max_retries, time_limit=EVENT_TIME_LIMIT_MS)
def distribute_commission_event(payload: dict[str, Any]) -> None:
    """
    Distribute commissions for a qualifying event payload.

    Payload keys: event_id, member_id, amount, currency, kind, occurred_at.
    """
    run_async(_distribute_async(payload))


@dramatiq.actor(max_retries=settings.event_max_retries, time_limit=EVENT_TIME_LIMIT_MS)
def settle_commission(
    record_id: int, outcome: str, failure_reason: str | None = None
) -> None:
    """Finalize a commission record once the payout rail reports back."""
    run_async(_settle_async(record_id, outcome, failure_reason))


async def _distribute_async(payload: dict[str, Any]) -> None:
    async with task_service() as service:
        await handle_commission_event(service, payload)


async def _settle_async(
    record_id: int, outcome: str, failure_reason: str | None
) -> None:
    async with task_service() as service:
        await handle_settlement(service, record_id, outcome, failure_reason)


async def handle_commission_event(
    service: ReferralNetworkService, payload: dict[str, Any]
) -> DistributionResult | None:
    """
    Distribute one event payload.

    Returns:
        DistributionResult, or None if the event was rejected

    Raises:
        TransientError: Store unavailable (retried by the broker)
    """
    event_id = payload.get("event_id") if isinstance(payload, dict) else None
    try:
        result = await service.distribute(payload)
    except ValidationError as e:
        logger.warning(
            f"Dropping rejected commission event: {e}",
            extra={"event_id": event_id, "error": type(e).__name__},
        )
        return None

    if result.already_processed:
        logger.info(
            "Commission event redelivered, nothing to do",
            extra={"event_id": result.event_id},
        )
    else:
        logger.info(
            f"Commission event distributed to {len(result.records)} recipients",
            extra={"event_id": result.event_id},
        )
    return result


async def handle_settlement(
    service: ReferralNetworkService,
    record_id: int,
    outcome: str,
    failure_reason: str | None = None,
) -> CommissionRecord | None:
    """
    Settle one commission record.

    Returns:
        Updated record, or None if the settlement was rejected
    """
    try:
        return await service.settle(record_id, outcome, failure_reason)
    except ValidationError as e:
        logger.warning(
            f"Dropping rejected settlement: {e}",
            extra={"record_id": record_id, "outcome": outcome},
        )
        return None