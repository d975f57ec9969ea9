"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
import tempfile
from pathlib import Path

# Minimal environment for the global settings instance
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.gettempdir()) / 'refnet_test.db'}",
)
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("NOTIFICATION_RELAY_ENABLED", "false")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import asyncio

import pytest
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    return session


async def _idle_get_message(**kwargs):
    # Real get_message blocks up to its timeout
    await asyncio.sleep(0.01)
    return None


@pytest.fixture
def mock_redis_client():
    """Mock async Redis client with pub/sub."""
    client = AsyncMock()
    client.publish = AsyncMock(return_value=1)
    client.aclose = AsyncMock()

    pubsub = MagicMock()
    pubsub.subscribe = AsyncMock()
    pubsub.unsubscribe = AsyncMock()
    pubsub.aclose = AsyncMock()
    pubsub.get_message = AsyncMock(side_effect=_idle_get_message)
    client.pubsub = MagicMock(return_value=pubsub)
    return client


class FrozenClock:
    """Controllable clock for time-dependent operations."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    """Clock frozen at 2026-03-15 12:00 UTC."""
    return FrozenClock(datetime(2026, 3, 15, 12, 0, tzinfo=UTC))
