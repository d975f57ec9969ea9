"""
Shared fixtures for unit tests.

This module provides common fixtures used across multiple test modules:
- Test settings
- Running notification hub
"""

import pytest

from refnet.config.settings import Settings
from refnet.services.notification import NotificationHub


@pytest.fixture
def config():
    """
    Settings for unit tests.

    Default commission schedule (10 / 5 / 2 / 1 / 0.5 percent),
    USD with 2 decimal places.

    Returns:
        Settings: Isolated settings instance
    """
    return Settings(environment="test", notification_queue_size=10)


@pytest.fixture
async def hub(config):
    """
    Running NotificationHub without a relay.

    Yields:
        NotificationHub: Started hub, stopped on teardown
    """
    hub = NotificationHub(config)
    await hub.start()
    yield hub
    await hub.stop()
