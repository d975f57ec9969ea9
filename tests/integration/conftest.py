"""
Shared fixtures for integration tests.

Every test gets its own SQLite database file with the full schema and a
running ReferralNetworkService bound to the frozen clock.
"""

import pytest

from refnet.config.database import create_engine, create_session_maker
from refnet.config.settings import Settings
from refnet.models import Base
from refnet.services.network_service import ReferralNetworkService


@pytest.fixture
def integration_config(tmp_path):
    """Settings pointing at a per-test database file."""
    return Settings(
        environment="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'refnet.db'}",
        notification_relay_enabled=False,
        notification_queue_size=50,
    )


@pytest.fixture
async def engine(integration_config):
    """Engine with all tables created."""
    engine = create_engine(integration_config)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
async def service(session_maker, integration_config, clock):
    """Running ReferralNetworkService."""
    service = ReferralNetworkService(
        session_maker, config=integration_config, clock=clock
    )
    await service.start()
    yield service
    await service.stop()


async def enroll_chain(service, length, prefix="m"):
    """
    Enroll a single sponsor chain m0 <- m1 <- ... <- m{length-1}.

    Returns:
        Members, root first
    """
    members = [await service.enroll(f"{prefix}0")]
    for i in range(1, length):
        members.append(
            await service.enroll(f"{prefix}{i}", members[-1].referral_code)
        )
    return members


@pytest.fixture
def chain(service):
    """Factory enrolling a sponsor chain."""

    async def factory(length, prefix="m"):
        return await enroll_chain(service, length, prefix)

    return factory
