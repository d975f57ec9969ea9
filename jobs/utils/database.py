"""Database and service wiring shared by tasks."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from refnet.config.database import create_engine, create_session_maker
from refnet.config.settings import settings
from refnet.services.network_service import ReferralNetworkService


def create_task_engine() -> AsyncEngine:
    """Create engine for use in tasks (NullPool, loop-safe)."""
    return create_engine(settings, poolclass=NullPool)


def create_task_session_maker(
    engine: AsyncEngine | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Create session maker for tasks."""
    if engine is None:
        engine = create_task_engine()
    return create_session_maker(engine)


@asynccontextmanager
async def task_service(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[ReferralNetworkService]:
    """
    Running ReferralNetworkService for one task.

    Notifications published by the task are drained through the relay
    before the context exits.
    """
    service = ReferralNetworkService(session_maker or task_session_maker)
    await service.start()
    try:
        yield service
    finally:
        await service.stop()


task_engine = create_task_engine()
task_session_maker = create_task_session_maker(task_engine)
