"""
Database configuration.

Async engine and session factory shared by services and jobs.
"""

from loguru import logger
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, Pool

from refnet.config.settings import Settings, settings


def create_engine(
    config: Settings | None = None,
    poolclass: type[Pool] | None = None,
) -> AsyncEngine:
    """
    Create async engine for the configured database.

    SQLite connections take the write lock when a transaction begins
    (BEGIN IMMEDIATE) so concurrent writers queue on the busy timeout
    instead of failing on lock upgrade.

    Args:
        config: Settings to use (defaults to global settings)
        poolclass: Pool override for server databases (SQLite always uses NullPool)

    Returns:
        Configured AsyncEngine
    """
    config = config or settings
    url = config.database_url

    if url.startswith("sqlite"):
        engine = create_async_engine(
            url,
            echo=config.database_echo,
            poolclass=NullPool,
            connect_args={"timeout": config.transaction_timeout_seconds},
        )
        _enable_sqlite_immediate_transactions(engine)
    elif poolclass is not None:
        engine = create_async_engine(
            url,
            echo=config.database_echo,
            poolclass=poolclass,
        )
    else:
        engine = create_async_engine(
            url,
            echo=config.database_echo,
            pool_pre_ping=True,
        )

    logger.debug(f"Database engine created: {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_session_maker(
    engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Create session maker bound to engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def _enable_sqlite_immediate_transactions(engine: AsyncEngine) -> None:
    """Replace pysqlite's implicit transactions with BEGIN IMMEDIATE."""

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):  # noqa: ARG001
        dbapi_connection.isolation_level = None

        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# Ready-to-use instances
async_engine = create_engine()
async_session_maker = create_session_maker(async_engine)
