"""Database configuration."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm.exc import StaleDataError

from studypath.core.config import get_settings
from studypath.core.errors import ConcurrentModificationError
from studypath.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


def enable_sqlite_savepoints(async_engine: AsyncEngine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINTs behave on (aio)sqlite.

    Session creation relies on a nested transaction to resolve the
    learner/day uniqueness race.
    """

    @event.listens_for(async_engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    future=True,
)
if engine.dialect.name == "sqlite":
    enable_sqlite_savepoints(engine)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


async def init_db() -> None:
    """Create all tables (development bootstrap; production uses alembic)."""
    async with engine.begin() as conn:
        logger.info("Creating database tables")
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    logger.info("Closing database connections")
    await engine.dispose()


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Unit of work: commit on success, roll back anything partial on error."""
    session = AsyncSessionLocal()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def flush_or_conflict(db: AsyncSession, *, entity: str, entity_id: object) -> None:
    """Flush pending writes, translating a stale version check into a conflict error."""
    try:
        await db.flush()
    except StaleDataError as exc:
        logger.warning("Concurrent modification detected", entity=entity, entity_id=entity_id)
        raise ConcurrentModificationError(
            f"{entity} {entity_id} was modified concurrently; reload and retry"
        ) from exc
