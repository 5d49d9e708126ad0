from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.core.config import settings

# =============================================================================
# Async Engine & Session (for FastAPI)
# =============================================================================
engine = create_async_engine(
    settings.database_url,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    echo=settings.debug,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def create_worker_engine() -> AsyncEngine:
    """Create a fresh async engine for worker tasks.

    This is needed because Celery workers run in a different event loop
    than where the global engine was created.
    """
    return create_async_engine(
        settings.database_url,
        pool_size=5,
        max_overflow=10,
        echo=settings.debug,
    )


@asynccontextmanager
async def worker_session() -> AsyncIterator[AsyncSession]:
    """Session on a private engine that is disposed on exit.

    Pooled connections belong to the event loop that opened them, so they
    must be closed before ``run_async`` closes that loop.
    """
    worker_engine = create_worker_engine()
    session_maker = async_sessionmaker(
        worker_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    try:
        async with session_maker() as session:
            yield session
    finally:
        await worker_engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Initialize database tables."""
    from src.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
