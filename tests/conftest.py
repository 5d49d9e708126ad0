"""Test configuration and fixtures.

Settings are read at import time, so the environment is prepared here
before anything under ``src`` is imported. Database-backed fixtures use an
in-memory aiosqlite database, so no Postgres or Redis is needed.
"""

import os
from collections.abc import AsyncGenerator, Callable

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_leaderboards.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("IDENTITY_VERIFY_URL", "http://identity.test/verify")

from src.core.exceptions import UnauthenticatedError  # noqa: E402
from src.services.identity_service import CallerIdentity, IdentityService  # noqa: E402


def pytest_configure(config):
    """Register integration test marker."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring database"
    )


class FakeLock:
    """In-process stand-in for the redis-backed aggregation lock."""

    name = "leaderboards:test"

    def __init__(self) -> None:
        self.held = False
        self.acquired_count = 0
        self.released_count = 0

    async def acquire(self) -> bool:
        if self.held:
            return False
        self.held = True
        self.acquired_count += 1
        return True

    async def release(self) -> None:
        self.held = False
        self.released_count += 1


class StubIdentityService(IdentityService):
    """Resolves bearer tokens from a fixed table instead of calling out."""

    def __init__(self, identities: dict[str, CallerIdentity]) -> None:
        super().__init__(verify_url="http://identity.test/verify")
        self.identities = identities

    async def verify_token(self, token: str) -> CallerIdentity:
        identity = self.identities.get(token)
        if identity is None:
            raise UnauthenticatedError("Unknown token")
        return identity


TEST_IDENTITIES = {
    "token-alice": CallerIdentity(uid="alice", role="USER"),
    "token-admin": CallerIdentity(uid="admin", role="SUPER_ADMIN"),
}


@pytest.fixture
def fake_lock() -> FakeLock:
    return FakeLock()


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator:
    """Create a fresh in-memory database session for each test."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

    from src.db.models import Base

    test_engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    test_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_session_maker() as session:
        yield session

    await test_engine.dispose()


@pytest.fixture
def make_user(db_session) -> Callable:
    """Insert a user record."""
    from src.db.models.user import UserAccount

    async def _make_user(user_id: str, name: str | None = None, company: str | None = None):
        user = UserAccount(id=user_id, name=name or user_id.upper(), company=company)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_event(db_session) -> Callable:
    """Insert an event, COMPLETED unless told otherwise."""
    from src.db.models.event import Event, EventStatus

    counter = {"n": 0}

    async def _make_event(
        participants: list[str],
        sport_type: str | None = "Cricket",
        company: str | None = None,
        status: EventStatus = EventStatus.COMPLETED,
        event_id: str | None = None,
        max_participants: int = 50,
    ):
        counter["n"] += 1
        event = Event(
            id=event_id or f"e{counter['n']:03d}",
            title=f"Event {counter['n']}",
            sport_type=sport_type,
            company=company,
            status=status,
            participants=list(participants),
            max_participants=max_participants,
            created_by="alice",
        )
        db_session.add(event)
        await db_session.commit()
        return event

    return _make_event


@pytest.fixture(scope="function")
async def client(db_session, fake_lock) -> AsyncGenerator:
    """Create a test client with database, lock and identity overridden."""
    from httpx import ASGITransport, AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from src.api.app import create_app
    from src.api.deps import get_aggregation_lock, get_identity_service
    from src.db import get_db

    app = create_app()

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_lock() -> AsyncGenerator[FakeLock, None]:
        yield fake_lock

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_aggregation_lock] = override_get_lock
    app.dependency_overrides[get_identity_service] = lambda: StubIdentityService(TEST_IDENTITIES)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
