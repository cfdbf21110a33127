"""Shared test fixtures with in-memory SQLite."""
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

from channel_dashboard.config import settings
from channel_dashboard.dependencies import get_db
from channel_dashboard.integrations.resilience import circuit_breakers
from channel_dashboard.main import app
from channel_dashboard.middleware.metrics import reset_metrics
from channel_dashboard.models import Base, Channel, User
from channel_dashboard.services.auth_service import create_session_token, hash_password
from channel_dashboard.utils.encryption import get_token_encryptor

# --- SQLite compatibility: compile PostgreSQL types for SQLite ---

@compiles(UUID, "sqlite")
def _compile_uuid_sqlite(type_, compiler, **kw):
    return "VARCHAR(36)"


# In-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(autouse=True)
def _plaintext_credentials(monkeypatch):
    """Stored channel credentials are plaintext unless a test sets a key."""
    monkeypatch.setattr(settings, "ENCRYPTION_KEY", "")
    get_token_encryptor.cache_clear()
    reset_metrics()
    yield
    get_token_encryptor.cache_clear()


@pytest.fixture(autouse=True)
def _closed_breakers():
    for breaker in circuit_breakers.values():
        breaker.reset()
    yield


@pytest.fixture
async def test_session_factory():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def client(test_session_factory):
    async def _override_get_db():
        async with test_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def db_session(test_session_factory):
    async with test_session_factory() as session:
        yield session


async def create_test_user(
    db: AsyncSession,
    username: str | None = "alice",
    password: str = "testpass123",
    email: str | None = None,
) -> User:
    user = User(
        id=uuid.uuid4(),
        username=username,
        password_hash=hash_password(password) if username else None,
        email=email,
        name=(username or "google user").title(),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def create_test_channel(
    db: AsyncSession,
    user: User,
    youtube_id: str,
    title: str,
    token_expiry: datetime | None = None,
    refresh_token: str = "refresh-token",
) -> Channel:
    channel = Channel(
        id=uuid.uuid4(),
        user_id=user.id,
        channel_id=youtube_id,
        channel_title=title,
        channel_thumbnail=f"https://yt3.example/{youtube_id}.jpg",
        access_token=f"access-{youtube_id}",
        refresh_token=refresh_token,
        token_expiry=token_expiry or datetime.now(timezone.utc) + timedelta(hours=1),
    )
    db.add(channel)
    await db.commit()
    await db.refresh(channel)
    return channel


@pytest.fixture
async def user(db_session: AsyncSession) -> User:
    return await create_test_user(db_session)


@pytest.fixture
def session_cookie(user: User) -> dict[str, str]:
    return {settings.SESSION_COOKIE_NAME: create_session_token(str(user.id))}


@pytest.fixture
async def auth_client(client: AsyncClient, session_cookie: dict[str, str]) -> AsyncClient:
    """The test client signed in as ``user``."""
    for name, value in session_cookie.items():
        client.cookies.set(name, value)
    return client


@pytest.fixture
async def channels(db_session: AsyncSession, user: User) -> list[Channel]:
    return [
        await create_test_channel(db_session, user, "UC_main", "Main Channel"),
        await create_test_channel(db_session, user, "UC_second", "Second Channel"),
    ]


@pytest.fixture
def make_channel(db_session: AsyncSession):
    """Factory for extra channels: ``await make_channel(user, "UC_x", "Title", ...)``."""

    async def _make(user: User, youtube_id: str, title: str, **kwargs) -> Channel:
        return await create_test_channel(db_session, user, youtube_id, title, **kwargs)

    return _make


@pytest.fixture
def make_user(db_session: AsyncSession):
    async def _make(**kwargs) -> User:
        return await create_test_user(db_session, **kwargs)

    return _make
