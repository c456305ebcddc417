"""Pytest fixtures for testing."""
import os

# Must be set before any app imports that trigger Settings validation.
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
# Ensure tests run in dev mode (bypasses auth) regardless of local .env
os.environ["DEV_MODE"] = "true"
os.environ["REDIS_ENABLED"] = "false"
os.environ["OPENAI_API_KEY"] = ""

from collections.abc import AsyncGenerator, Callable, Generator  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.config import get_settings  # noqa: E402
from models.base import Base  # noqa: E402
from models.user import User  # noqa: E402
from services.broadcast import InMemoryBroadcaster  # noqa: E402
from services.enrichment import BookmarkEnricher  # noqa: E402
from services.notifier import BookmarkNotifier  # noqa: E402

TEST_JWT_SECRET = "test-jwt-secret-with-at-least-32-bytes"


def _make_token(
    sub: str | None = "user|test",
    secret: str = TEST_JWT_SECRET,
    audience: str = "authenticated",
    expires_in: timedelta = timedelta(hours=1),
    **claims: object,
) -> str:
    """Create an HS256 token shaped like the identity provider's."""
    payload: dict[str, object] = {
        "aud": audience,
        "exp": datetime.now(UTC) + expires_in,
        **claims,
    }
    if sub is not None:
        payload["sub"] = sub
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    """Pick up the test environment for every test."""
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def database_url() -> Generator[str]:
    """
    Database the tests run against.

    In-memory sqlite by default, TEST_DATABASE_URL when set, or a throwaway
    PostgreSQL container when TEST_USE_TESTCONTAINERS=1.
    """
    if os.environ.get("TEST_USE_TESTCONTAINERS") != "1":
        yield TEST_DATABASE_URL
        return

    from testcontainers.postgres import PostgresContainer  # noqa: PLC0415

    with PostgresContainer("postgres:16", driver="asyncpg") as postgres:
        url = postgres.get_connection_url()
        os.environ["DATABASE_URL"] = url
        yield url


@pytest.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine with a fresh schema for each test."""
    if database_url.startswith("sqlite"):
        # One shared connection so the in-memory database lives for the whole test
        engine = create_async_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_async_engine(database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create an async session on the test database."""
    session_factory = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """A user who owns bookmarks in service-level tests."""
    user = User(external_id="user|test", email="test@example.com")
    db_session.add(user)
    await db_session.flush()
    return user


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    """A second user, for owner-scoping checks."""
    user = User(external_id="user|other", email="other@example.com")
    db_session.add(user)
    await db_session.flush()
    return user


@pytest.fixture
def enricher() -> BookmarkEnricher:
    """Enricher without an OpenAI client, so results are the deterministic fallback."""
    return BookmarkEnricher(None)


@pytest.fixture
def broadcaster() -> InMemoryBroadcaster:
    """In-process broadcaster whose subscriptions tests can inspect."""
    return InMemoryBroadcaster()


@pytest.fixture
def notifier(broadcaster: InMemoryBroadcaster) -> BookmarkNotifier:
    """Notifier publishing through the in-process broadcaster."""
    return BookmarkNotifier(broadcaster)


@pytest.fixture
async def client(
    db_session: AsyncSession,
    enricher: BookmarkEnricher,
    notifier: BookmarkNotifier,
) -> AsyncGenerator[AsyncClient]:
    """
    Create a test client with database session override.

    ASGITransport does not run the lifespan, so the service handles it would
    create are placed on app.state here.
    """
    from api.main import app
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.state.enricher = enricher
    app.state.notifier = notifier
    app.state.redis_client = None

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Factory for HS256 tokens signed with TEST_JWT_SECRET unless overridden."""
    return _make_token
