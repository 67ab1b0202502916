"""Pytest fixtures for testing."""
import os
from collections.abc import AsyncGenerator

# Settings are read at import time by api.main; point them at SQLite before any app import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.config import Settings  # noqa: E402
from models.base import Base  # noqa: E402

FAKE_SUMMARY = "A concise description of the saved page, generated for tests."


class FakeSummarizer:
    """Stands in for SummaryPipeline; records the URLs it was asked about."""

    def __init__(self, summary: str = FAKE_SUMMARY) -> None:
        self.summary = summary
        self.calls: list[str] = []

    async def summarize(self, url: str) -> str:
        self.calls.append(url)
        return self.summary


@pytest.fixture
def settings() -> Settings:
    """Deterministic settings: fast bcrypt, fixed secret, no external keys."""
    return Settings(
        database_url="sqlite+aiosqlite://",
        jwt_secret="test-secret-with-enough-length-for-hs256",
        bcrypt_rounds=4,
        jina_api_key=None,
        groq_api_key=None,
        redis_enabled=False,
    )


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """
    Create a fresh in-memory database per test.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create an async session on the per-test database."""
    session_factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_summarizer() -> FakeSummarizer:
    """Summarizer that never touches the network."""
    return FakeSummarizer()


@pytest.fixture
async def client(
    db_session: AsyncSession,
    settings: Settings,
    fake_summarizer: FakeSummarizer,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database, settings and summarizer overrides."""
    from api.dependencies import get_summary_pipeline
    from api.main import app
    from core.config import get_settings
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_summary_pipeline] = lambda: fake_summarizer

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
