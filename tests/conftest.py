"""Pytest configuration and fixtures."""

import os
import sys
from collections.abc import AsyncGenerator
from pathlib import Path
from uuid import uuid4

# Disable rate limiting and keep the app's engine off PostgreSQL in tests
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from domain.entities.profile import Session
from infrastructure.auth.jwt_provider import JWTAuthProvider
from infrastructure.database.models import Base
from tests.fakes import InMemoryBlobStore

# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a test engine with a fresh schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def test_session() -> Session:
    """A signed-in session with a real UUID user id."""
    return Session(user_id=str(uuid4()), email="test@example.com")


@pytest.fixture
def auth_provider() -> JWTAuthProvider:
    """Create auth provider for testing."""
    return JWTAuthProvider(
        secret_key="test-secret-key",
        algorithm="HS256",
        expire_minutes=30,
    )


@pytest.fixture
def auth_headers(auth_provider: JWTAuthProvider, test_session: Session) -> dict[str, str]:
    """Create authorization headers."""
    return {"Authorization": f"Bearer {auth_provider.create_token(test_session)}"}


@pytest.fixture
def avatar_blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore(base_url="https://store.test/storage/v1/object/public/avatars")


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client (no auth)."""
    from main import create_app

    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
async def authenticated_client(
    session_factory: async_sessionmaker[AsyncSession],
    auth_provider: JWTAuthProvider,
    avatar_blob_store: InMemoryBlobStore,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test client wired to the SQLite store and in-memory blob store.

    Tokens from ``auth_headers`` validate against the test auth provider.
    """
    from api.dependencies.auth import get_auth_provider
    from api.v1.dependencies import get_blob_store, get_profile_store
    from domain.services.profile_store import ProfileStore
    from infrastructure.database.sqlalchemy_store import SQLAlchemyRelationalStore
    from main import create_app

    app = create_app()
    store = ProfileStore(SQLAlchemyRelationalStore(session_factory))

    app.dependency_overrides[get_auth_provider] = lambda: auth_provider
    app.dependency_overrides[get_profile_store] = lambda: store
    app.dependency_overrides[get_blob_store] = lambda: avatar_blob_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
