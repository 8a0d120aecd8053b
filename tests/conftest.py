"""
Pytest configuration and fixtures for testing
"""
import os

# Must be set before application modules read settings
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RATE_LIMIT_PER_MINUTE"] = "10000"
os.environ.pop("REDIS_URL", None)

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
import database_models  # noqa: F401
from auth import get_poller_registry
from auth_utils import hash_password
from crud.user import UserRepository
from crud.premium import PremiumGrantRepository
from services.entitlement_service import EntitlementService
from services.status_poller import PollerRegistry
from tests.helpers import TEST_PASSWORD

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test, with all tables created."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(session_factory):
    """
    Fixture that provides an isolated AsyncSession for each test.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@pytest.fixture
async def registry(session_factory):
    """Poller registry that verifies against the test database and never ticks on its own."""
    async def verify(user_id: int):
        async with session_factory() as db:
            return await EntitlementService(db).verify_premium_status(user_id)

    test_registry = PollerRegistry(verify=verify, interval=3600)
    yield test_registry
    test_registry.stop_all()


@pytest.fixture
async def async_client(session_factory, registry):
    """
    Async HTTP client against the app with the test database and registry.
    Uses https so the secure auth cookie is kept by the client.
    """
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_poller_registry] = lambda: registry

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="https://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(test_db):
    """Factory creating a committed user; optionally with an active premium grant."""
    async def _make_user(email="cook@example.com", username="cook", premium=False, grant_email=None):
        user = await UserRepository(test_db).create_user({
            "email": email,
            "username": username,
            "hashed_password": hash_password(TEST_PASSWORD),
        })
        if premium:
            await PremiumGrantRepository(test_db).create_grant(grant_email or email, user_id=user.id)
        await test_db.commit()
        return user

    return _make_user
