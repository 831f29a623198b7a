"""
Pytest configuration and fixtures for testing
"""
import pytest
import httpx
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from config import settings
from database import Base, get_db

# In-memory SQLite database shared by every connection of one test engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_SECRET = "test-secret-key"
TEST_ADMIN_KEY = "test-admin-key"


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Deterministic settings: signing secret and admin key set, no outbound services."""
    monkeypatch.setattr(settings, "jwt_secret_key", TEST_SECRET)
    monkeypatch.setattr(settings, "admin_api_key", TEST_ADMIN_KEY)
    monkeypatch.setattr(settings, "ai_api_key", None)
    monkeypatch.setattr(settings, "smtp_host", None)
    monkeypatch.setattr(settings, "trial_hours", 24)
    return settings


@pytest.fixture
async def session_factory():
    """
    Fixture that provides a session maker over a fresh in-memory database.

    Tables are created before the test and the engine is disposed afterwards.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        # Import models to ensure they're registered with Base
        import database_models  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    await engine.dispose()


@pytest.fixture
async def test_db(session_factory):
    """Fixture that yields a clean AsyncSession for the test."""
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
async def async_client(session_factory):
    """
    Async HTTP client against the app with get_db overridden to the test database.
    Startup events do not run, so no background sweep is started.
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
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def create_user(db, username="ana", password="secreto123", **extra):
    """Insert a user directly through the repository."""
    from auth_utils import hash_password
    from crud.user import UserRepository

    return await UserRepository(db).create_user({
        "username": username,
        "password_hash": hash_password(password),
        **extra,
    })


async def create_trial(db, user, now, plan="profesional", requires_invoice=False, trial_hours=24):
    """Start a trial for `user` at `now` with default pricing."""
    from services.pricing import PricingConfig, compute_pricing
    from services.subscription_service import SubscriptionService

    pricing = compute_pricing(plan, requires_invoice, PricingConfig.from_settings(settings))
    return await SubscriptionService(db, trial_hours=trial_hours).start_trial(user, pricing, now=now)
