"""Pytest configuration and fixtures for async testing."""
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import agency_billing.models  # noqa: F401  (registers every table on Base.metadata)
from agency_billing.auth.jwt import session_auth
from agency_billing.database import Base
from agency_billing.main import app
from agency_billing.models.payment_method import PaymentMethod
from agency_billing.models.user import User, UserRole
from agency_billing.services.hours_balance_service import HoursBalanceService
from agency_billing.services.ledger_policies import allow_overage, forfeit_unused

from utils.factories import PaymentMethodFactory, UserFactory
from utils.fakes import FakePaymentGateway

# In-memory SQLite shared by every connection of one test's engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database for each test.

    Yields:
        AsyncSession: Database session for testing
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
def fake_gateway() -> FakePaymentGateway:
    """Payment gateway whose charges succeed unless a test scripts otherwise."""
    return FakePaymentGateway()


@pytest.fixture(scope="function")
def hours_service(db_session: AsyncSession) -> HoursBalanceService:
    """Ledger with the default policies, independent of environment settings."""
    return HoursBalanceService(db_session, usage_policy=allow_overage, rollover_policy=forfeit_unused)


@pytest_asyncio.fixture(scope="function")
async def client_user(db_session: AsyncSession) -> User:
    """
    Client with a Stripe customer and a default card on file.

    Returns:
        User: Committed client user
    """
    user = User(**UserFactory.create())
    db_session.add(user)
    await db_session.flush()

    db_session.add(PaymentMethod(user_id=user.id, **PaymentMethodFactory.create()))
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture(scope="function")
async def bare_user(db_session: AsyncSession) -> User:
    """Client with no Stripe customer and no payment method."""
    user = User(**UserFactory.create({"stripe_customer_id": None}))
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture(scope="function")
async def manager_user(db_session: AsyncSession) -> User:
    """Account manager."""
    user = User(**UserFactory.create({"role": UserRole.MANAGER, "stripe_customer_id": None}))
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def _bearer_headers(user: User, role: UserRole | str | None = None) -> dict[str, str]:
    role_value = role or user.role
    if isinstance(role_value, UserRole):
        role_value = role_value.value
    token = session_auth.create_access_token(user.id, role_value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def auth_headers():
    """Build a Bearer header for a session token issued to a user."""
    return _bearer_headers


@pytest_asyncio.fixture(scope="function")
async def async_client(
    db_session: AsyncSession, fake_gateway: FakePaymentGateway
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client wired to the test database and the fake gateway.

    Args:
        db_session: Test database session fixture
        fake_gateway: Scripted payment gateway

    Yields:
        AsyncClient: Async HTTP client for API testing
    """
    from agency_billing.api.deps import get_db, get_payment_gateway

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        """Override database dependency to use test database."""
        try:
            yield db_session
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: fake_gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
