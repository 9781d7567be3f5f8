# Shared pytest configuration and fixtures for all test types
import pytest
import pytest_asyncio
from datetime import timedelta
from decimal import Decimal
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from slowapi import Limiter
from slowapi.util import get_remote_address
from unittest.mock import AsyncMock, patch

# Create test limiter with no limits and in-memory storage
test_limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri="memory://",
)

# Patch the limiter before importing the app so decorators use test limiter
with patch("common.providers.rate_limiter.limiter.limiter", test_limiter):
    from api.main import app

from common.core.clock import utcnow
from common.db.base import Base
from common.db.session import get_db
from packages.billing.models.database import ClientEntity  # noqa: F401 registers tables
from packages.billing.models.domain.client import ClientCreateModel
from packages.billing.models.domain.enums import AgentStatus, PausedReason, PlanKey
from packages.billing.providers.payment.interface import (
    ChargeResult,
    PaymentProviderInterface,
)
from packages.billing.repositories.client_repository import ClientRepository
from packages.billing.services.plan_catalog import get_plan_catalog

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_connection(test_engine):
    """Create test connection with outer transaction for rollback isolation."""
    async with test_engine.connect() as connection:
        trans = await connection.begin()
        yield connection
        await trans.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_connection):
    """Create session factory bound to test connection.

    Using join_transaction_mode="create_savepoint" so nested transaction()
    calls create savepoints instead of real nested transactions.
    """
    return async_sessionmaker(
        bind=test_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_lazy_sessions(test_session_factory, monkeypatch):
    """
    Patch session factories to use test database.

    This allows real transaction() and get_session() to run with proper
    commit/rollback/ContextVar semantics while using the test database.
    """
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", test_session_factory)
    monkeypatch.setattr(
        "common.db.scoped.AsyncSessionLocalReadonly", test_session_factory
    )


@pytest_asyncio.fixture(scope="function")
async def client(test_db: AsyncSession):
    """Create a test client."""

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def plan_catalog():
    """Catalog built from the configured gateway price ids."""
    return get_plan_catalog()


@pytest_asyncio.fixture(scope="function")
async def sample_client():
    """Active starter client created 30 days ago, with a gateway subscription."""
    repo = ClientRepository()
    return await repo.create(
        ClientCreateModel(
            id="client-1",
            email="owner@dental.example",
            voice_agent_id="asst_123",
            gateway_customer_id="ctm_123",
            gateway_subscription_id="sub_123",
            plan_key=PlanKey.STARTER,
            minute_allowance=1000,
            price_per_minute=Decimal("0.29"),
            created_at=utcnow() - timedelta(days=30),
        )
    )


@pytest_asyncio.fixture(scope="function")
async def paused_client():
    """Growth client whose agent was paused for unpaid usage."""
    repo = ClientRepository()
    return await repo.create(
        ClientCreateModel(
            id="client-paused",
            voice_agent_id="asst_paused",
            gateway_subscription_id="sub_paused",
            plan_key=PlanKey.GROWTH,
            minute_allowance=2500,
            price_per_minute=Decimal("0.26"),
            agent_status=AgentStatus.PAUSED,
            paused_reason=PausedReason.USAGE_UNPAID,
            created_at=utcnow() - timedelta(days=60),
        )
    )


@pytest.fixture
def mock_payment_provider():
    """Payment gateway that accepts every charge."""
    provider = AsyncMock(spec=PaymentProviderInterface)
    provider.charge_usage = AsyncMock(
        side_effect=lambda subscription_id, price_id, quantity: ChargeResult(
            subscription_id=subscription_id,
            reference=f"req_{subscription_id}",
            status="active",
        )
    )
    provider.health_check = AsyncMock(return_value=True)
    return provider
