"""Shared test fixtures and configuration."""
import pytest
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List
from unittest.mock import Mock, AsyncMock
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RESTAURANT_NAME", "Test Restaurant")

from pedidobot.main import app
from pedidobot.db.database import get_db
from pedidobot.db.models import Base
from pedidobot.services.agent.state import ConfirmedOrder
from pedidobot.services.conversation.engine import DialogueEngine
from pedidobot.services.menu.repository import MenuRepository
from pedidobot.services.menu.in_memory_menu import InMemoryMenuProvider
from pedidobot.services.notifications.restaurant import LoggingNotificationSink
from pedidobot.services.persistence.base import OrderSink
from pedidobot.services.persistence.customers import InMemoryCustomerStore
from pedidobot.services.persistence.drafts import InMemoryDraftStore


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeClock:
    """Controllable wall clock for idle-timeout tests."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingOrderSink(OrderSink):
    """Keeps finalized orders in memory."""

    def __init__(self):
        self.orders: List[ConfirmedOrder] = []

    async def finalize(self, order: ConfirmedOrder) -> str:
        self.orders.append(order)
        return order.id


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def test_session_factory(test_db_engine):
    """Session factory bound to the test database."""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    """Create test database session."""
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def test_menu_path():
    """Return path to test menu YAML file."""
    return Path(__file__).parent / "fixtures" / "test_menu.yaml"


@pytest.fixture
def test_menu_repository(test_menu_path):
    """Create menu repository with test data."""
    provider = InMemoryMenuProvider(menu_file=str(test_menu_path))
    return MenuRepository(provider)


@pytest.fixture
async def test_menu(test_menu_repository):
    """The test menu snapshot."""
    return await test_menu_repository.get_menu()


@pytest.fixture
def fake_clock():
    """Clock starting at a fixed instant."""
    return FakeClock(datetime(2026, 3, 14, 20, 0, tzinfo=timezone.utc))


@pytest.fixture
def draft_store():
    return InMemoryDraftStore()


@pytest.fixture
def order_sink():
    return RecordingOrderSink()


@pytest.fixture
def customer_store():
    return InMemoryCustomerStore()


@pytest.fixture
def notification_sink():
    return LoggingNotificationSink("Test Restaurant")


@pytest.fixture
def engine(test_menu_repository, draft_store, order_sink, customer_store, notification_sink, fake_clock):
    """Dialogue engine over in-memory stores and the test menu."""
    return DialogueEngine(
        menu_repository=test_menu_repository,
        draft_store=draft_store,
        order_sink=order_sink,
        customer_store=customer_store,
        notification_sink=notification_sink,
        restaurant_name="Test Restaurant",
        preparation_times={"Empanadas": 15, "Pizzas": 25, "Bebidas": 2},
        clock=fake_clock,
    )


@pytest.fixture
def override_get_db(test_db):
    """Override get_db dependency with test database."""
    async def _override_get_db():
        yield test_db
    return _override_get_db


@pytest.fixture
def test_client(override_get_db, engine):
    """Create FastAPI test client with overrides."""
    app.dependency_overrides[get_db] = override_get_db
    app.state.engine = engine

    client = TestClient(app)

    yield client

    # Clear overrides
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(override_get_db, engine):
    """Async client sharing the test event loop (for database-backed endpoints)."""
    app.dependency_overrides[get_db] = override_get_db
    app.state.engine = engine

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def mock_openai():
    """Mock OpenAI API client returning one empanada de pollo."""
    mock_client = Mock()
    mock_completion = Mock()
    mock_completion.choices = [
        Mock(
            message=Mock(
                content='{"intent": "order", "confidence": 0.9, '
                '"items": [{"item_id": "2", "quantity": 2, "confidence": 0.9}]}'
            )
        )
    ]
    mock_client.chat.completions.create = AsyncMock(return_value=mock_completion)
    return mock_client
