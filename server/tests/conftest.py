"""Test configuration and fixtures."""

import os
from decimal import Decimal

# The application engine is created at import time; keep it off PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backoffice.core.database import Base, get_db
from backoffice.main import create_app
from backoffice.models import *  # noqa: F403 - Import all models
from backoffice.schemas.booking import CreateBookingRequest, PassengerLineInput
from backoffice.schemas.entity import CreateEntityRequest
from backoffice.schemas.ledger import EntityType
from backoffice.services.entity_service import EntityService

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session configured like the application's."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session):
    """The real application bound to the test session; lifespan (workers, tracing) does not run."""
    app = create_app()

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def agent(test_session):
    """An agent with no outstanding debt."""
    return await EntityService(test_session).create_entity(
        CreateEntityRequest(entity_type=EntityType.AGENT, name="Colombo Travel Desk")
    )


@pytest_asyncio.fixture
async def partner(test_session):
    """An issuing partner with 1000.00 prepaid credit."""
    return await EntityService(test_session).create_entity(
        CreateEntityRequest(
            entity_type=EntityType.PARTNER,
            name="Lanka Air Consolidators",
            opening_balance=Decimal("1000.00"),
        )
    )


@pytest.fixture
def make_booking_request(agent, partner):
    """Factory for create requests assigned to the agent and partner fixtures."""

    def _make(pnr: str = "ABC123", ticket_status: str = "ISSUED", lines=None, **overrides):
        if lines is None:
            lines = [
                {"first_name": "Nimal", "surname": "Perera", "ticket_number": f"{pnr}-1",
                 "cost_price": "400.00", "sale_price": "500.00"},
            ]
        data = {
            "pnr": pnr,
            "airline": "UL",
            "ticket_status": ticket_status,
            "agent_id": agent.id,
            "issued_partner_id": partner.id,
            "passengers": [PassengerLineInput(**line) for line in lines],
        }
        data.update(overrides)
        return CreateBookingRequest(**data)

    return _make


@pytest.fixture
def sample_passenger_data():
    """Sample passenger directory entry."""
    return {
        "title": "Mr",
        "first_name": "Nimal",
        "surname": "Perera",
        "passport_number": "N1234567",
        "phone_number": "+94 77 123 4567",
    }
