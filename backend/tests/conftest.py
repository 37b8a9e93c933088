"""
Pytest fixtures for test database, client, catalog data and authentication.

Tests run against a SQLite file database (aiosqlite) so the partial unique
index that guards against double bookings is exercised for real. Tables are
created and dropped around every test for isolation.
"""

import os
import tempfile

TEST_DATABASE_PATH = os.path.join(tempfile.gettempdir(), "taxi_booking_test.db")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{TEST_DATABASE_PATH}")
os.environ["REDIS_ENABLED"] = "false"
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from taxi_booking.main import app, build_event_bus
from taxi_booking.db.base import Base
from taxi_booking.db.session import get_db
from taxi_booking.core.security import create_access_token, hash_password
from taxi_booking.infrastructure.sql_stores import SqlBookingStore, SqlCatalogStore
from taxi_booking.models.user import User
from taxi_booking.models.taxi import Taxi
from taxi_booking.models.route import Route
from taxi_booking.services.booking_engine import BookingEngine

TEST_DATABASE_URL = os.environ["DATABASE_URL"]

# NullPool: every session gets its own connection, which the concurrency
# tests rely on, and nothing outlives a test's event loop.
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=NullPool,
    connect_args={"timeout": 30},
)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_engine(session: AsyncSession, **overrides) -> BookingEngine:
    options = dict(
        catalog=SqlCatalogStore(session),
        bookings=SqlBookingStore(session),
        clock=lambda: FIXED_NOW,
    )
    options.update(overrides)
    return BookingEngine(**options)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    original_bus = app.state.event_bus
    app.state.event_bus = build_event_bus(TestSessionLocal)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.event_bus = original_bus
    app.dependency_overrides.clear()


async def _create_user(session: AsyncSession, name: str, email: str, role: str = "user") -> User:
    user = User(
        name=name,
        email=email,
        phone="9876543210",
        hashed_password=hash_password("testpassword123"),
        role=role,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


def _headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "Test Rider", "test@example.com")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "Other Rider", "other@example.com")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "Admin", "admin@example.com", role="admin")


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token."""
    return _headers_for(test_user)


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict:
    return _headers_for(other_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return _headers_for(admin_user)


async def create_taxi(session: AsyncSession, **overrides) -> Taxi:
    values = dict(
        name="City Cruiser",
        model="Toyota Etios",
        vehicle_number="MH12AB1234",
        taxi_type="Sedan",
        capacity=4,
        price_per_km=Decimal("12.50"),
        driver_name="Ravi Kumar",
        driver_phone="9123456780",
        amenities=["AC", "GPS"],
        operator="Metro Cabs",
    )
    values.update(overrides)
    taxi = Taxi(**values)
    session.add(taxi)
    await session.commit()
    await session.refresh(taxi)
    return taxi


async def create_route(session: AsyncSession, taxi: Taxi, **overrides) -> Route:
    values = dict(
        taxi_id=taxi.id,
        source="Mumbai",
        destination="Pune",
        departure_time="08:00",
        arrival_time="11:30",
        duration="3h 30m",
        distance_km=150,
        price=Decimal("1000.00"),
    )
    values.update(overrides)
    route = Route(**values)
    session.add(route)
    await session.commit()
    await session.refresh(route)
    return route


@pytest_asyncio.fixture
async def test_taxi(db_session: AsyncSession) -> Taxi:
    """A four-seat sedan."""
    return await create_taxi(db_session)


@pytest_asyncio.fixture
async def test_route(db_session: AsyncSession, test_taxi: Taxi) -> Route:
    """Mumbai -> Pune on the test taxi at a flat 1000.00."""
    return await create_route(db_session, test_taxi)


def future_ride(days: int = 3) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def booking_payload(taxi: Taxi, route: Route, **overrides) -> dict:
    payload = {
        "taxi_id": taxi.id,
        "route_id": route.id,
        "ride_date": future_ride(),
        "passenger_count": 2,
        "passenger_name": "Asha Patel",
        "passenger_phone": "9988776655",
        "pickup_location": {"location": "Andheri Station", "time": "07:45"},
        "drop_location": {"location": "Shivajinagar"},
    }
    payload.update(overrides)
    return payload
