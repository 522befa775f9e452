"""
E2E test fixtures for the donation pickup backend.

Provides:
- An in-process FastAPI test app with all routes registered
- httpx AsyncClient wired via ASGI transport (no network needed)
- An async SQLite database session (in-memory) for isolation
- Pre-populated seed data: donation centers around Austin, TX and one
  charity sponsorship
- Helper for creating bookings through the API

Quotes come from the mock provider and Stripe is mocked at the SDK level
so the full route -> service -> DB flow is exercised.
"""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, AsyncGenerator
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.models.base import Base

# ---------------------------------------------------------------------------
# Test IDs (stable across tests so cross-references work)
# ---------------------------------------------------------------------------

NEAR_CENTER_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
SPONSORED_CENTER_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
FAR_CENTER_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")
INACTIVE_CENTER_ID = uuid.UUID("44444444-4444-4444-4444-444444444444")
SPONSORSHIP_ID = uuid.UUID("55555555-5555-5555-5555-555555555555")

PICKUP_LAT = 30.2672
PICKUP_LON = -97.7431

PICKUP = {
    "latitude": PICKUP_LAT,
    "longitude": PICKUP_LON,
    "address": {
        "street": "100 Congress Ave",
        "city": "Austin",
        "state": "TX",
        "zip_code": "78701",
    },
    "phone": "+15125550100",
    "name": "Jane Doe",
}


# ---------------------------------------------------------------------------
# Async engine + session factory (in-memory SQLite)
# ---------------------------------------------------------------------------

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def _test_engine():
    """Create a fresh in-memory database for each test."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # SQLite does not enforce foreign keys by default
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_fk(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(_test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session inside a transaction that is rolled back afterwards."""
    session_factory = async_sessionmaker(
        bind=_test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        await session.begin()
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

async def _seed_data(db: AsyncSession) -> None:
    """Insert donation centers and one sponsorship."""
    from src.models import DonationCenter, Sponsorship

    def _center(center_id, name, lat_offset, *, verified=True, active=True):
        return DonationCenter(
            id=center_id,
            name=name,
            street="1 Main St",
            city="Austin",
            state="TX",
            zip_code="78701",
            phone="+15125550199",
            latitude=Decimal(str(round(PICKUP_LAT + lat_offset, 7))),
            longitude=Decimal(str(PICKUP_LON)),
            is_verified=verified,
            is_active=active,
        )

    db.add_all(
        [
            # About 0.7 miles north
            _center(NEAR_CENTER_ID, "Goodwill Central", 0.01),
            # About 3.5 miles north
            _center(SPONSORED_CENTER_ID, "Habitat ReStore", 0.05, verified=False),
            # About 69 miles north, outside the search radius
            _center(FAR_CENTER_ID, "Waco Thrift", 1.0),
            _center(INACTIVE_CENTER_ID, "Closed Shop", 0.02, active=False),
        ]
    )
    await db.flush()

    db.add(
        Sponsorship(
            id=SPONSORSHIP_ID,
            donation_center_id=SPONSORED_CENTER_ID,
            sponsor_name="Austin Cares",
            target_latitude=Decimal(str(PICKUP_LAT)),
            target_longitude=Decimal(str(PICKUP_LON)),
            target_radius_miles=Decimal("10.00"),
            subsidy_percentage=Decimal("50.00"),
            current_credit_balance=Decimal("100.00"),
            is_active=True,
        )
    )
    await db.flush()


@pytest_asyncio.fixture
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    """A database session with seed data already inserted."""
    await _seed_data(db_session)
    return db_session


# ---------------------------------------------------------------------------
# FastAPI test application
# ---------------------------------------------------------------------------

def _create_test_app(db_session_override: AsyncSession):
    """Build a FastAPI app with all routes registered, the DB dependency
    overridden to use the test session and quotes served by the mock
    provider."""
    from fastapi import FastAPI

    from src.api.deps import get_db, get_pricing_config, get_quote_provider
    from src.api.routes.bookings import router as bookings_router
    from src.api.routes.payments import router as payments_router
    from src.api.routes.pricing import router as pricing_router
    from src.services.pricingConfig import DEFAULT_PRICING_CONFIG
    from src.services.quoteProviders import MockQuoteProvider

    app = FastAPI(title="Donation Pickup Test")

    async def _override_get_db():
        yield db_session_override

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_quote_provider] = lambda: MockQuoteProvider()
    app.dependency_overrides[get_pricing_config] = lambda: DEFAULT_PRICING_CONFIG

    app.include_router(pricing_router, prefix="/api/v1")
    app.include_router(bookings_router, prefix="/api/v1")
    app.include_router(payments_router, prefix="/api/v1")

    return app


@pytest_asyncio.fixture
async def client(seeded_db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient connected to the test app via ASGI transport."""
    app = _create_test_app(seeded_db)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Stripe mock (used by payment routes)
# ---------------------------------------------------------------------------

def _intent(**params: Any) -> MagicMock:
    intent = MagicMock()
    intent.id = "pi_test_123456"
    intent.client_secret = "pi_test_123456_secret_abc"
    intent.status = "requires_payment_method"
    intent.amount = params.get("amount", 0)
    intent.currency = params.get("currency", "usd")
    return intent


@pytest.fixture(autouse=True)
def mock_stripe():
    """Mock all Stripe SDK calls used by the payment service."""
    with patch("src.integrations.stripe.paymentService.stripe") as mock_stripe_mod:
        # PaymentIntent.create echoes the requested amount
        mock_stripe_mod.PaymentIntent.create.side_effect = _intent

        # PaymentIntent.retrieve
        retrieved = MagicMock()
        retrieved.id = "pi_test_123456"
        retrieved.status = "succeeded"
        mock_stripe_mod.PaymentIntent.retrieve.return_value = retrieved

        # Refund.create
        mock_refund = MagicMock()
        mock_refund.id = "re_test_789"
        mock_refund.status = "succeeded"
        mock_refund.amount = 500
        mock_stripe_mod.Refund.create.return_value = mock_refund

        # StripeError for reference
        mock_stripe_mod.StripeError = Exception

        yield mock_stripe_mod


# ---------------------------------------------------------------------------
# Helper: create a booking via the API
# ---------------------------------------------------------------------------

def booking_payload(**overrides: Any) -> dict[str, Any]:
    """$20 base, 2 bags, 1 box, Texas pickup three days out."""
    payload = {
        "pickup": PICKUP,
        "donation_center_id": str(NEAR_CENTER_ID),
        "dropoff_name": "Goodwill Central",
        "dropoff_address": "1 Main St, Austin, TX 78701",
        "base_cost": "20.00",
        "bag_count": 2,
        "box_count": 1,
        "scheduled_date": (date.today() + timedelta(days=3)).isoformat(),
        "time_start": "10:00",
        "customer_email": "jane@example.com",
        "quote_provider": "mock",
    }
    payload.update(overrides)
    return payload


async def create_booking_via_api(client: AsyncClient, **overrides: Any):
    """POST to /api/v1/bookings and return the response."""
    return await client.post("/api/v1/bookings", json=booking_payload(**overrides))
