"""
Shared pytest fixtures for donation pickup backend unit tests.

Provides mock database sessions and sample domain objects that mirror
production ORM models without requiring a live database connection.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.integrations.delivery.base import Address, ItemCounts, Location

# Downtown Austin, TX (a surcharge state)
PICKUP_LAT = 30.2672
PICKUP_LON = -97.7431


# ---------------------------------------------------------------------------
# Database session mock
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db() -> AsyncMock:
    """Async mock of ``AsyncSession``.

    Provides a mock that supports ``db.get()``, ``db.add()``,
    ``db.flush()``, and ``db.refresh()`` out of the box.  Individual tests
    can configure ``mock_db.get.return_value`` to control lookups.
    """
    session = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


@pytest.fixture
def pickup() -> Location:
    return Location(
        latitude=PICKUP_LAT,
        longitude=PICKUP_LON,
        address=Address(
            street="100 Congress Ave",
            city="Austin",
            state="TX",
            zip_code="78701",
        ),
        phone="+15125550100",
        name="Jane Doe",
    )


@pytest.fixture
def items() -> ItemCounts:
    return ItemCounts(bags=2, boxes=1)


# ---------------------------------------------------------------------------
# Donation center fixtures
# ---------------------------------------------------------------------------


def make_center(
    name: str,
    latitude: float | None,
    longitude: float | None,
    *,
    is_verified: bool = True,
) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid.uuid4(),
        name=name,
        street="1 Main St",
        city="Austin",
        state="TX",
        zip_code="78701",
        phone="+15125550199",
        latitude=Decimal(str(latitude)) if latitude is not None else None,
        longitude=Decimal(str(longitude)) if longitude is not None else None,
        is_verified=is_verified,
        is_active=True,
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def near_center() -> SimpleNamespace:
    """A verified center about 0.7 miles north of the pickup."""
    return make_center("Goodwill Central", PICKUP_LAT + 0.01, PICKUP_LON)


@pytest.fixture
def mid_center() -> SimpleNamespace:
    """An unverified center about 3.5 miles north of the pickup."""
    return make_center(
        "Habitat ReStore", PICKUP_LAT + 0.05, PICKUP_LON, is_verified=False
    )


@pytest.fixture
def far_center() -> SimpleNamespace:
    """A center about 69 miles away, outside every search radius."""
    return make_center("Waco Thrift", PICKUP_LAT + 1.0, PICKUP_LON)


@pytest.fixture
def sample_sponsorship(mid_center: SimpleNamespace) -> SimpleNamespace:
    """A 50% sponsorship for the mid center covering the pickup area."""
    return SimpleNamespace(
        id=uuid.uuid4(),
        donation_center_id=mid_center.id,
        sponsor_name="Austin Cares",
        target_latitude=Decimal(str(PICKUP_LAT)),
        target_longitude=Decimal(str(PICKUP_LON)),
        target_radius_miles=Decimal("10.00"),
        subsidy_percentage=Decimal("50.00"),
        current_credit_balance=Decimal("100.00"),
        is_active=True,
    )
