"""
Pydantic v2 schemas for the Pricing API.

Covers:
- Price estimates for explicit order modifiers
- Delivery quote requests against one or more destinations
- The itemised price breakdown shared with the Bookings API

Currency amounts are ``Decimal`` dollars, serialised as strings.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.integrations.delivery.base import Address, ItemCounts, Location


# ---------------------------------------------------------------------------
# Shared request pieces
# ---------------------------------------------------------------------------

class AddressIn(BaseModel):
    street: str = ""
    city: str = ""
    state: str = Field(default="", max_length=2, description="Two-letter state code")
    zip_code: str = ""


class LocationIn(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: AddressIn = Field(default_factory=AddressIn)
    phone: Optional[str] = None
    name: Optional[str] = None

    def to_location(self) -> Location:
        return Location(
            latitude=self.latitude,
            longitude=self.longitude,
            address=Address(**self.address.model_dump()),
            phone=self.phone,
            name=self.name,
        )


class ItemCountsIn(BaseModel):
    bag_count: int = Field(default=0, ge=0, description="Number of bags")
    box_count: int = Field(default=0, ge=0, description="Number of boxes")

    def to_items(self) -> ItemCounts:
        return ItemCounts(bags=self.bag_count, boxes=self.box_count)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class PriceEstimateRequest(BaseModel):
    """Order modifiers for a one-off price estimate."""

    base_cost: Decimal = Field(ge=0, description="Provider delivery cost in dollars")
    is_rush: bool = False
    tip: Decimal = Field(default=Decimal("0"), description="Driver tip; clamped to [0, 100]")
    service_fee_pct: Optional[Decimal] = Field(
        default=None,
        description="Service fee rate, used only when the service fee mode is 'parameter'",
    )
    state: Optional[str] = Field(default=None, max_length=2)
    bag_count: int = Field(default=0, ge=0)
    box_count: int = Field(default=0, ge=0)
    days_in_advance: int = Field(default=0, ge=0)
    charity_subsidy_pct: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    company_subsidy_pct: Decimal = Field(default=Decimal("0"), ge=0, le=100)


class DestinationIn(BaseModel):
    id: str = Field(description="Caller-chosen destination key")
    location: LocationIn


class QuoteRequest(ItemCountsIn):
    pickup: LocationIn
    destinations: list[DestinationIn] = Field(min_length=1, max_length=50)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class PriceBreakdownOut(BaseModel):
    """Itemised price. For unsubsidized prices
    ``subtotal + processor_fee == total_price``."""

    model_config = ConfigDict(from_attributes=True)

    base_cost: Decimal
    delivery_fee: Decimal
    service_fee: Decimal
    rush_fee: Decimal
    driver_tip: Decimal
    processor_fee: Decimal
    subtotal: Decimal
    total_price: Decimal
    total_price_cents: int

    state_fee: Decimal
    markup_total: Decimal
    bag_count: int
    box_count: int
    bag_fee: Decimal
    box_fee: Decimal
    bag_box_driver_tip: Decimal
    total_driver_tip: Decimal
    discount_pct: Decimal
    discount_amount: Decimal
    days_in_advance: int
    is_rush: bool
    state: Optional[str] = None

    original_price: Optional[Decimal] = None
    charity_subsidy_pct: Decimal
    charity_subsidy_amount: Decimal
    company_subsidy_pct: Decimal
    company_subsidy_amount: Decimal
    total_subsidy_amount: Decimal
    subsidized: bool


class DeliveryQuoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    price: Decimal = Field(description="Base delivery cost in dollars")
    provider: str
    provider_quote_id: Optional[str] = None
    distance_miles: Optional[float] = None
    is_fallback: bool = Field(
        default=False, description="True when the price is an estimate, not a live quote"
    )


class QuotesOut(BaseModel):
    provider: str
    quotes: dict[str, DeliveryQuoteOut]
