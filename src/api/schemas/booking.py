"""
Pydantic v2 schemas for the Bookings API.

Covers:
- Charity option search for a pickup
- Schedule-based repricing
- Booking creation and retrieval
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.api.schemas.pricing import (
    DeliveryQuoteOut,
    ItemCountsIn,
    LocationIn,
    PriceBreakdownOut,
)
from src.models.booking import BookingStatus, PaymentStatus
from src.services.bookingService import CompanyBenefit


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class CompanyBenefitIn(BaseModel):
    company_id: str
    company_name: str
    subsidy_percentage: Decimal = Field(ge=0, le=100)
    employee_id: Optional[str] = None

    def to_benefit(self) -> CompanyBenefit:
        return CompanyBenefit(**self.model_dump())


class CharityOptionsRequest(ItemCountsIn):
    pickup: LocationIn
    company_benefit: Optional[CompanyBenefitIn] = None
    max_distance_miles: Optional[float] = Field(default=None, gt=0, le=100)


class _RepriceFields(ItemCountsIn):
    base_cost: Decimal = Field(ge=0, description="Provider delivery cost in dollars")
    state: Optional[str] = Field(default=None, max_length=2)
    company_benefit: Optional[CompanyBenefitIn] = None
    scheduled_date: date


class SchedulePriceRequest(_RepriceFields):
    is_verified_center: bool = Field(
        default=True,
        description="Verified centers get the lower service fee",
    )
    charity_subsidy_pct: Decimal = Field(default=Decimal("0"), ge=0, le=100)


class CreateBookingRequest(_RepriceFields):
    """Booking request. The service fee rate comes from the stored center,
    never from the request."""

    pickup: LocationIn
    donation_center_id: Optional[uuid.UUID] = None
    dropoff_name: str = Field(min_length=1, max_length=255)
    dropoff_address: str = Field(min_length=1, max_length=500)
    time_start: time
    time_end: Optional[time] = Field(
        default=None, description="Defaults to two hours after time_start"
    )
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    sponsorship_id: Optional[uuid.UUID] = None
    quote_provider: Optional[str] = None
    provider_quote_id: Optional[str] = None
    tip: Decimal = Field(default=Decimal("0"), description="Driver tip; clamped to [0, 100]")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class SponsorshipOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sponsorship_id: uuid.UUID
    sponsor_name: str
    subsidy_percentage: Decimal


class CompanyBenefitOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    company_id: str
    company_name: str
    subsidy_percentage: Decimal


class CharityOptionOut(BaseModel):
    center_id: uuid.UUID
    center_name: str
    address: str
    is_verified: bool
    distance_miles: float
    duration_minutes: int
    quote: DeliveryQuoteOut
    pricing: PriceBreakdownOut
    sponsorship: Optional[SponsorshipOut] = None
    company_benefit: Optional[CompanyBenefitOut] = None
    is_sponsored: bool


class CharityOptionsOut(BaseModel):
    options: list[CharityOptionOut]
    total: int


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: BookingStatus
    payment_status: PaymentStatus
    payment_intent_id: Optional[str] = None

    pickup_street: str
    pickup_city: str
    pickup_state: str
    pickup_zip: str
    donation_center_id: Optional[uuid.UUID] = None
    dropoff_name: str
    dropoff_address: str
    scheduled_date: date
    time_start: time
    time_end: time
    is_rush: bool
    bag_count: int
    box_count: int

    base_cost: Decimal
    delivery_fee: Decimal
    service_fee: Decimal
    rush_fee: Decimal
    driver_tip: Decimal
    processor_fee: Decimal
    subtotal: Decimal
    total_price: Decimal
    discount_pct: Decimal
    discount_amount: Decimal
    days_in_advance: int

    original_price: Optional[Decimal] = None
    charity_subsidy_amount: Decimal
    company_subsidy_amount: Decimal
    total_subsidy_amount: Decimal

    created_at: Optional[datetime] = None
