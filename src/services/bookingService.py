"""
Booking Orchestration Service
=============================

Drives a pickup from address entry to payment:

1. ``list_charity_options``: nearby donation centers, each with a delivery
   quote, sponsorship match and subsidized price. Sponsored options sort
   first, then cheapest.
2. ``reprice_for_schedule``: once a date is picked the price is rebuilt
   from the stored base cost with the real advance-booking discount and
   the same-day rush flag.
3. ``apply_driver_tip``: tip-only adjustment on the final breakdown.
4. ``create_booking``: persists the breakdown column by column with
   status ``payment_pending``.
5. ``start_payment`` / ``confirm_payment``: Stripe intent for the total,
   then booking confirmation and sponsorship credit deduction.
"""

from __future__ import annotations

import logging
import secrets
import string
import time as time_module
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.integrations.delivery.base import Address, ItemCounts, Location
from src.integrations.stripe.paymentService import (
    PaymentIntentResult,
    create_payment_intent,
    get_payment_status,
)
from src.models import Booking, BookingStatus, DonationCenter, PaymentStatus, Sponsorship
from src.services.geoService import (
    DEFAULT_SEARCH_RADIUS_MILES,
    estimate_duration_minutes,
    filter_by_radius,
    haversine_miles,
)
from src.services.pricingConfig import DEFAULT_PRICING_CONFIG, PricingConfig
from src.services.pricingEngine import (
    PriceBreakdown,
    add_tip,
    calculate_price_with_subsidies,
    to_cents,
)
from src.services.quoteAggregator import (
    DEFAULT_BATCH_DELAY_SECONDS,
    DEFAULT_BATCH_SIZE,
    get_quotes_with_fallback,
)
from src.services.quoteProviders import DeliveryQuote, Destination, QuoteProvider

logger = logging.getLogger(__name__)

# Next-day pickup is the default until the customer picks a date
DEFAULT_DAYS_IN_ADVANCE = 1

DEFAULT_PICKUP_WINDOW = timedelta(hours=2)

_BOOKING_ID_ALPHABET = string.ascii_uppercase + string.digits


class BookingNotFoundError(Exception):
    def __init__(self, booking_id: str) -> None:
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class BookingValidationError(ValueError):
    """A booking references a center or sponsorship it may not use."""


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompanyBenefit:
    """Employer subsidy the customer is eligible for."""
    company_id: str
    company_name: str
    subsidy_percentage: Decimal
    employee_id: Optional[str] = None


@dataclass(frozen=True)
class SponsorshipMatch:
    sponsorship_id: uuid.UUID
    sponsor_name: str
    subsidy_percentage: Decimal
    credit_balance: Decimal


@dataclass(frozen=True)
class CharityOption:
    center: Any
    distance_miles: float
    duration_minutes: int
    quote: DeliveryQuote
    pricing: PriceBreakdown
    sponsorship: Optional[SponsorshipMatch] = None
    company_benefit: Optional[CompanyBenefit] = None

    @property
    def is_sponsored(self) -> bool:
        return self.sponsorship is not None or self.company_benefit is not None


@dataclass
class BookingRequest:
    pickup: Location
    scheduled_date: date
    time_start: time
    dropoff_name: str
    dropoff_address: str
    donation_center_id: Optional[uuid.UUID] = None
    time_end: Optional[time] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    quote_provider: Optional[str] = None
    provider_quote_id: Optional[str] = None
    sponsorship_id: Optional[uuid.UUID] = None
    company_benefit: Optional[CompanyBenefit] = None


# ---------------------------------------------------------------------------
# Scheduling helpers
# ---------------------------------------------------------------------------


def days_until(scheduled_date: date, today: Optional[date] = None) -> int:
    """Whole days from ``today`` to ``scheduled_date``; past dates give 0."""
    today = today or date.today()
    return max(0, (scheduled_date - today).days)


def is_same_day(scheduled_date: date, today: Optional[date] = None) -> bool:
    return scheduled_date == (today or date.today())


def default_time_end(time_start: time) -> time:
    start = datetime.combine(date(2000, 1, 1), time_start)
    return (start + DEFAULT_PICKUP_WINDOW).time()


def generate_booking_id() -> str:
    """``DG-<epoch ms>-<6 uppercase alphanumerics>``."""
    suffix = "".join(secrets.choice(_BOOKING_ID_ALPHABET) for _ in range(6))
    return f"DG-{int(time_module.time() * 1000)}-{suffix}"


# ---------------------------------------------------------------------------
# Sponsorships
# ---------------------------------------------------------------------------


def match_sponsorship(
    center_id: Any,
    pickup_lat: float,
    pickup_lon: float,
    sponsorships: Sequence[Any],
) -> Optional[SponsorshipMatch]:
    """First active sponsorship for the center that covers the pickup and
    still has credit."""
    for sponsorship in sponsorships:
        if sponsorship.donation_center_id != center_id or not sponsorship.is_active:
            continue

        distance = haversine_miles(
            pickup_lat,
            pickup_lon,
            float(sponsorship.target_latitude),
            float(sponsorship.target_longitude),
        )
        balance = Decimal(str(sponsorship.current_credit_balance))
        if distance <= float(sponsorship.target_radius_miles) and balance > 0:
            return SponsorshipMatch(
                sponsorship_id=sponsorship.id,
                sponsor_name=sponsorship.sponsor_name,
                subsidy_percentage=Decimal(str(sponsorship.subsidy_percentage)),
                credit_balance=balance,
            )
    return None


async def resolve_sponsorship(
    db: AsyncSession,
    sponsorship_id: uuid.UUID,
    center_id: Optional[uuid.UUID],
    pickup: Location,
) -> Optional[SponsorshipMatch]:
    """Check a sponsorship chosen by the customer against the booking.

    The sponsorship must be active, belong to the booked center and cover
    the pickup location. A sponsorship that qualifies but has no credit
    left returns ``None`` and the booking is priced without it.

    Raises:
        BookingValidationError: The sponsorship cannot be used here.
    """
    sponsorship = await db.get(Sponsorship, sponsorship_id)
    if sponsorship is None or not sponsorship.is_active:
        raise BookingValidationError(f"Sponsorship {sponsorship_id} is not available")
    if center_id is None or sponsorship.donation_center_id != center_id:
        raise BookingValidationError(
            f"Sponsorship {sponsorship_id} does not sponsor donation center {center_id}"
        )

    distance = haversine_miles(
        pickup.latitude,
        pickup.longitude,
        float(sponsorship.target_latitude),
        float(sponsorship.target_longitude),
    )
    if distance > float(sponsorship.target_radius_miles):
        raise BookingValidationError(
            f"Pickup is outside the coverage area of sponsorship {sponsorship_id}"
        )

    match = match_sponsorship(center_id, pickup.latitude, pickup.longitude, [sponsorship])
    if match is None:
        logger.info("Sponsorship %s has no credit left; booking unsubsidized", sponsorship_id)
    return match


async def resolve_center_verification(
    db: AsyncSession, center_id: Optional[uuid.UUID]
) -> bool:
    """Verification status used for the service fee rate.

    Bookings without a known center are charged the unverified rate.

    Raises:
        BookingValidationError: Unknown or inactive center.
    """
    if center_id is None:
        return False
    center = await db.get(DonationCenter, center_id)
    if center is None or not center.is_active:
        raise BookingValidationError(f"Donation center {center_id} is not available")
    return bool(center.is_verified)


def _center_location(center: Any) -> Location:
    return Location(
        latitude=float(center.latitude),
        longitude=float(center.longitude),
        address=Address(
            street=center.street,
            city=center.city,
            state=center.state,
            zip_code=center.zip_code,
        ),
        phone=center.phone,
        name=center.name,
    )


# ---------------------------------------------------------------------------
# Charity options
# ---------------------------------------------------------------------------


async def load_active_centers(db: AsyncSession) -> list[DonationCenter]:
    result = await db.execute(
        select(DonationCenter).where(DonationCenter.is_active.is_(True))
    )
    return list(result.scalars().all())


async def load_active_sponsorships(db: AsyncSession) -> list[Sponsorship]:
    result = await db.execute(
        select(Sponsorship).where(
            Sponsorship.is_active.is_(True),
            Sponsorship.current_credit_balance > 0,
        )
    )
    return list(result.scalars().all())


async def list_charity_options(
    pickup: Location,
    centers: Sequence[Any],
    sponsorships: Sequence[Any],
    items: ItemCounts,
    provider: QuoteProvider,
    *,
    company_benefit: Optional[CompanyBenefit] = None,
    config: PricingConfig = DEFAULT_PRICING_CONFIG,
    days_in_advance: int = DEFAULT_DAYS_IN_ADVANCE,
    max_distance_miles: float = DEFAULT_SEARCH_RADIUS_MILES,
    batch_size: int = DEFAULT_BATCH_SIZE,
    batch_delay: float = DEFAULT_BATCH_DELAY_SECONDS,
) -> list[CharityOption]:
    """Priced donation-center options for a pickup.

    Centers farther than ``max_distance_miles`` are dropped. Every
    remaining center gets a quote (mock estimates if the provider is
    down), a sponsorship match and a subsidized breakdown with no tip.

    Returns:
        Options with sponsored ones first, each group cheapest first.
    """
    nearby = filter_by_radius(centers, pickup.latitude, pickup.longitude, max_distance_miles)
    if not nearby:
        return []

    destinations = [
        Destination(id=str(cd.center.id), location=_center_location(cd.center))
        for cd in nearby
    ]
    quotes = await get_quotes_with_fallback(
        provider,
        pickup,
        destinations,
        items,
        batch_size=batch_size,
        batch_delay=batch_delay,
    )

    company_pct = company_benefit.subsidy_percentage if company_benefit else Decimal("0")
    options: list[CharityOption] = []

    for cd in nearby:
        center = cd.center
        quote = quotes.get(str(center.id))
        if quote is None:
            continue

        sponsorship = match_sponsorship(
            center.id, pickup.latitude, pickup.longitude, sponsorships
        )
        pricing = calculate_price_with_subsidies(
            quote.price,
            is_rush=False,
            tip=0,
            charity_subsidy_pct=sponsorship.subsidy_percentage if sponsorship else 0,
            company_subsidy_pct=company_pct,
            service_fee_pct=config.service_fee_for_center(bool(center.is_verified)),
            state=pickup.address.state,
            bag_count=items.bags,
            box_count=items.boxes,
            days_in_advance=days_in_advance,
            config=config,
        )
        options.append(
            CharityOption(
                center=center,
                distance_miles=cd.distance_miles,
                duration_minutes=estimate_duration_minutes(cd.distance_miles),
                quote=quote,
                pricing=pricing,
                sponsorship=sponsorship,
                company_benefit=company_benefit,
            )
        )

    options.sort(key=lambda o: (not o.is_sponsored, o.pricing.total_price))
    return options


# ---------------------------------------------------------------------------
# Repricing
# ---------------------------------------------------------------------------


def reprice_for_schedule(
    breakdown: PriceBreakdown,
    scheduled_date: date,
    *,
    state: Optional[str] = None,
    service_fee_pct: Optional[Decimal] = None,
    today: Optional[date] = None,
    config: PricingConfig = DEFAULT_PRICING_CONFIG,
) -> PriceBreakdown:
    """Rebuild a breakdown for the chosen pickup date.

    The new breakdown is generated from the stored base cost, item counts,
    pickup state and subsidy percentages; the previous one is never
    patched. An explicit ``state`` overrides the stored one.
    """
    return calculate_price_with_subsidies(
        breakdown.base_cost,
        is_rush=is_same_day(scheduled_date, today),
        tip=breakdown.driver_tip,
        charity_subsidy_pct=breakdown.charity_subsidy_pct,
        company_subsidy_pct=breakdown.company_subsidy_pct,
        service_fee_pct=service_fee_pct,
        state=breakdown.state if state is None else state,
        bag_count=breakdown.bag_count,
        box_count=breakdown.box_count,
        days_in_advance=days_until(scheduled_date, today),
        config=config,
    )


def apply_driver_tip(
    breakdown: PriceBreakdown,
    tip: Any,
    *,
    config: PricingConfig = DEFAULT_PRICING_CONFIG,
) -> PriceBreakdown:
    return add_tip(breakdown, tip, config=config)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


_BREAKDOWN_COLUMNS = (
    "base_cost",
    "delivery_fee",
    "service_fee",
    "rush_fee",
    "driver_tip",
    "processor_fee",
    "subtotal",
    "total_price",
    "state_fee",
    "markup_total",
    "bag_fee",
    "box_fee",
    "bag_box_driver_tip",
    "total_driver_tip",
    "discount_pct",
    "discount_amount",
    "days_in_advance",
    "bag_count",
    "box_count",
    "is_rush",
    "charity_subsidy_pct",
    "charity_subsidy_amount",
    "company_subsidy_pct",
    "company_subsidy_amount",
    "total_subsidy_amount",
)


async def create_booking(
    db: AsyncSession,
    request: BookingRequest,
    breakdown: PriceBreakdown,
) -> Booking:
    """Persist a booking with the final price breakdown.

    ``original_price`` is stored only when a subsidy applied.
    """
    address = request.pickup.address
    benefit = request.company_benefit

    booking = Booking(
        id=generate_booking_id(),
        customer_email=request.customer_email,
        customer_phone=request.customer_phone or request.pickup.phone,
        pickup_street=address.street,
        pickup_city=address.city,
        pickup_state=address.state,
        pickup_zip=address.zip_code,
        pickup_latitude=Decimal(str(request.pickup.latitude)),
        pickup_longitude=Decimal(str(request.pickup.longitude)),
        donation_center_id=request.donation_center_id,
        dropoff_name=request.dropoff_name,
        dropoff_address=request.dropoff_address,
        scheduled_date=request.scheduled_date,
        time_start=request.time_start,
        time_end=request.time_end or default_time_end(request.time_start),
        quote_provider=request.quote_provider,
        provider_quote_id=request.provider_quote_id,
        original_price=breakdown.original_price if breakdown.subsidized else None,
        sponsorship_id=request.sponsorship_id,
        company_id=benefit.company_id if benefit else None,
        company_name=benefit.company_name if benefit else None,
        employee_id=benefit.employee_id if benefit else None,
        status=BookingStatus.PAYMENT_PENDING,
        payment_status=PaymentStatus.PENDING,
        **{column: getattr(breakdown, column) for column in _BREAKDOWN_COLUMNS},
    )
    db.add(booking)
    await db.flush()
    await db.refresh(booking)

    logger.info(
        "Booking %s created: total=%s subsidized=%s date=%s",
        booking.id,
        breakdown.total_price,
        breakdown.subsidized,
        request.scheduled_date,
    )
    return booking


async def get_booking(db: AsyncSession, booking_id: str) -> Booking:
    booking = await db.get(Booking, booking_id)
    if booking is None:
        raise BookingNotFoundError(booking_id)
    return booking


async def _mark_paid(db: AsyncSession, booking: Booking) -> None:
    booking.status = BookingStatus.SCHEDULED
    booking.payment_status = PaymentStatus.COMPLETED

    if booking.sponsorship_id and booking.charity_subsidy_amount > 0:
        sponsorship = await db.get(Sponsorship, booking.sponsorship_id)
        if sponsorship is not None:
            remaining = Decimal(str(sponsorship.current_credit_balance)) - Decimal(
                str(booking.charity_subsidy_amount)
            )
            sponsorship.current_credit_balance = max(Decimal("0"), remaining)
            logger.info(
                "Sponsorship %s credit reduced by %s to %s",
                sponsorship.id,
                booking.charity_subsidy_amount,
                sponsorship.current_credit_balance,
            )
    await db.flush()


async def start_payment(
    db: AsyncSession, booking_id: str
) -> Optional[PaymentIntentResult]:
    """Create the Stripe payment intent for a pending booking.

    A booking with nothing to pay (fully subsidized, no tip) is confirmed
    directly and ``None`` is returned.

    Raises:
        BookingNotFoundError: Unknown booking id.
        ValueError: The booking is not awaiting payment.
        PaymentError: Stripe rejected the request.
    """
    booking = await get_booking(db, booking_id)
    if booking.status is not BookingStatus.PAYMENT_PENDING:
        raise ValueError(
            f"Booking {booking_id} is not awaiting payment (status={booking.status.value})"
        )

    amount_cents = to_cents(booking.total_price)
    if amount_cents == 0:
        logger.info("Booking %s fully covered; no payment required", booking_id)
        await _mark_paid(db, booking)
        return None

    intent = await create_payment_intent(
        booking.id,
        amount_cents,
        currency=settings.stripe_currency,
        metadata={"dropoff": booking.dropoff_name},
    )
    booking.payment_intent_id = intent.id
    await db.flush()
    return intent


async def confirm_payment(db: AsyncSession, booking_id: str) -> Booking:
    """Sync the booking with its payment intent status.

    ``succeeded`` schedules the booking and draws down sponsorship credit;
    ``canceled`` marks the payment failed; anything else leaves it pending.
    """
    booking = await get_booking(db, booking_id)
    if booking.payment_status is PaymentStatus.COMPLETED:
        return booking
    if not booking.payment_intent_id:
        raise ValueError(f"Booking {booking_id} has no payment intent")

    status = await get_payment_status(booking.payment_intent_id)
    if status == "succeeded":
        await _mark_paid(db, booking)
    elif status == "canceled":
        booking.payment_status = PaymentStatus.FAILED
        await db.flush()

    logger.info("Booking %s payment status %s -> %s", booking_id, status, booking.payment_status.value)
    return booking
