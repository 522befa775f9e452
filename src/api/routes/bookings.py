"""
Bookings API routes
===================

  POST /api/v1/bookings/charity-options     -- Ranked donation centers with prices
  POST /api/v1/bookings/schedule-price      -- Reprice for a chosen pickup date
  POST /api/v1/bookings                     -- Create a booking (payment pending)
  GET  /api/v1/bookings/{booking_id}        -- Booking details
  POST /api/v1/bookings/{booking_id}/confirm-payment -- Sync with payment status
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, HTTPException, status

from src.api.deps import DBSession, PricingConfigDep, QuoteProviderDep
from src.api.schemas.booking import (
    BookingOut,
    CharityOptionOut,
    CharityOptionsOut,
    CharityOptionsRequest,
    CompanyBenefitOut,
    CreateBookingRequest,
    SchedulePriceRequest,
    SponsorshipOut,
)
from src.api.schemas.pricing import DeliveryQuoteOut, PriceBreakdownOut
from src.core.config import settings
from src.integrations.stripe.paymentService import PaymentError
from src.services.bookingService import (
    BookingNotFoundError,
    BookingRequest,
    BookingValidationError,
    CharityOption,
    apply_driver_tip,
    confirm_payment,
    create_booking,
    get_booking,
    list_charity_options,
    load_active_centers,
    load_active_sponsorships,
    reprice_for_schedule,
    resolve_center_verification,
    resolve_sponsorship,
)
from src.services.pricingConfig import PricingConfig
from src.services.pricingEngine import PriceBreakdown, calculate_price_with_subsidies

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def _option_out(option: CharityOption) -> CharityOptionOut:
    center = option.center
    return CharityOptionOut(
        center_id=center.id,
        center_name=center.name,
        address=f"{center.street}, {center.city}, {center.state} {center.zip_code}",
        is_verified=center.is_verified,
        distance_miles=round(option.distance_miles, 2),
        duration_minutes=option.duration_minutes,
        quote=DeliveryQuoteOut.model_validate(option.quote),
        pricing=PriceBreakdownOut.model_validate(option.pricing),
        sponsorship=(
            SponsorshipOut.model_validate(option.sponsorship)
            if option.sponsorship
            else None
        ),
        company_benefit=(
            CompanyBenefitOut.model_validate(option.company_benefit)
            if option.company_benefit
            else None
        ),
        is_sponsored=option.is_sponsored,
    )


def _scheduled_breakdown(
    body: SchedulePriceRequest | CreateBookingRequest,
    charity_pct: Decimal,
    is_verified: bool,
    config: PricingConfig,
    state: Optional[str] = None,
) -> PriceBreakdown:
    """Price from the base cost, then reprice for the requested date."""
    state = body.state or state
    company_pct = (
        body.company_benefit.subsidy_percentage if body.company_benefit else Decimal("0")
    )
    service_fee_pct = config.service_fee_for_center(is_verified)
    seed = calculate_price_with_subsidies(
        body.base_cost,
        charity_subsidy_pct=charity_pct,
        company_subsidy_pct=company_pct,
        service_fee_pct=service_fee_pct,
        state=state,
        bag_count=body.bag_count,
        box_count=body.box_count,
        config=config,
    )
    return reprice_for_schedule(
        seed,
        body.scheduled_date,
        state=state,
        service_fee_pct=service_fee_pct,
        config=config,
    )


# ---------------------------------------------------------------------------
# POST /bookings/charity-options
# ---------------------------------------------------------------------------

@router.post(
    "/charity-options",
    response_model=CharityOptionsOut,
    summary="List donation centers near a pickup with prices",
)
async def charity_options(
    body: CharityOptionsRequest,
    db: DBSession,
    provider: QuoteProviderDep,
    config: PricingConfigDep,
) -> CharityOptionsOut:
    centers = await load_active_centers(db)
    sponsorships = await load_active_sponsorships(db)

    options = await list_charity_options(
        body.pickup.to_location(),
        centers,
        sponsorships,
        body.to_items(),
        provider,
        company_benefit=body.company_benefit.to_benefit() if body.company_benefit else None,
        config=config,
        max_distance_miles=body.max_distance_miles or settings.max_search_radius_miles,
        batch_size=settings.quote_batch_size,
        batch_delay=settings.quote_batch_delay_seconds,
    )
    return CharityOptionsOut(
        options=[_option_out(o) for o in options],
        total=len(options),
    )


# ---------------------------------------------------------------------------
# POST /bookings/schedule-price
# ---------------------------------------------------------------------------

@router.post(
    "/schedule-price",
    response_model=PriceBreakdownOut,
    summary="Reprice a pickup for a chosen date",
    description=(
        "Applies the advance-booking discount for the chosen date and flags "
        "same-day pickups as rush."
    ),
)
async def schedule_price(
    body: SchedulePriceRequest,
    config: PricingConfigDep,
) -> PriceBreakdownOut:
    breakdown = _scheduled_breakdown(
        body, body.charity_subsidy_pct, body.is_verified_center, config
    )
    return PriceBreakdownOut.model_validate(breakdown)


# ---------------------------------------------------------------------------
# POST /bookings
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=BookingOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a booking",
    description=(
        "Recomputes the price from the base cost, applies the driver tip and "
        "stores the booking with status payment_pending."
    ),
)
async def create_booking_endpoint(
    body: CreateBookingRequest,
    db: DBSession,
    config: PricingConfigDep,
) -> BookingOut:
    pickup = body.pickup.to_location()
    charity_pct = Decimal("0")
    sponsorship_id: Optional[uuid.UUID] = None
    try:
        is_verified = await resolve_center_verification(db, body.donation_center_id)
        if body.sponsorship_id is not None:
            match = await resolve_sponsorship(
                db, body.sponsorship_id, body.donation_center_id, pickup
            )
            if match is not None:
                charity_pct = match.subsidy_percentage
                sponsorship_id = match.sponsorship_id
    except BookingValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        )

    breakdown = _scheduled_breakdown(
        body, charity_pct, is_verified, config, state=body.pickup.address.state or None
    )
    breakdown = apply_driver_tip(breakdown, body.tip, config=config)

    booking = await create_booking(
        db,
        BookingRequest(
            pickup=pickup,
            scheduled_date=body.scheduled_date,
            time_start=body.time_start,
            time_end=body.time_end,
            dropoff_name=body.dropoff_name,
            dropoff_address=body.dropoff_address,
            donation_center_id=body.donation_center_id,
            customer_email=body.customer_email,
            customer_phone=body.customer_phone,
            quote_provider=body.quote_provider,
            provider_quote_id=body.provider_quote_id,
            sponsorship_id=sponsorship_id,
            company_benefit=body.company_benefit.to_benefit() if body.company_benefit else None,
        ),
        breakdown,
    )
    return BookingOut.model_validate(booking)


# ---------------------------------------------------------------------------
# GET /bookings/{booking_id}
# ---------------------------------------------------------------------------

@router.get(
    "/{booking_id}",
    response_model=BookingOut,
    summary="Get a booking",
)
async def get_booking_endpoint(booking_id: str, db: DBSession) -> BookingOut:
    try:
        booking = await get_booking(db, booking_id)
    except BookingNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return BookingOut.model_validate(booking)


# ---------------------------------------------------------------------------
# POST /bookings/{booking_id}/confirm-payment
# ---------------------------------------------------------------------------

@router.post(
    "/{booking_id}/confirm-payment",
    response_model=BookingOut,
    summary="Sync a booking with its payment intent",
)
async def confirm_payment_endpoint(booking_id: str, db: DBSession) -> BookingOut:
    try:
        booking = await confirm_payment(db, booking_id)
    except BookingNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except PaymentError as exc:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={"message": exc.message, "stripe_error_code": exc.stripe_error_code},
        )
    return BookingOut.model_validate(booking)
