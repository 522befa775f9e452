"""
Payments API routes
===================

  POST /payments/create-intent             -- Payment intent for a booking's total
  GET  /payments/status/{payment_intent_id} -- PaymentIntent status
  POST /payments/refund/{payment_intent_id} -- Refund (full or partial)
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from src.api.deps import DBSession
from src.api.schemas.payment import (
    CreatePaymentIntentRequest,
    PaymentIntentOut,
    PaymentStatusOut,
    RefundOut,
    RefundRequest,
)
from src.core.config import settings
from src.integrations.stripe.paymentService import (
    PaymentError,
    get_payment_status,
    refund_payment,
)
from src.services.bookingService import BookingNotFoundError, start_payment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


# ---------------------------------------------------------------------------
# Helper: convert PaymentError to HTTPException
# ---------------------------------------------------------------------------

def _payment_error_to_http(exc: PaymentError) -> HTTPException:
    """Map a PaymentError to an appropriate HTTP error response."""
    detail = {
        "message": exc.message,
        "stripe_error_code": exc.stripe_error_code,
        "stripe_error_type": exc.stripe_error_type,
    }

    if exc.decline_code:
        detail["decline_code"] = exc.decline_code

    return HTTPException(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        detail=detail,
    )


# ---------------------------------------------------------------------------
# POST /payments/create-intent
# ---------------------------------------------------------------------------

@router.post(
    "/create-intent",
    response_model=PaymentIntentOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a payment intent for a booking",
    description=(
        "Creates a Stripe PaymentIntent for the booking's total price. "
        "Fully subsidized bookings are confirmed without a payment intent."
    ),
)
async def create_payment_intent_endpoint(
    body: CreatePaymentIntentRequest,
    db: DBSession,
) -> PaymentIntentOut:
    try:
        intent = await start_payment(db, body.booking_id)
    except BookingNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except PaymentError as exc:
        raise _payment_error_to_http(exc)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    if intent is None:
        return PaymentIntentOut(
            booking_id=body.booking_id,
            payment_required=False,
            status="succeeded",
            amount_cents=0,
            currency=settings.stripe_currency,
        )

    return PaymentIntentOut(
        booking_id=body.booking_id,
        payment_required=True,
        id=intent.id,
        client_secret=intent.client_secret,
        status=intent.status,
        amount_cents=intent.amount_cents,
        currency=intent.currency,
    )


# ---------------------------------------------------------------------------
# GET /payments/status/{payment_intent_id}
# ---------------------------------------------------------------------------

@router.get(
    "/status/{payment_intent_id}",
    response_model=PaymentStatusOut,
    summary="Get payment intent status",
)
async def payment_status_endpoint(payment_intent_id: str) -> PaymentStatusOut:
    try:
        intent_status = await get_payment_status(payment_intent_id)
    except PaymentError as exc:
        raise _payment_error_to_http(exc)
    return PaymentStatusOut(payment_intent_id=payment_intent_id, status=intent_status)


# ---------------------------------------------------------------------------
# POST /payments/refund/{payment_intent_id}
# ---------------------------------------------------------------------------

@router.post(
    "/refund/{payment_intent_id}",
    response_model=RefundOut,
    summary="Refund a payment",
)
async def refund_endpoint(payment_intent_id: str, body: RefundRequest) -> RefundOut:
    try:
        result = await refund_payment(
            payment_intent_id,
            amount_cents=body.amount_cents,
            reason=body.reason,
        )
    except PaymentError as exc:
        raise _payment_error_to_http(exc)
    return RefundOut(id=result.id, status=result.status, amount_cents=result.amount_cents)
