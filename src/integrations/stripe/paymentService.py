"""
Stripe Payment Service
======================

Charges the customer's share of a pickup booking. Only the final
``total_price`` reaches this module, already converted to cents by the
booking service; subsidies and tips are settled before that.

- ``create_payment_intent``: one intent per booking, tagged with the
  booking id in its metadata
- ``get_payment_status``: used when confirming a booking
- ``refund_payment``: full or partial refunds for cancelled pickups

The secret key is read from ``settings.stripe_secret_key``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import stripe

from src.core.config import settings

logger = logging.getLogger(__name__)

stripe.api_key = settings.stripe_secret_key

# Written into every object's metadata so dashboard searches can filter
PLATFORM_TAG = "donation_pickup"


class PaymentError(Exception):
    """A Stripe call for a booking payment failed.

    ``stripe_error_code``, ``stripe_error_type`` and ``decline_code`` are
    copied from the SDK error when Stripe supplied them.
    """

    def __init__(
        self,
        message: str,
        stripe_error_code: str | None = None,
        stripe_error_type: str | None = None,
        decline_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stripe_error_code = stripe_error_code
        self.stripe_error_type = stripe_error_type
        self.decline_code = decline_code

    @classmethod
    def from_stripe(cls, exc: Exception) -> "PaymentError":
        body = getattr(exc, "error", None)
        return cls(
            str(exc),
            stripe_error_code=getattr(body, "code", None),
            stripe_error_type=getattr(body, "type", None),
            decline_code=getattr(body, "decline_code", None),
        )


@dataclass(frozen=True)
class PaymentIntentResult:
    id: str
    client_secret: str
    status: str
    amount_cents: int
    currency: str


@dataclass(frozen=True)
class RefundResult:
    id: str
    status: str
    amount_cents: int


def _call_stripe(operation: str, fn: Callable[..., Any], *args: Any, **params: Any) -> Any:
    """Run one SDK call, turning any ``StripeError`` into ``PaymentError``."""
    try:
        return fn(*args, **params)
    except stripe.StripeError as exc:
        error = PaymentError.from_stripe(exc)
        logger.error(
            "Stripe %s failed: %s (code=%s, decline_code=%s)",
            operation,
            error.message,
            error.stripe_error_code,
            error.decline_code,
        )
        raise error from exc


async def create_payment_intent(
    booking_id: str,
    amount_cents: int,
    currency: str = "usd",
    metadata: Optional[dict[str, str]] = None,
) -> PaymentIntentResult:
    """Create the PaymentIntent that collects a booking's total.

    Args:
        booking_id: Booking id (``DG-...``), stored in intent metadata.
        amount_cents: Customer share in cents.
        currency: Three-letter ISO currency code.
        metadata: Extra metadata merged into the intent.

    Raises:
        ValueError: ``amount_cents`` is zero or negative. Fully subsidized
            bookings never reach Stripe.
        PaymentError: Stripe rejected the request.
    """
    if amount_cents <= 0:
        raise ValueError(f"Payment amount must be positive, got {amount_cents}")

    intent = _call_stripe(
        "payment intent creation",
        stripe.PaymentIntent.create,
        amount=amount_cents,
        currency=currency.lower(),
        metadata={**(metadata or {}), "booking_id": booking_id, "platform": PLATFORM_TAG},
        automatic_payment_methods={"enabled": True},
    )
    logger.info(
        "PaymentIntent %s created for booking %s: %d %s",
        intent.id,
        booking_id,
        amount_cents,
        currency,
    )
    return PaymentIntentResult(
        id=intent.id,
        client_secret=intent.client_secret,
        status=intent.status,
        amount_cents=intent.amount,
        currency=intent.currency,
    )


async def get_payment_status(payment_intent_id: str) -> str:
    intent = _call_stripe("status lookup", stripe.PaymentIntent.retrieve, payment_intent_id)
    return intent.status


async def refund_payment(
    payment_intent_id: str,
    amount_cents: int | None = None,
    reason: str = "",
) -> RefundResult:
    """Refund a booking payment; ``amount_cents=None`` refunds it all."""
    if amount_cents is not None and amount_cents <= 0:
        raise ValueError(f"Refund amount must be positive, got {amount_cents}")

    params: dict[str, Any] = {
        "payment_intent": payment_intent_id,
        "metadata": {"reason": reason[:500], "platform": PLATFORM_TAG},
    }
    if amount_cents is not None:
        params["amount"] = amount_cents

    refund = _call_stripe("refund", stripe.Refund.create, **params)
    logger.info(
        "Refund %s for %s: %d cents (%s)",
        refund.id,
        payment_intent_id,
        refund.amount,
        refund.status,
    )
    return RefundResult(id=refund.id, status=refund.status, amount_cents=refund.amount)
