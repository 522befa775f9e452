"""
Pydantic v2 schemas for the Payments API.

All monetary amounts are represented as integers (cents).
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class CreatePaymentIntentRequest(BaseModel):
    """Request body for creating a payment intent for a booking."""

    booking_id: str = Field(min_length=1, description="Booking id (DG-...)")


class PaymentIntentOut(BaseModel):
    """Payment intent for a booking.

    ``payment_required`` is false when subsidies cover the whole price; the
    booking is then confirmed immediately and no intent exists.
    """

    booking_id: str
    payment_required: bool
    id: Optional[str] = Field(default=None, description="Stripe PaymentIntent ID")
    client_secret: Optional[str] = Field(
        default=None,
        description="Client secret for client-side payment confirmation",
    )
    status: str = Field(description="PaymentIntent status, or 'succeeded' when free")
    amount_cents: int = Field(description="Amount in cents")
    currency: str = Field(description="Three-letter ISO currency code")


class PaymentStatusOut(BaseModel):
    payment_intent_id: str
    status: str


class RefundRequest(BaseModel):
    amount_cents: Optional[int] = Field(
        default=None,
        gt=0,
        description="Partial refund amount in cents; omit for a full refund",
    )
    reason: str = Field(default="", max_length=500)


class RefundOut(BaseModel):
    id: str
    status: str
    amount_cents: int
