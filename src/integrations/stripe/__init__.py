"""
Stripe Integration Module
=========================

Usage::

    from src.integrations.stripe import (
        PaymentError,
        create_payment_intent,
        get_payment_status,
        refund_payment,
    )
"""

from .paymentService import (
    PaymentError,
    PaymentIntentResult,
    RefundResult,
    create_payment_intent,
    get_payment_status,
    refund_payment,
)

__all__ = [
    "PaymentError",
    "PaymentIntentResult",
    "RefundResult",
    "create_payment_intent",
    "get_payment_status",
    "refund_payment",
]
