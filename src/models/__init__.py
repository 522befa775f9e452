"""
Donation Pickup SQLAlchemy Models
=================================

Central import point for all ORM models. Import ``Base`` from here for the
``create_all`` convenience in tests.

Usage::

    from src.models import Base, Booking, DonationCenter
"""

# -- Base & Mixins --
from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

# -- Donation centers & sponsorships --
from .donation_center import DonationCenter, Sponsorship

# -- Bookings --
from .booking import Booking, BookingStatus, PaymentStatus

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "DonationCenter",
    "Sponsorship",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
]
