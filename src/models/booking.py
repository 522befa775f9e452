"""
SQLAlchemy model for pickup bookings.

The final price breakdown is stored column by column so finance reports
can query individual fees without unpacking JSON.
"""

import enum
import uuid
from datetime import date, time
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Time,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    PAYMENT_PENDING = "payment_pending"
    SCHEDULED = "scheduled"
    DRIVER_ASSIGNED = "driver_assigned"
    PICKED_UP = "picked_up"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


def _money(nullable: bool = False, default: Optional[Decimal] = Decimal("0")):
    return mapped_column(Numeric(10, 2), nullable=nullable, default=default)


class Booking(TimestampMixin, Base):
    __tablename__ = "bookings"

    # DG-<epoch ms>-<6 chars>
    id: Mapped[str] = mapped_column(String(40), primary_key=True)

    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # -- Pickup --
    pickup_street: Mapped[str] = mapped_column(String(255), nullable=False)
    pickup_city: Mapped[str] = mapped_column(String(100), nullable=False)
    pickup_state: Mapped[str] = mapped_column(String(2), nullable=False)
    pickup_zip: Mapped[str] = mapped_column(String(10), nullable=False)
    pickup_latitude: Mapped[Decimal] = mapped_column(Numeric(10, 7), nullable=False)
    pickup_longitude: Mapped[Decimal] = mapped_column(Numeric(10, 7), nullable=False)

    # -- Dropoff --
    donation_center_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("donation_centers.id", ondelete="SET NULL"),
        nullable=True,
    )
    dropoff_name: Mapped[str] = mapped_column(String(255), nullable=False)
    dropoff_address: Mapped[str] = mapped_column(String(500), nullable=False)

    # -- Schedule --
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    time_start: Mapped[time] = mapped_column(Time, nullable=False)
    time_end: Mapped[time] = mapped_column(Time, nullable=False)
    is_rush: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # -- Items --
    bag_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    box_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # -- Quote --
    quote_provider: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    provider_quote_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # -- Price breakdown --
    base_cost: Mapped[Decimal] = _money()
    delivery_fee: Mapped[Decimal] = _money()
    service_fee: Mapped[Decimal] = _money()
    rush_fee: Mapped[Decimal] = _money()
    driver_tip: Mapped[Decimal] = _money()
    processor_fee: Mapped[Decimal] = _money()
    subtotal: Mapped[Decimal] = _money()
    total_price: Mapped[Decimal] = _money()
    state_fee: Mapped[Decimal] = _money()
    markup_total: Mapped[Decimal] = _money()
    bag_fee: Mapped[Decimal] = _money()
    box_fee: Mapped[Decimal] = _money()
    bag_box_driver_tip: Mapped[Decimal] = _money()
    total_driver_tip: Mapped[Decimal] = _money()
    discount_pct: Mapped[Decimal] = mapped_column(
        Numeric(5, 4), nullable=False, default=Decimal("0")
    )
    discount_amount: Mapped[Decimal] = _money()
    days_in_advance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # -- Subsidies --
    # Only set when a subsidy applied
    original_price: Mapped[Optional[Decimal]] = _money(nullable=True, default=None)
    sponsorship_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("sponsorships.id", ondelete="SET NULL"),
        nullable=True,
    )
    charity_subsidy_pct: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    charity_subsidy_amount: Mapped[Decimal] = _money()
    company_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    company_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    employee_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    company_subsidy_pct: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    company_subsidy_amount: Mapped[Decimal] = _money()
    total_subsidy_amount: Mapped[Decimal] = _money()

    # -- Status --
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.PAYMENT_PENDING,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    payment_intent_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    donation_center: Mapped[Optional["DonationCenter"]] = relationship("DonationCenter")

    def __repr__(self) -> str:
        return f"<Booking {self.id} status={self.status.value} total={self.total_price}>"
