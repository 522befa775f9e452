"""
SQLAlchemy models for donation centers and charity sponsorships.
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class DonationCenter(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "donation_centers"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    street: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(2), nullable=False, default="")
    zip_code: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    latitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)
    longitude: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 7), nullable=True)

    # Verified (partnered) centers get the lower service fee
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    sponsorships: Mapped[list["Sponsorship"]] = relationship(
        "Sponsorship", back_populates="donation_center", lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<DonationCenter {self.name!r} verified={self.is_verified}>"


class Sponsorship(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """
    Charity-funded subsidy for pickups near a target point.
    Applies while the pickup is inside the target radius and credit remains.
    """
    __tablename__ = "sponsorships"

    donation_center_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("donation_centers.id", ondelete="CASCADE"),
        nullable=False,
    )
    sponsor_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    target_latitude: Mapped[Decimal] = mapped_column(Numeric(10, 7), nullable=False)
    target_longitude: Mapped[Decimal] = mapped_column(Numeric(10, 7), nullable=False)
    target_radius_miles: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    subsidy_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    current_credit_balance: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    donation_center: Mapped["DonationCenter"] = relationship(
        "DonationCenter", back_populates="sponsorships"
    )
