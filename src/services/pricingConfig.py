"""
Pricing configuration
=====================

Immutable rate table consumed by the pricing engine and the subsidy
calculator. Every pricing function takes a ``PricingConfig`` so tests and
deployments can vary rates without touching module globals.

Default rates:
- Delivery markup: 75% of the provider base cost
- State surcharge: 7.5% of base cost in surcharge states
- Service fee (display): 22.5% of base cost
- Bag / box handling: $0.57 / $1.13 per unit, passed through to the driver
- Card processing: $0.30 + 2.9%, grossed up so the platform nets the subtotal
- Advance-booking discount: 0% same/next day, rising to 25% at 7+ days
"""

from __future__ import annotations

import bisect
import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


class ServiceFeeMode(str, enum.Enum):
    DISPLAY_CONSTANT = "display_constant"
    PARAMETER = "parameter"


class PricingConfigError(ValueError):
    """Raised when a rate table is internally inconsistent."""


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_SURCHARGE_STATES: frozenset[str] = frozenset(
    {
        "CA", "CO", "TX", "FL", "GA", "MS", "OH", "KS",
        "NC", "LA", "AZ", "UT", "NV", "WY", "MI", "SC",
    }
)

# (minimum days in advance, discount rate), sorted by day
DEFAULT_DISCOUNT_BREAKPOINTS: tuple[tuple[int, Decimal], ...] = (
    (0, Decimal("0")),
    (2, Decimal("0.05")),
    (3, Decimal("0.10")),
    (4, Decimal("0.15")),
    (5, Decimal("0.18")),
    (6, Decimal("0.22")),
    (7, Decimal("0.25")),
)


def _dec(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


# ---------------------------------------------------------------------------
# Config object
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PricingConfig:
    delivery_markup_pct: Decimal = Decimal("0.75")
    state_fee_pct: Decimal = Decimal("0.075")
    service_fee_display_pct: Decimal = Decimal("0.225")
    service_fee_mode: ServiceFeeMode = ServiceFeeMode.DISPLAY_CONSTANT
    verified_service_fee_pct: Decimal = Decimal("0.25")
    unverified_service_fee_pct: Decimal = Decimal("0.40")
    bag_fee: Decimal = Decimal("0.57")
    box_fee: Decimal = Decimal("1.13")
    rush_fee: Decimal = Decimal("0.00")
    tip_max: Decimal = Decimal("100.00")
    processor_fixed_fee: Decimal = Decimal("0.30")
    processor_percent_fee: Decimal = Decimal("0.029")
    surcharge_states: frozenset[str] = DEFAULT_SURCHARGE_STATES
    discount_breakpoints: tuple[tuple[int, Decimal], ...] = DEFAULT_DISCOUNT_BREAKPOINTS
    _breakpoint_days: tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for name in (
            "delivery_markup_pct",
            "state_fee_pct",
            "service_fee_display_pct",
            "verified_service_fee_pct",
            "unverified_service_fee_pct",
            "processor_percent_fee",
        ):
            value = getattr(self, name)
            if not Decimal("0") <= value < Decimal("1"):
                raise PricingConfigError(f"{name} must be in [0, 1), got {value}")

        for name in ("bag_fee", "box_fee", "rush_fee", "tip_max", "processor_fixed_fee"):
            if getattr(self, name) < 0:
                raise PricingConfigError(f"{name} must be non-negative")

        points = self.discount_breakpoints
        if not points or points[0][0] != 0:
            raise PricingConfigError("Discount breakpoints must start at day 0")
        days = [d for d, _ in points]
        rates = [r for _, r in points]
        if days != sorted(set(days)):
            raise PricingConfigError("Discount breakpoint days must be strictly increasing")
        if rates != sorted(rates):
            raise PricingConfigError("Discount rates must be non-decreasing")
        if any(not Decimal("0") <= r < Decimal("1") for r in rates):
            raise PricingConfigError("Discount rates must be in [0, 1)")

        object.__setattr__(
            self, "surcharge_states", frozenset(s.upper() for s in self.surcharge_states)
        )
        object.__setattr__(self, "_breakpoint_days", tuple(days))

    # -- lookups --

    def discount_for_days(self, days_in_advance: int) -> Decimal:
        """Discount rate for a booking made ``days_in_advance`` days ahead.

        Uses the largest breakpoint not exceeding the day count, so the
        function is defined for every integer and never decreases.
        Negative values are treated as same-day.
        """
        days = max(0, int(days_in_advance))
        idx = bisect.bisect_right(self._breakpoint_days, days) - 1
        return self.discount_breakpoints[idx][1]

    def applies_state_fee(self, state: str | None) -> bool:
        if not state:
            return False
        return state.strip().upper() in self.surcharge_states

    def service_fee_for_center(self, is_verified: bool) -> Decimal:
        """Service fee rate for a donation center, by verification status."""
        if is_verified:
            return self.verified_service_fee_pct
        return self.unverified_service_fee_pct

    @property
    def processor_divisor(self) -> Decimal:
        return Decimal("1") - self.processor_percent_fee


DEFAULT_PRICING_CONFIG = PricingConfig()


def pricing_config_from_settings(settings: Any) -> PricingConfig:
    """Build a ``PricingConfig`` from application ``Settings``."""
    states = frozenset(
        s.strip().upper()
        for s in settings.pricing_surcharge_states.split(",")
        if s.strip()
    )
    return PricingConfig(
        delivery_markup_pct=_dec(settings.pricing_delivery_markup_pct),
        state_fee_pct=_dec(settings.pricing_state_fee_pct),
        service_fee_display_pct=_dec(settings.pricing_service_fee_display_pct),
        service_fee_mode=ServiceFeeMode(settings.pricing_service_fee_mode),
        verified_service_fee_pct=_dec(settings.pricing_verified_service_fee_pct),
        unverified_service_fee_pct=_dec(settings.pricing_unverified_service_fee_pct),
        bag_fee=_dec(settings.pricing_bag_fee),
        box_fee=_dec(settings.pricing_box_fee),
        rush_fee=_dec(settings.pricing_rush_fee),
        tip_max=_dec(settings.pricing_tip_max),
        processor_fixed_fee=_dec(settings.pricing_processor_fixed_fee),
        processor_percent_fee=_dec(settings.pricing_processor_percent_fee),
        surcharge_states=states,
    )
