"""
Donation Pickup Pricing Engine
==============================

Turns a raw provider delivery cost plus order modifiers into an immutable
``PriceBreakdown``.

Composition (all percentages come from ``PricingConfig``):
- Delivery fee = base cost + markup + state surcharge, less the
  advance-booking discount, plus bag/box handling fees
- Service fee = base cost x service fee rate, less the discount
- Rush fee (reserved, zero by default)
- Driver tip, clamped to [0, tip_max], never discounted or subsidized
- Processor fee: the subtotal is grossed up so that
  ``total = (subtotal + fixed) / (1 - percent)``

Bag and box fees are passed through to the driver in full. They are not
part of the markup or service-fee bases and the discount does not touch
them.

All amounts are ``Decimal`` rounded half-up to cents.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional, Union

from src.services.pricingConfig import (
    DEFAULT_PRICING_CONFIG,
    PricingConfig,
    ServiceFeeMode,
)
from src.services.subsidyCalculator import stack_subsidies

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float, str]

_CENT = Decimal("0.01")
_ZERO = Decimal("0")
_ONE = Decimal("1")


def _to_decimal(value: Number | None) -> Decimal:
    if value is None:
        return _ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Number) -> int:
    """Dollars to integer minor units, rounded half-up."""
    return int((_to_decimal(amount) * 100).quantize(_ONE, rounding=ROUND_HALF_UP))


def _normalize_state(state: str | None) -> Optional[str]:
    code = (state or "").strip().upper()
    return code or None


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PriceBreakdown:
    """Itemised price for one pickup.

    ``state`` is the normalized pickup state the surcharge was decided on,
    kept so the breakdown can be rebuilt without the original request.

    ``subtotal + processor_fee == total_price`` holds whenever no subsidy
    applied; a subsidized ``total_price`` is what the customer pays. The subsidy
    fields are zero (and ``original_price`` is ``None``) when no subsidy
    applied.
    """
    base_cost: Decimal
    delivery_fee: Decimal
    service_fee: Decimal
    rush_fee: Decimal
    driver_tip: Decimal
    processor_fee: Decimal
    subtotal: Decimal
    total_price: Decimal

    state_fee: Decimal = _ZERO
    markup_total: Decimal = _ZERO
    bag_count: int = 0
    box_count: int = 0
    bag_fee: Decimal = _ZERO
    box_fee: Decimal = _ZERO
    bag_box_driver_tip: Decimal = _ZERO
    total_driver_tip: Decimal = _ZERO
    discount_pct: Decimal = _ZERO
    discount_amount: Decimal = _ZERO
    days_in_advance: int = 0
    is_rush: bool = False
    state: Optional[str] = None

    original_price: Optional[Decimal] = None
    charity_subsidy_pct: Decimal = _ZERO
    charity_subsidy_amount: Decimal = _ZERO
    company_subsidy_pct: Decimal = _ZERO
    company_subsidy_amount: Decimal = _ZERO
    total_subsidy_amount: Decimal = _ZERO
    subsidized: bool = False

    @property
    def total_price_cents(self) -> int:
        """Total in minor units, as handed to the payment processor."""
        return to_cents(self.total_price)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class _PreTipComponents:
    base_cost: Decimal
    bag_count: int
    box_count: int
    bag_fee: Decimal
    box_fee: Decimal
    state_fee: Decimal
    markup_total: Decimal
    discount_pct: Decimal
    discount_amount: Decimal
    delivery_fee: Decimal
    service_fee: Decimal
    rush_fee: Decimal
    days_in_advance: int
    is_rush: bool
    state: Optional[str]

    @property
    def bag_box_total(self) -> Decimal:
        return self.bag_fee + self.box_fee

    @property
    def subtotal(self) -> Decimal:
        return self.delivery_fee + self.service_fee + self.rush_fee


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def gross_up(
    amount: Number, config: PricingConfig = DEFAULT_PRICING_CONFIG
) -> tuple[Decimal, Decimal]:
    """Return ``(total, processor_fee)`` such that charging ``total`` nets
    ``amount`` after the card processor's fixed and percentage fees."""
    value = _to_decimal(amount)
    total = _money((value + config.processor_fixed_fee) / config.processor_divisor)
    return total, total - _money(value)


def clamp_tip(tip: Number | None, config: PricingConfig = DEFAULT_PRICING_CONFIG) -> Decimal:
    value = _to_decimal(tip)
    return _money(min(max(value, _ZERO), config.tip_max))


def _effective_service_fee_pct(
    service_fee_pct: Number | None, config: PricingConfig
) -> Decimal:
    if config.service_fee_mode is ServiceFeeMode.PARAMETER:
        if service_fee_pct is None:
            return config.verified_service_fee_pct
        return _to_decimal(service_fee_pct)
    return config.service_fee_display_pct


def _pre_tip_components(
    base_cost: Number,
    is_rush: bool,
    service_fee_pct: Number | None,
    state: str | None,
    bag_count: int,
    box_count: int,
    days_in_advance: int,
    config: PricingConfig,
) -> _PreTipComponents:
    base = _to_decimal(base_cost)
    if base < 0:
        raise ValueError(f"Base delivery cost must be non-negative, got {base}")

    bags = max(0, int(bag_count or 0))
    boxes = max(0, int(box_count or 0))
    days = max(0, int(days_in_advance or 0))

    bag_fee = bags * config.bag_fee
    box_fee = boxes * config.box_fee

    markup = base * config.delivery_markup_pct
    state_fee = base * config.state_fee_pct if config.applies_state_fee(state) else _ZERO
    service_fee_gross = base * _effective_service_fee_pct(service_fee_pct, config)

    discount_pct = config.discount_for_days(days)
    keep = _ONE - discount_pct
    delivery_core = base + markup + state_fee
    discount_amount = (delivery_core + service_fee_gross) * discount_pct

    rush_fee = config.rush_fee if is_rush else _ZERO

    return _PreTipComponents(
        base_cost=_money(base),
        bag_count=bags,
        box_count=boxes,
        bag_fee=_money(bag_fee),
        box_fee=_money(box_fee),
        state_fee=_money(state_fee),
        markup_total=_money(markup + state_fee + service_fee_gross),
        discount_pct=discount_pct,
        discount_amount=_money(discount_amount),
        delivery_fee=_money(delivery_core * keep + bag_fee + box_fee),
        service_fee=_money(service_fee_gross * keep),
        rush_fee=_money(rush_fee),
        days_in_advance=days,
        is_rush=bool(is_rush),
        state=_normalize_state(state),
    )


def _component_fields(parts: _PreTipComponents) -> dict[str, Any]:
    return {
        "base_cost": parts.base_cost,
        "delivery_fee": parts.delivery_fee,
        "service_fee": parts.service_fee,
        "rush_fee": parts.rush_fee,
        "state_fee": parts.state_fee,
        "markup_total": parts.markup_total,
        "bag_count": parts.bag_count,
        "box_count": parts.box_count,
        "bag_fee": parts.bag_fee,
        "box_fee": parts.box_fee,
        "bag_box_driver_tip": parts.bag_box_total,
        "discount_pct": parts.discount_pct,
        "discount_amount": parts.discount_amount,
        "days_in_advance": parts.days_in_advance,
        "is_rush": parts.is_rush,
        "state": parts.state,
    }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def calculate_price(
    base_cost: Number,
    is_rush: bool = False,
    tip: Number | None = 0,
    service_fee_pct: Number | None = None,
    state: str | None = None,
    bag_count: int = 0,
    box_count: int = 0,
    days_in_advance: int = 0,
    *,
    config: PricingConfig = DEFAULT_PRICING_CONFIG,
) -> PriceBreakdown:
    """Price a pickup with the tip included in a single gross-up.

    Args:
        base_cost: Provider delivery cost in dollars (must be >= 0).
        is_rush: Same-day pickup flag.
        tip: Driver tip, clamped to [0, tip_max].
        service_fee_pct: Service fee rate, honoured only when the config
            runs in ``parameter`` mode.
        state: Pickup state code; surcharge states add the state fee.
        bag_count: Number of bags (negative values count as zero).
        box_count: Number of boxes (negative values count as zero).
        days_in_advance: Days between booking and pickup.
        config: Rate table.

    Returns:
        PriceBreakdown.

    Raises:
        ValueError: If ``base_cost`` is negative.
    """
    parts = _pre_tip_components(
        base_cost, is_rush, service_fee_pct, state,
        bag_count, box_count, days_in_advance, config,
    )
    final_tip = clamp_tip(tip, config)
    subtotal = parts.subtotal + final_tip
    total, processor_fee = gross_up(subtotal, config)

    return PriceBreakdown(
        driver_tip=final_tip,
        processor_fee=processor_fee,
        subtotal=subtotal,
        total_price=total,
        total_driver_tip=final_tip + parts.bag_box_total,
        **_component_fields(parts),
    )


def calculate_price_with_subsidies(
    base_cost: Number,
    is_rush: bool = False,
    tip: Number | None = 0,
    charity_subsidy_pct: Number | None = 0,
    company_subsidy_pct: Number | None = 0,
    service_fee_pct: Number | None = None,
    state: str | None = None,
    bag_count: int = 0,
    box_count: int = 0,
    days_in_advance: int = 0,
    *,
    config: PricingConfig = DEFAULT_PRICING_CONFIG,
) -> PriceBreakdown:
    """Price a pickup, stacking subsidies on the pre-tip total.

    The pre-tip subtotal is grossed up first; charity and company subsidies
    are then stacked on that amount. The tip is grossed up on its own, and
    only when it is positive, so subsidies never cover it.
    """
    parts = _pre_tip_components(
        base_cost, is_rush, service_fee_pct, state,
        bag_count, box_count, days_in_advance, config,
    )
    pre_tip_subtotal = parts.subtotal
    original_total, pre_tip_fee = gross_up(pre_tip_subtotal, config)

    stacked = stack_subsidies(original_total, charity_subsidy_pct, company_subsidy_pct)

    final_tip = clamp_tip(tip, config)
    tip_total, tip_fee = (_ZERO, _ZERO)
    if final_tip > 0:
        tip_total, tip_fee = gross_up(final_tip, config)

    total = stacked.customer_pays + tip_total
    subsidized = stacked.subsidized

    if subsidized:
        logger.debug(
            "Subsidy applied: original=%s charity=%s company=%s customer=%s",
            original_total,
            stacked.charity_amount,
            stacked.company_amount,
            stacked.customer_pays,
        )

    return PriceBreakdown(
        driver_tip=final_tip,
        processor_fee=pre_tip_fee + tip_fee,
        subtotal=pre_tip_subtotal + final_tip,
        total_price=total,
        total_driver_tip=final_tip + parts.bag_box_total,
        original_price=original_total if subsidized else None,
        charity_subsidy_pct=stacked.charity_pct,
        charity_subsidy_amount=stacked.charity_amount,
        company_subsidy_pct=stacked.company_pct,
        company_subsidy_amount=stacked.company_amount,
        total_subsidy_amount=stacked.total_subsidy,
        subsidized=subsidized,
        **_component_fields(parts),
    )


def add_tip(
    breakdown: PriceBreakdown,
    tip: Number | None,
    *,
    config: PricingConfig = DEFAULT_PRICING_CONFIG,
) -> PriceBreakdown:
    """Add a driver tip on top of a finalized, tip-free breakdown.

    Returns a new breakdown; the tip and its own processor fee are added
    after discounts and subsidies.

    Raises:
        ValueError: If the breakdown already carries a tip.
    """
    if breakdown.driver_tip > 0:
        raise ValueError("Breakdown already includes a driver tip")

    final_tip = clamp_tip(tip, config)
    if final_tip == 0:
        return breakdown

    tip_total, tip_fee = gross_up(final_tip, config)
    return replace(
        breakdown,
        driver_tip=final_tip,
        processor_fee=breakdown.processor_fee + tip_fee,
        subtotal=breakdown.subtotal + final_tip,
        total_price=breakdown.total_price + tip_total,
        total_driver_tip=breakdown.total_driver_tip + final_tip,
    )
