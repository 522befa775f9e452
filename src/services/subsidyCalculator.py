"""
Subsidy stacking
================

Applies a charity sponsorship and an employer (company) benefit to a
pre-tip price. Subsidies stack sequentially: the charity covers its
percentage of the full price, then the company covers its percentage of
what remains. The customer never pays less than zero.

Example: a $100 price with a 50% charity subsidy and a 100% company
subsidy gives charity $50, company $50, customer $0.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[Decimal, int, float, str]

_CENT = Decimal("0.01")
_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class StackedSubsidy:
    """Result of stacking charity and company subsidies on a price."""
    base_price: Decimal
    charity_pct: Decimal
    charity_amount: Decimal
    company_pct: Decimal
    company_amount: Decimal
    total_subsidy: Decimal
    customer_pays: Decimal

    @property
    def subsidized(self) -> bool:
        return self.total_subsidy > _ZERO


def clamp_pct(value: Number | None) -> Decimal:
    """Clamp a percentage to [0, 100]."""
    if value is None:
        return _ZERO
    pct = value if isinstance(value, Decimal) else Decimal(str(value))
    return min(max(pct, _ZERO), _HUNDRED)


def stack_subsidies(
    base_price: Number,
    charity_pct: Number | None = 0,
    company_pct: Number | None = 0,
) -> StackedSubsidy:
    """Stack a charity subsidy and a company subsidy on ``base_price``.

    Args:
        base_price: Pre-tip price the customer would otherwise pay.
        charity_pct: Charity sponsorship percentage (0-100).
        company_pct: Employer benefit percentage (0-100), applied to the
            amount left after the charity subsidy.

    Returns:
        StackedSubsidy with every amount rounded to cents.
    """
    price = base_price if isinstance(base_price, Decimal) else Decimal(str(base_price))
    price = max(price, _ZERO)
    charity = clamp_pct(charity_pct)
    company = clamp_pct(company_pct)

    charity_amount = (price * charity / _HUNDRED).quantize(_CENT, rounding=ROUND_HALF_UP)
    remaining = price - charity_amount
    company_amount = (remaining * company / _HUNDRED).quantize(_CENT, rounding=ROUND_HALF_UP)
    total = charity_amount + company_amount
    customer_pays = max(_ZERO, price - total).quantize(_CENT, rounding=ROUND_HALF_UP)

    return StackedSubsidy(
        base_price=price.quantize(_CENT, rounding=ROUND_HALF_UP),
        charity_pct=charity,
        charity_amount=charity_amount,
        company_pct=company,
        company_amount=company_amount,
        total_subsidy=total,
        customer_pays=customer_pays,
    )
