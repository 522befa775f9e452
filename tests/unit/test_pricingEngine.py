"""
Unit tests for the donation pickup pricing engine.

Tests fee composition, the advance-booking discount, processor fee
gross-up, tip clamping, subsidy stacking and tip-only adjustments.
"""

from decimal import Decimal

import pytest

from src.services.pricingConfig import PricingConfig, ServiceFeeMode
from src.services.pricingEngine import (
    PriceBreakdown,
    add_tip,
    calculate_price,
    calculate_price_with_subsidies,
    clamp_tip,
    gross_up,
    to_cents,
)


def _reference_price(**overrides) -> PriceBreakdown:
    """$20 base, 2 bags, 1 box, Texas, booked 3 days ahead."""
    kwargs = dict(state="TX", bag_count=2, box_count=1, days_in_advance=3)
    kwargs.update(overrides)
    return calculate_price(Decimal("20"), **kwargs)


# ---------------------------------------------------------------------------
# calculate_price: composition
# ---------------------------------------------------------------------------


class TestCalculatePrice:
    """Reference breakdown and component checks."""

    def test_reference_delivery_fee(self):
        assert _reference_price().delivery_fee == Decimal("35.12")

    def test_reference_service_fee(self):
        assert _reference_price().service_fee == Decimal("4.05")

    def test_reference_discount(self):
        result = _reference_price()
        assert result.discount_pct == Decimal("0.10")
        assert result.discount_amount == Decimal("4.10")

    def test_reference_totals(self):
        result = _reference_price()
        assert result.subtotal == Decimal("39.17")
        assert result.total_price == Decimal("40.65")
        assert result.processor_fee == Decimal("1.48")

    def test_reference_components(self):
        result = _reference_price()
        assert result.base_cost == Decimal("20.00")
        assert result.state_fee == Decimal("1.50")
        assert result.markup_total == Decimal("21.00")
        assert result.bag_fee == Decimal("1.14")
        assert result.box_fee == Decimal("1.13")
        assert result.bag_box_driver_tip == Decimal("2.27")
        assert result.total_driver_tip == Decimal("2.27")

    def test_total_is_subtotal_plus_processor_fee(self):
        for base in ("0", "7.31", "12.99", "20", "48.50"):
            result = calculate_price(Decimal(base), tip=Decimal("3.33"), state="CA")
            assert result.subtotal + result.processor_fee == result.total_price

    def test_total_price_cents(self):
        assert _reference_price().total_price_cents == 4065

    def test_to_cents_rounds_half_up(self):
        assert to_cents(Decimal("40.65")) == 4065
        assert to_cents(Decimal("0.005")) == 1
        assert to_cents("12.345") == 1235

    def test_zero_base_cost_charges_only_fixed_fee(self):
        result = calculate_price(Decimal("0"))
        assert result.subtotal == Decimal("0")
        assert result.total_price == Decimal("0.31")
        assert result.processor_fee == Decimal("0.31")

    def test_simple_price_no_state(self):
        result = calculate_price(Decimal("10"))
        assert result.delivery_fee == Decimal("17.50")
        assert result.service_fee == Decimal("2.25")
        assert result.state_fee == Decimal("0")
        assert result.total_price == Decimal("20.65")
        assert result.processor_fee == Decimal("0.90")

    def test_non_surcharge_state_has_no_state_fee(self):
        assert _reference_price(state="NY").state_fee == Decimal("0")

    def test_state_code_is_case_insensitive(self):
        assert _reference_price(state="tx").state_fee == Decimal("1.50")

    def test_state_recorded_on_breakdown(self):
        assert _reference_price(state=" tx ").state == "TX"
        assert calculate_price(Decimal("10")).state is None
        assert calculate_price(Decimal("10"), state="").state is None

    def test_negative_base_cost_raises(self):
        with pytest.raises(ValueError):
            calculate_price(Decimal("-1"))

    def test_negative_counts_treated_as_zero(self):
        result = calculate_price(Decimal("10"), bag_count=-3, box_count=-1)
        assert result.bag_count == 0
        assert result.box_count == 0
        assert result.bag_fee == Decimal("0")

    def test_rush_fee_is_zero_by_default(self):
        result = calculate_price(Decimal("10"), is_rush=True)
        assert result.is_rush is True
        assert result.rush_fee == Decimal("0")

    def test_configured_rush_fee_added_to_subtotal(self):
        config = PricingConfig(rush_fee=Decimal("5.00"))
        plain = calculate_price(Decimal("10"), config=config)
        rush = calculate_price(Decimal("10"), is_rush=True, config=config)
        assert rush.subtotal - plain.subtotal == Decimal("5.00")

    def test_accepts_float_and_str_inputs(self):
        assert calculate_price(20.0, state="TX").total_price == calculate_price(
            "20", state="TX"
        ).total_price


# ---------------------------------------------------------------------------
# Discount
# ---------------------------------------------------------------------------


class TestAdvanceBookingDiscount:

    def test_next_day_has_no_discount(self):
        assert _reference_price(days_in_advance=1).discount_pct == Decimal("0")

    def test_week_ahead_gets_max_discount(self):
        assert _reference_price(days_in_advance=7).discount_pct == Decimal("0.25")

    def test_far_future_keeps_max_discount(self):
        assert _reference_price(days_in_advance=45).discount_pct == Decimal("0.25")

    def test_total_never_increases_with_more_notice(self):
        totals = [_reference_price(days_in_advance=d).total_price for d in range(0, 12)]
        assert totals == sorted(totals, reverse=True)

    def test_bag_and_box_fees_are_not_discounted(self):
        result = calculate_price(
            Decimal("0"), bag_count=2, box_count=1, days_in_advance=7
        )
        assert result.delivery_fee == Decimal("2.27")
        assert result.discount_amount == Decimal("0")


# ---------------------------------------------------------------------------
# Service fee mode
# ---------------------------------------------------------------------------


class TestServiceFeeMode:

    def test_display_mode_ignores_parameter(self):
        result = calculate_price(Decimal("10"), service_fee_pct=Decimal("0.40"))
        assert result.service_fee == Decimal("2.25")

    def test_parameter_mode_uses_parameter(self):
        config = PricingConfig(service_fee_mode=ServiceFeeMode.PARAMETER)
        result = calculate_price(
            Decimal("10"), service_fee_pct=Decimal("0.40"), config=config
        )
        assert result.service_fee == Decimal("4.00")

    def test_parameter_mode_defaults_to_verified_rate(self):
        config = PricingConfig(service_fee_mode=ServiceFeeMode.PARAMETER)
        assert calculate_price(Decimal("10"), config=config).service_fee == Decimal("2.50")


# ---------------------------------------------------------------------------
# Tips and gross-up
# ---------------------------------------------------------------------------


class TestTips:

    def test_tip_included_in_single_gross_up(self):
        result = calculate_price(Decimal("10"), tip=Decimal("5"))
        assert result.driver_tip == Decimal("5.00")
        assert result.subtotal == Decimal("24.75")
        assert result.total_price == Decimal("25.80")
        assert result.total_driver_tip == Decimal("5.00")

    def test_tip_above_max_is_clamped(self):
        assert clamp_tip(Decimal("150")) == Decimal("100.00")

    def test_negative_tip_is_clamped_to_zero(self):
        assert clamp_tip(Decimal("-5")) == Decimal("0.00")

    def test_none_tip_is_zero(self):
        assert clamp_tip(None) == Decimal("0.00")

    def test_gross_up_nets_the_amount(self):
        total, fee = gross_up(Decimal("39.17"))
        assert total == Decimal("40.65")
        assert fee == Decimal("1.48")


# ---------------------------------------------------------------------------
# calculate_price_with_subsidies
# ---------------------------------------------------------------------------


class TestCalculatePriceWithSubsidies:

    def _price(self, **kwargs) -> PriceBreakdown:
        return calculate_price_with_subsidies(
            Decimal("20"),
            state="TX",
            bag_count=2,
            box_count=1,
            days_in_advance=3,
            **kwargs,
        )

    def test_no_subsidy_matches_plain_price(self):
        result = self._price()
        assert result.total_price == Decimal("40.65")
        assert result.original_price is None
        assert result.subsidized is False
        assert result.total_subsidy_amount == Decimal("0")

    def test_charity_subsidy_applies_to_grossed_up_total(self):
        result = self._price(charity_subsidy_pct=50)
        assert result.original_price == Decimal("40.65")
        assert result.charity_subsidy_amount == Decimal("20.33")
        assert result.total_price == Decimal("20.32")
        assert result.subsidized is True

    def test_company_subsidy_stacks_on_remainder(self):
        result = self._price(charity_subsidy_pct=50, company_subsidy_pct=100)
        assert result.charity_subsidy_amount == Decimal("20.33")
        assert result.company_subsidy_amount == Decimal("20.32")
        assert result.total_subsidy_amount == Decimal("40.65")
        assert result.total_price == Decimal("0.00")

    def test_tip_is_never_subsidized(self):
        result = self._price(charity_subsidy_pct=50, company_subsidy_pct=100, tip=10)
        assert result.driver_tip == Decimal("10.00")
        assert result.total_price == Decimal("10.61")
        assert result.processor_fee == Decimal("2.09")
        assert result.subtotal == Decimal("49.17")

    def test_subsidy_percentages_recorded(self):
        result = self._price(charity_subsidy_pct=25, company_subsidy_pct=10)
        assert result.charity_subsidy_pct == Decimal("25")
        assert result.company_subsidy_pct == Decimal("10")


# ---------------------------------------------------------------------------
# add_tip
# ---------------------------------------------------------------------------


class TestAddTip:

    def test_adds_tip_with_its_own_processor_fee(self):
        base = calculate_price(Decimal("10"))
        result = add_tip(base, Decimal("5"))
        assert result.driver_tip == Decimal("5.00")
        assert result.subtotal == Decimal("24.75")
        assert result.processor_fee == Decimal("1.36")
        assert result.total_price == Decimal("26.11")

    def test_zero_tip_returns_same_breakdown(self):
        base = calculate_price(Decimal("10"))
        assert add_tip(base, 0) is base

    def test_does_not_mutate_input(self):
        base = calculate_price(Decimal("10"))
        add_tip(base, Decimal("5"))
        assert base.driver_tip == Decimal("0.00")

    def test_rejects_breakdown_that_already_has_tip(self):
        tipped = calculate_price(Decimal("10"), tip=Decimal("2"))
        with pytest.raises(ValueError):
            add_tip(tipped, Decimal("5"))

    def test_tip_after_full_subsidy(self):
        base = calculate_price_with_subsidies(
            Decimal("20"), charity_subsidy_pct=100
        )
        result = add_tip(base, Decimal("10"))
        assert result.total_price == Decimal("10.61")
        assert result.original_price == base.original_price
