"""Tests for display pricing."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from creditpath.features.plans.service import parse_plan
from creditpath.features.pricing.service import (
    annual_discount_percent,
    price,
    quote,
    round_display,
    savings,
    total_price,
    yearly_price,
)
from creditpath.models.plan import MAX_PRICE, BillingCycle, Plan


def make_plan(monthly, yearly=None, **overrides) -> Plan:
    return Plan(
        plan_id=overrides.pop("plan_id", "esencial"),
        name=overrides.pop("name", "Esencial"),
        price_monthly=Decimal(str(monthly)),
        price_yearly=None if yearly is None else Decimal(str(yearly)),
        **overrides,
    )


class TestRoundDisplay:
    @pytest.mark.parametrize(
        "amount,expected",
        [
            ("65.5", 66),
            ("65.49", 65),
            ("65.8333", 66),
            ("0", 0),
            ("-2.5", -2),
            ("-2.51", -3),
        ],
    )
    def test_rounds_half_up(self, amount, expected):
        assert round_display(Decimal(amount)) == expected


class TestPlanWithYearlyPrice:
    plan = make_plan(79, 790)

    def test_monthly_price_is_rounded_monthly(self):
        assert price(self.plan, BillingCycle.MONTHLY) == 79

    def test_yearly_price_is_monthly_equivalent(self):
        # 790 / 12 = 65.83
        assert price(self.plan, BillingCycle.YEARLY) == 66

    def test_total_price_is_exact(self):
        assert total_price(self.plan, BillingCycle.YEARLY) == Decimal("790")
        assert total_price(self.plan, BillingCycle.MONTHLY) == Decimal("79")

    def test_savings(self):
        # 79 * 12 - 790 = 158
        assert savings(self.plan) == 158

    def test_annual_discount_percent(self):
        # 158 / 948 = 16.67%
        assert annual_discount_percent(self.plan) == 17


class TestPlanWithoutYearlyPrice:
    plan = make_plan(49)

    def test_yearly_falls_back_to_twelve_monthly(self):
        assert yearly_price(self.plan) == Decimal("588")
        assert total_price(self.plan, BillingCycle.YEARLY) == Decimal("588")

    def test_yearly_display_equals_monthly(self):
        assert price(self.plan, BillingCycle.YEARLY) == price(self.plan, BillingCycle.MONTHLY) == 49

    def test_no_savings(self):
        assert savings(self.plan) == 0
        assert annual_discount_percent(self.plan) == 0


def test_savings_can_be_negative_when_yearly_costs_more():
    plan = make_plan(10, 150)
    assert savings(plan) == -30


def test_free_plan_has_no_discount():
    plan = make_plan(0, 0)
    assert price(plan, BillingCycle.YEARLY) == 0
    assert annual_discount_percent(plan) == 0


def test_fractional_monthly_price_rounds_for_display_only():
    plan = make_plan("29.50", "295.00")
    assert price(plan, BillingCycle.MONTHLY) == 30
    assert total_price(plan, BillingCycle.MONTHLY) == Decimal("29.50")
    # 354 - 295 = 59
    assert savings(plan) == 59


def test_quote_combines_display_fields():
    plan = make_plan(79, 790, plan_id="profesional", name="Profesional", includes_ai_analysis=True)
    result = quote(plan, BillingCycle.YEARLY)

    assert result.plan_id == "profesional"
    assert result.cycle is BillingCycle.YEARLY
    assert result.display_price == 66
    assert result.total_price == Decimal("790")
    assert result.savings == 158
    assert result.annual_discount_percent == 17
    assert result.popular is True


def test_popular_tracks_ai_analysis():
    assert make_plan(49).is_popular is False
    assert make_plan(79, includes_ai_analysis=True).is_popular is True


def test_huge_backend_price_quotes_as_free():
    plan = parse_plan({"id": "enorme", "priceMonthly": "1e999999"})

    result = quote(plan, BillingCycle.YEARLY)

    assert result.display_price == 0
    assert result.total_price == Decimal("0")
    assert result.savings == 0


def test_plan_rejects_price_above_bound():
    with pytest.raises(ValidationError):
        Plan(plan_id="x", name="X", price_monthly=MAX_PRICE + 1)
