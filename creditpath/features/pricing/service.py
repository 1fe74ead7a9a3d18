"""
creditpath/features/pricing/service.py

Display pricing for plans.

Rounding is presentation-only: `total_price` returns the exact Decimal that
the billing provider charges, `price` and `savings` return whole currency
units for display.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR

from creditpath.models.plan import BillingCycle, Plan


MONTHS_PER_YEAR = Decimal("12")
_HALF = Decimal("0.5")


def round_display(amount: Decimal) -> int:
    """Round half up on the real line: 65.5 -> 66, -2.5 -> -2."""
    return int((amount + _HALF).to_integral_value(rounding=ROUND_FLOOR))


def yearly_price(plan: Plan) -> Decimal:
    """Yearly price, falling back to twelve monthly payments when absent."""
    if plan.price_yearly is None:
        return plan.price_monthly * MONTHS_PER_YEAR
    return plan.price_yearly


def total_price(plan: Plan, cycle: BillingCycle) -> Decimal:
    """Amount billed per cycle, unrounded."""
    if cycle == BillingCycle.YEARLY:
        return yearly_price(plan)
    return plan.price_monthly


def price(plan: Plan, cycle: BillingCycle) -> int:
    """Monthly-equivalent display price."""
    if cycle == BillingCycle.YEARLY:
        return round_display(yearly_price(plan) / MONTHS_PER_YEAR)
    return round_display(plan.price_monthly)


def savings(plan: Plan) -> int:
    """What paying yearly saves over twelve monthly payments. May be <= 0."""
    return round_display(plan.price_monthly * MONTHS_PER_YEAR - yearly_price(plan))


def annual_discount_percent(plan: Plan) -> int:
    monthly_total = plan.price_monthly * MONTHS_PER_YEAR
    if monthly_total == 0:
        return 0
    return round_display((monthly_total - yearly_price(plan)) / monthly_total * 100)


@dataclass(frozen=True)
class PriceQuote:
    plan_id: str
    cycle: BillingCycle
    display_price: int
    total_price: Decimal
    savings: int
    annual_discount_percent: int
    popular: bool


def quote(plan: Plan, cycle: BillingCycle) -> PriceQuote:
    return PriceQuote(
        plan_id=plan.plan_id,
        cycle=cycle,
        display_price=price(plan, cycle),
        total_price=total_price(plan, cycle),
        savings=savings(plan),
        annual_discount_percent=annual_discount_percent(plan),
        popular=plan.is_popular,
    )
