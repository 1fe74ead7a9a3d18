"""
creditpath/models/plan.py

Plan model as published by the billing backend.

Plans carry pricing for both billing cycles. The yearly price is optional;
when absent the plan is billed as twelve monthly payments.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


# Largest price accepted from the billing backend; anything above is malformed.
MAX_PRICE = Decimal("1000000000")


class BillingCycle(str, Enum):
    """Pricing period selected by the user at checkout."""
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Plan(BaseModel):
    """
    Plan represents a purchasable service tier.

    Examples:
    - esencial (basic)
    - profesional (includes AI analysis, shown as the popular tier)

    Price fields lie in [0, MAX_PRICE]; malformed or out-of-range backend values
    are coerced to 0 before a Plan is built (see features/plans/service.py).
    """
    model_config = ConfigDict(frozen=True)

    plan_id: str
    name: str
    description: str = ""
    price_monthly: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_PRICE)
    price_yearly: Optional[Decimal] = Field(default=None, ge=0, le=MAX_PRICE)
    features: Tuple[str, ...] = ()
    includes_ai_analysis: bool = False
    guarantee_days: int = 90
    max_disputes_per_month: Optional[int] = None  # None = unlimited

    @property
    def is_popular(self) -> bool:
        return self.includes_ai_analysis
