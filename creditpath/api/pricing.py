"""
Pricing API routes.

- GET /api/pricing/plans?cycle=monthly|yearly: Plans with display prices
"""
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from creditpath.api.deps import get_user_session, upstream_failure
from creditpath.features.billing.provider import BillingRequestError
from creditpath.features.checkout.registry import UserSession
from creditpath.features.pricing.service import quote
from creditpath.models.plan import BillingCycle


router = APIRouter(prefix="/pricing", tags=["pricing"])


class PlanQuote(BaseModel):
    """One plan priced for the selected billing cycle."""
    plan_id: str
    name: str
    description: str
    features: List[str]
    popular: bool
    billing_cycle: BillingCycle
    display_price: int  # monthly equivalent, whole units
    total_price: Decimal  # billed per cycle, unrounded
    savings: int  # yearly vs. 12 monthly payments
    annual_discount_percent: int


class PlansResponse(BaseModel):
    billing_cycle: BillingCycle
    plans: List[PlanQuote]


@router.get("/plans", response_model=PlansResponse)
async def list_plans(
    cycle: BillingCycle = Query(BillingCycle.MONTHLY),
    session: UserSession = Depends(get_user_session),
):
    """
    List plans priced for a billing cycle.

    Returns:
        {"billing_cycle": "yearly", "plans": [{"plan_id": ..., "display_price": 66, ...}]}

    Errors:
        401: Missing session token
        502: Billing backend error
    """
    try:
        plans = await session.backend.fetch_plans()
    except BillingRequestError as e:
        raise upstream_failure(e, session)

    quotes = []
    for plan in plans:
        q = quote(plan, cycle)
        quotes.append(
            PlanQuote(
                plan_id=plan.plan_id,
                name=plan.name,
                description=plan.description,
                features=list(plan.features),
                popular=q.popular,
                billing_cycle=cycle,
                display_price=q.display_price,
                total_price=q.total_price,
                savings=q.savings,
                annual_discount_percent=q.annual_discount_percent,
            )
        )
    return {"billing_cycle": cycle, "plans": quotes}
