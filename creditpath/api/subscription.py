"""
Subscription API routes.

- GET  /api/subscription: Current subscription, normalized
- GET  /api/subscription/guarantee: Guarantee window status
- POST /api/subscription/guarantee/check: Pre-check a refund claim
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from creditpath.api.deps import get_user_session, upstream_failure
from creditpath.features.billing.provider import BillingRequestError
from creditpath.features.checkout.registry import UserSession
from creditpath.features.guarantee.service import (
    ClaimCheck,
    check_guarantee_claim,
    guarantee_days_remaining,
    is_guarantee_window_open,
)
from creditpath.features.subscriptions.service import is_active, is_renewing_on
from creditpath.models.subscription import Subscription


router = APIRouter(prefix="/subscription", tags=["subscription"])


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionResponse(BaseModel):
    has_subscription: bool
    subscription: Optional[Subscription] = None
    is_active: bool
    renews_on: Optional[datetime] = None


class GuaranteeResponse(BaseModel):
    window_open: bool
    days_remaining: int
    guarantee_end_date: Optional[datetime] = None


class ClaimCheckRequest(BaseModel):
    reason: Optional[str] = None


class ClaimCheckResponse(BaseModel):
    allowed: bool
    result: ClaimCheck
    days_remaining: int


async def _current(session: UserSession) -> Optional[Subscription]:
    try:
        return await session.backend.fetch_current_subscription()
    except BillingRequestError as e:
        raise upstream_failure(e, session)


@router.get("", response_model=SubscriptionResponse)
async def get_subscription(session: UserSession = Depends(get_user_session)):
    subscription = await _current(session)
    return {
        "has_subscription": subscription is not None,
        "subscription": subscription,
        "is_active": is_active(subscription),
        "renews_on": is_renewing_on(subscription),
    }


@router.get("/guarantee", response_model=GuaranteeResponse)
async def get_guarantee(
    session: UserSession = Depends(get_user_session),
    now: datetime = Depends(utc_now),
):
    subscription = await _current(session)
    return {
        "window_open": is_guarantee_window_open(subscription, now),
        "days_remaining": guarantee_days_remaining(subscription, now),
        "guarantee_end_date": subscription.guarantee_end_date if subscription else None,
    }


@router.post("/guarantee/check", response_model=ClaimCheckResponse)
async def check_claim(
    body: ClaimCheckRequest,
    session: UserSession = Depends(get_user_session),
    now: datetime = Depends(utc_now),
):
    """Run the refund-claim pre-checks; submission itself belongs to the billing backend."""
    subscription = await _current(session)
    decision = check_guarantee_claim(subscription, now, body.reason)
    return {
        "allowed": decision.allowed,
        "result": decision.result,
        "days_remaining": decision.days_remaining,
    }
