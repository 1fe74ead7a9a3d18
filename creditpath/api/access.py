"""
Access decision API routes.

- GET /api/access/decision?action=...&from=onboarding: Gate decision for the caller
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from creditpath.api.deps import get_user_session, upstream_failure
from creditpath.features.access.service import evaluate_snapshot
from creditpath.features.billing.provider import BillingRequestError
from creditpath.features.checkout.registry import UserSession
from creditpath.models.access import GateReason


router = APIRouter(prefix="/access", tags=["access"])


class DecisionResponse(BaseModel):
    action: str
    allowed: bool
    reason: GateReason
    redirect_to: Optional[str] = None
    is_admin: bool
    onboarding_complete: bool
    subscription_status: Optional[str] = None


@router.get("/decision", response_model=DecisionResponse)
async def get_decision(
    action: str = Query(..., description="view-protected-page | start-checkout | manage-subscription"),
    origin: Optional[str] = Query(None, alias="from"),
    session: UserSession = Depends(get_user_session),
):
    """
    Evaluate the access gate for the caller.

    Access status and subscription are fetched together, then evaluated.
    A denial is a normal 200 response with allowed=false.

    Errors:
        401: Missing session token
        502: Billing backend error
    """
    try:
        snapshot = await session.backend.fetch_snapshot()
    except BillingRequestError as e:
        raise upstream_failure(e, session)

    decision = evaluate_snapshot(snapshot, action, from_onboarding=origin == "onboarding")
    subscription = snapshot.subscription
    return {
        "action": action,
        "allowed": decision.allowed,
        "reason": decision.reason,
        "redirect_to": decision.redirect_to,
        "is_admin": snapshot.access_status.is_admin,
        "onboarding_complete": snapshot.access_status.onboarding_complete,
        "subscription_status": subscription.status if subscription else None,
    }
