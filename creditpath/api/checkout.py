"""
Checkout API routes.

- POST /api/checkout: Gate, then start a checkout session
- POST /api/checkout/cancel: Discard the in-flight checkout attempt
- POST /api/portal: Gate, then open the billing portal

Both session endpoints return a CheckoutOutcome: {"redirect": url} on success,
or {"error": message, "onboarding_redirect": bool} when the attempt failed.
The access gate runs after the attempt claims the single-flight gate, so a
second request for the same session is rejected before any backend call.
A 401 from the billing backend ends the session like on every other route.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from creditpath.api.deps import get_existing_session, get_user_session, upstream_failure
from creditpath.core.errors import AccessDeniedError
from creditpath.features.access.service import evaluate_snapshot
from creditpath.features.billing.provider import BillingRequestError
from creditpath.features.checkout.orchestrator import CheckoutOutcome
from creditpath.features.checkout.registry import UserSession
from creditpath.models.access import GateAction, GateDecision
from creditpath.models.plan import BillingCycle


router = APIRouter(tags=["checkout"])


class CheckoutRequest(BaseModel):
    """Request to start checkout for one plan."""
    plan_id: str
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    from_onboarding: bool = False


class OutcomeResponse(BaseModel):
    redirect: Optional[str] = None
    error: Optional[str] = None
    onboarding_redirect: bool = False
    cancelled: bool = False
    attempt_id: Optional[str] = None


class CancelResponse(BaseModel):
    cancelled: bool


def _deny(decision: GateDecision, action: GateAction) -> AccessDeniedError:
    return AccessDeniedError(
        f"Access denied for {action.value}",
        reason=decision.reason.value,
        redirect_to=decision.redirect_to,
    )


async def _gate(session: UserSession, action: GateAction, *, from_onboarding: bool = False) -> None:
    try:
        snapshot = await session.backend.fetch_snapshot()
    except BillingRequestError as e:
        raise upstream_failure(e, session)
    decision = evaluate_snapshot(snapshot, action, from_onboarding=from_onboarding)
    if not decision.allowed:
        raise _deny(decision, action)


def _settle(session: UserSession, outcome: CheckoutOutcome) -> dict:
    if outcome.unauthorized:
        raise upstream_failure(BillingRequestError(outcome.error or "Unauthorized", status_code=401), session)
    return outcome.to_dict()


@router.post("/checkout", response_model=OutcomeResponse)
async def create_checkout(request: CheckoutRequest, session: UserSession = Depends(get_user_session)):
    """
    Start a checkout session.

    Errors:
        401: Missing session token, or the billing backend rejected it
        403: Gate denied (error.reason = requires-onboarding, ...)
        409: Another checkout is in flight for this session
        502: Billing backend error while fetching access facts
    """
    outcome = await session.orchestrator.start_checkout(
        request.plan_id,
        request.billing_cycle,
        before_request=lambda: _gate(session, GateAction.START_CHECKOUT, from_onboarding=request.from_onboarding),
    )
    return _settle(session, outcome)


@router.post("/checkout/cancel", response_model=CancelResponse)
async def cancel_checkout(session: Optional[UserSession] = Depends(get_existing_session)):
    if session is None:
        return {"cancelled": False}
    was_in_flight = session.orchestrator.in_flight
    session.orchestrator.cancel()
    return {"cancelled": was_in_flight}


@router.post("/portal", response_model=OutcomeResponse)
async def create_portal(session: UserSession = Depends(get_user_session)):
    """
    Open the billing portal for an existing subscription.

    Errors:
        401: Missing session token, or the billing backend rejected it
        403: No trial, active or paused subscription
        409: Another session request is in flight
    """
    outcome = await session.orchestrator.open_portal(
        before_request=lambda: _gate(session, GateAction.MANAGE_SUBSCRIPTION),
    )
    return _settle(session, outcome)
