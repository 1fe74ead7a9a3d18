"""
creditpath/features/access/service.py

Access gate: combines role, onboarding and subscription facts into a single
allow/deny decision for a gated action.

Rules are evaluated in a fixed order and the first match wins:
1. Admins are allowed (admin-override), including checkout.
2. Checkout and protected pages require completed onboarding, except a
   checkout that starts from the onboarding flow itself.
3. Managing a subscription requires one to exist (trial, active or paused).
4. Everything else is allowed.

Unclassified actions are denied for every caller. The gate performs no I/O;
callers fetch AccessStatus and Subscription together (see AccessSnapshot)
before evaluating.
"""

import logging
from typing import Optional, Union

from creditpath.core.config import settings
from creditpath.core.logging import log_event
from creditpath.features.subscriptions.service import exists_for_management
from creditpath.models.access import (
    AccessSnapshot,
    AccessStatus,
    GateAction,
    GateDecision,
    GateReason,
)
from creditpath.models.subscription import Subscription


logger = logging.getLogger(__name__)

ONBOARDING_ACTIONS = frozenset({
    GateAction.START_CHECKOUT,
    GateAction.VIEW_PROTECTED_PAGE,
})


def _resolve_action(action: Union[GateAction, str]) -> Optional[GateAction]:
    if isinstance(action, GateAction):
        return action
    try:
        return GateAction(action)
    except ValueError:
        return None


def _redirect_for(reason: GateReason) -> Optional[str]:
    if reason is GateReason.REQUIRES_ONBOARDING:
        return settings.ONBOARDING_URL
    if reason is GateReason.REQUIRES_SUBSCRIPTION:
        return settings.PRICING_URL
    return None


def _decision(allowed: bool, reason: GateReason) -> GateDecision:
    return GateDecision(allowed=allowed, reason=reason, redirect_to=_redirect_for(reason))


def evaluate(
    access_status: AccessStatus,
    subscription: Optional[Subscription],
    action: Union[GateAction, str],
    *,
    from_onboarding: bool = False,
) -> GateDecision:
    resolved = _resolve_action(action)

    if resolved is None:
        decision = _decision(False, GateReason.REQUIRES_SUBSCRIPTION)
    elif access_status.is_admin:
        decision = _decision(True, GateReason.ADMIN_OVERRIDE)
    elif (
        resolved in ONBOARDING_ACTIONS
        and not access_status.onboarding_complete
        and not (from_onboarding and resolved is GateAction.START_CHECKOUT)
    ):
        decision = _decision(False, GateReason.REQUIRES_ONBOARDING)
    elif resolved is GateAction.MANAGE_SUBSCRIPTION and not exists_for_management(subscription):
        decision = _decision(False, GateReason.REQUIRES_SUBSCRIPTION)
    else:
        decision = _decision(True, GateReason.NONE)

    # Denials are ordinary outcomes, not failures.
    log_event(
        "info",
        "[access] decision",
        logger=logger,
        user_id=access_status.user_id,
        event_type="gate.decision",
        extra={
            "action": resolved.value if resolved else str(action),
            "allowed": decision.allowed,
            "reason": decision.reason.value,
        },
    )
    return decision


def evaluate_snapshot(
    snapshot: AccessSnapshot,
    action: Union[GateAction, str],
    *,
    from_onboarding: bool = False,
) -> GateDecision:
    return evaluate(
        snapshot.access_status,
        snapshot.subscription,
        action,
        from_onboarding=from_onboarding,
    )
