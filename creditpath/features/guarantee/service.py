"""
creditpath/features/guarantee/service.py

Money-back guarantee eligibility.

The guarantee end date always comes from the billing backend; nothing here
derives it. A window without an end date is treated as closed so that a
missing date can never open an unbounded claim window.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from creditpath.features.subscriptions.service import exists_for_management
from creditpath.models.subscription import Subscription, SubscriptionStatus


MIN_CLAIM_REASON_LENGTH = 20

# Claims are accepted from subscriptions that are still running.
_CLAIMABLE_STATES = frozenset({SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE})


class ClaimCheck(str, Enum):
    OK = "ok"
    NO_SUBSCRIPTION = "no-subscription"
    WINDOW_CLOSED = "window-closed"
    ALREADY_CLAIMED = "already-claimed"
    REASON_TOO_SHORT = "reason-too-short"


def _aware(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def is_guarantee_window_open(subscription: Optional[Subscription], now: datetime) -> bool:
    if subscription is None or not subscription.guarantee_eligible:
        return False
    end = subscription.guarantee_end_date
    if end is None:
        return False
    return _aware(now) <= end


def guarantee_days_remaining(subscription: Optional[Subscription], now: datetime) -> int:
    """Whole days left in the window, rounded up; 0 once closed or unknown."""
    if subscription is None or subscription.guarantee_end_date is None:
        return 0
    remaining = subscription.guarantee_end_date - _aware(now)
    if remaining <= timedelta(0):
        return 0
    return math.ceil(remaining / timedelta(days=1))


@dataclass(frozen=True)
class ClaimDecision:
    result: ClaimCheck
    days_remaining: int = 0

    @property
    def allowed(self) -> bool:
        return self.result is ClaimCheck.OK


def check_guarantee_claim(
    subscription: Optional[Subscription],
    now: datetime,
    reason: Optional[str],
) -> ClaimDecision:
    """Pre-checks for a refund claim, in the order the claim desk applies them."""
    if not exists_for_management(subscription) or subscription.state not in _CLAIMABLE_STATES:
        return ClaimDecision(ClaimCheck.NO_SUBSCRIPTION)
    if not is_guarantee_window_open(subscription, now):
        return ClaimDecision(ClaimCheck.WINDOW_CLOSED)

    days_remaining = guarantee_days_remaining(subscription, now)
    if subscription.guarantee_claimed:
        return ClaimDecision(ClaimCheck.ALREADY_CLAIMED, days_remaining)
    if reason is None or len(reason.strip()) < MIN_CLAIM_REASON_LENGTH:
        return ClaimDecision(ClaimCheck.REASON_TOO_SHORT, days_remaining)
    return ClaimDecision(ClaimCheck.OK, days_remaining)
