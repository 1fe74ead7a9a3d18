"""
creditpath/models/subscription.py

Point-in-time snapshot of a user's subscription, as normalized from the
billing backend. Lifecycle transitions are owned by the billing service
(webhook-driven); nothing in this package mutates a Subscription.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class SubscriptionStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    # Not a backend value: marks any status outside the four above.
    UNKNOWN = "unknown"

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> "SubscriptionStatus":
        if raw in _CANONICAL:
            return cls(raw)
        return cls.UNKNOWN


_CANONICAL = {"trial", "active", "paused", "cancelled"}


class Subscription(BaseModel):
    """
    Canonical subscription record.

    `status` keeps the backend value verbatim for display; `state` is the
    lifecycle state used for gating, UNKNOWN for anything non-canonical.
    """
    model_config = ConfigDict(frozen=True)

    subscription_id: Optional[str] = None
    user_id: Optional[str] = None
    plan_id: Optional[str] = None
    plan_name: Optional[str] = None
    status: str
    state: SubscriptionStatus
    billing_cycle: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    guarantee_eligible: bool = False
    guarantee_start_date: Optional[datetime] = None
    guarantee_end_date: Optional[datetime] = None
    guarantee_claimed: bool = False
