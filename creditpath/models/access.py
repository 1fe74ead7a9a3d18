"""
creditpath/models/access.py

Access facts and gate decisions.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict

from creditpath.models.subscription import Subscription


class AccessStatus(BaseModel):
    """Per-request access facts derived from the user's profile. Never cached."""
    model_config = ConfigDict(frozen=True)

    is_admin: bool = False
    onboarding_complete: bool = False
    user_id: Optional[str] = None


class AccessSnapshot(BaseModel):
    """AccessStatus and Subscription fetched together for one decision."""
    model_config = ConfigDict(frozen=True)

    access_status: AccessStatus
    subscription: Optional[Subscription] = None
    fetched_at: datetime


class GateAction(str, Enum):
    VIEW_PROTECTED_PAGE = "view-protected-page"
    START_CHECKOUT = "start-checkout"
    MANAGE_SUBSCRIPTION = "manage-subscription"


class GateReason(str, Enum):
    NONE = "none"
    REQUIRES_ONBOARDING = "requires-onboarding"
    REQUIRES_SUBSCRIPTION = "requires-subscription"
    ADMIN_OVERRIDE = "admin-override"


class GateDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: GateReason
    redirect_to: Optional[str] = None
