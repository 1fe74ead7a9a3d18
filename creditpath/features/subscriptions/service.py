"""
creditpath/features/subscriptions/service.py

Normalization boundary for billing backend payloads.

The billing backend is inconsistent about envelopes: a resource may arrive
flat, wrapped once in {"data": ...}, wrapped twice, or inside a
{"hasSubscription": ..., "subscription": ...} envelope, with camelCase or
snake_case keys. Everything is unwrapped here so the rest of the package
never branches on response shape.

Handles:
- Subscription normalization and lifecycle facts
- AccessStatus normalization
- Timestamp parsing (ISO-8601, epoch seconds, datetimes)
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Mapping, Optional

from creditpath.core.config import settings
from creditpath.models.access import AccessStatus
from creditpath.models.subscription import Subscription, SubscriptionStatus


logger = logging.getLogger(__name__)

# States in which a subscription exists for self-service management.
MANAGEABLE_STATES = frozenset({
    SubscriptionStatus.TRIAL,
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.PAUSED,
})

_MAX_UNWRAP_DEPTH = 5

# A mapping carrying any of these keys is a resource, not an envelope.
_RECORD_KEYS = frozenset({
    "id",
    "status",
    "hasSubscription",
    "has_subscription",
    "isAdmin",
    "is_admin",
})


def unwrap_data(raw: Any) -> Any:
    """Strip {"data": ...} envelopes (possibly nested)."""
    current = raw
    for _ in range(_MAX_UNWRAP_DEPTH):
        if not isinstance(current, Mapping) or "data" not in current:
            break
        if _RECORD_KEYS.intersection(current.keys()):
            break
        current = current["data"]
    return current


def pick(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present, non-None value among `keys`."""
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return default


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a backend timestamp into an aware UTC datetime.

    Naive values are taken as UTC. Unparseable values yield None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float, Decimal)):
        try:
            parsed = datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.warning("[subscriptions] unparseable timestamp", extra={"value": value})
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_bool(value: Any) -> bool:
    """Strict boolean coercion: only real booleans and their string forms count."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def _optional_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def normalize(raw: Any) -> Optional[Subscription]:
    """Normalize a current-subscription payload into a Subscription.

    Returns None when the payload says there is no subscription, or when it
    is not a record at all. Never raises and never mutates `raw`.
    """
    record = unwrap_data(raw)
    if not isinstance(record, Mapping):
        return None

    if "hasSubscription" in record or "has_subscription" in record:
        has_subscription = parse_bool(pick(record, "hasSubscription", "has_subscription"))
        if not has_subscription:
            return None
        record = unwrap_data(record.get("subscription"))
        if not isinstance(record, Mapping):
            return None
    elif "subscription" in record and isinstance(record.get("subscription"), Mapping):
        record = unwrap_data(record["subscription"])

    raw_status = pick(record, "status")
    if raw_status is None:
        return None
    status = str(raw_status)

    subscription = Subscription(
        subscription_id=_optional_str(pick(record, "id", "subscriptionId", "subscription_id")),
        user_id=_optional_str(pick(record, "userId", "user_id", "clientId", "client_id")),
        plan_id=_optional_str(pick(record, "planId", "plan_id")),
        plan_name=_optional_str(pick(record, "planName", "plan_name")),
        status=status,
        state=SubscriptionStatus.from_raw(status),
        billing_cycle=_optional_str(pick(record, "billingCycle", "billing_cycle")),
        current_period_start=parse_timestamp(pick(record, "currentPeriodStart", "current_period_start")),
        current_period_end=parse_timestamp(pick(record, "currentPeriodEnd", "current_period_end")),
        cancel_at_period_end=parse_bool(pick(record, "cancelAtPeriodEnd", "cancel_at_period_end")),
        guarantee_eligible=parse_bool(pick(record, "guaranteeEligible", "guarantee_eligible")),
        guarantee_start_date=parse_timestamp(pick(record, "guaranteeStartDate", "guarantee_start_date")),
        guarantee_end_date=parse_timestamp(pick(record, "guaranteeEndDate", "guarantee_end_date")),
        guarantee_claimed=parse_bool(pick(record, "guaranteeClaimed", "guarantee_claimed")),
    )

    if subscription.state is SubscriptionStatus.UNKNOWN:
        logger.warning(
            "[subscriptions] non-canonical status, treating as not entitled",
            extra={"status": status, "user_id": subscription.user_id},
        )

    _check_guarantee_bounds(subscription)
    return subscription


def _check_guarantee_bounds(subscription: Subscription) -> None:
    start = subscription.guarantee_start_date
    end = subscription.guarantee_end_date
    if start is None or end is None:
        return
    minimum = start + timedelta(days=settings.GUARANTEE_PERIOD_DAYS)
    if end < minimum:
        logger.warning(
            "[subscriptions] guarantee window shorter than guarantee period",
            extra={
                "user_id": subscription.user_id,
                "guarantee_start_date": start.isoformat(),
                "guarantee_end_date": end.isoformat(),
            },
        )


def normalize_access_status(raw: Any) -> AccessStatus:
    """Normalize an access-status payload. Missing or malformed flags are False."""
    record = unwrap_data(raw)
    if not isinstance(record, Mapping):
        return AccessStatus()
    return AccessStatus(
        is_admin=parse_bool(pick(record, "isAdmin", "is_admin")),
        onboarding_complete=parse_bool(pick(record, "onboardingComplete", "onboarding_complete")),
        user_id=_optional_str(pick(record, "userId", "user_id")),
    )


def is_active(subscription: Optional[Subscription]) -> bool:
    """Entitled to paid features: status is exactly `active`."""
    return subscription is not None and subscription.state is SubscriptionStatus.ACTIVE


def is_renewing_on(subscription: Optional[Subscription]) -> Optional[datetime]:
    if subscription is None:
        return None
    return subscription.current_period_end


def exists_for_management(subscription: Optional[Subscription]) -> bool:
    """A subscription exists (trial, active or paused) but may not be entitled."""
    return subscription is not None and subscription.state in MANAGEABLE_STATES
