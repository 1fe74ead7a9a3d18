"""
creditpath/features/plans/service.py

Plan parsing from billing backend payloads.

Handles:
- camelCase / snake_case price fields
- Wrapped ({"data": [...]}) or flat plan lists
- Malformed prices (non-numeric, negative, out of range) degrade to 0 with a warning
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional, Tuple

from creditpath.models.plan import MAX_PRICE, Plan
from creditpath.features.subscriptions.service import pick, parse_bool, unwrap_data


logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def parse_price(value: Any, *, plan_id: Optional[str] = None, field: str = "price") -> Decimal:
    """Coerce a backend price into a Decimal in [0, MAX_PRICE], 0 when malformed."""
    if isinstance(value, bool):
        amount = None
    elif isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            amount = None
    else:
        amount = None

    if amount is None or not amount.is_finite() or amount < 0 or amount > MAX_PRICE:
        logger.warning(
            "[plans] malformed price, using 0",
            extra={"plan_id": plan_id, "field": field, "value": repr(value)},
        )
        return ZERO
    return amount


def _features(value: Any) -> Tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value if item is not None)
    return ()


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_plan(raw: Any) -> Optional[Plan]:
    """Build a Plan from one backend record; None if it has no identifier."""
    record = unwrap_data(raw)
    if not isinstance(record, Mapping):
        return None

    plan_id = pick(record, "id", "planId", "plan_id")
    if plan_id is None:
        logger.warning("[plans] plan without id skipped")
        return None
    plan_id = str(plan_id)

    yearly_raw = pick(record, "priceYearly", "price_yearly")
    # Empty strings count as absent, like null.
    if isinstance(yearly_raw, str) and not yearly_raw.strip():
        yearly_raw = None

    guarantee_days = _optional_int(pick(record, "guaranteeDays", "guarantee_days"))

    return Plan(
        plan_id=plan_id,
        name=str(pick(record, "name", default=plan_id)),
        description=str(pick(record, "description", default="")),
        price_monthly=parse_price(
            pick(record, "priceMonthly", "price_monthly"), plan_id=plan_id, field="price_monthly"
        ),
        price_yearly=(
            None if yearly_raw is None
            else parse_price(yearly_raw, plan_id=plan_id, field="price_yearly")
        ),
        features=_features(pick(record, "features")),
        includes_ai_analysis=parse_bool(pick(record, "includesAiAnalysis", "includes_ai_analysis")),
        guarantee_days=guarantee_days if guarantee_days is not None else 90,
        max_disputes_per_month=_optional_int(pick(record, "maxDisputesPerMonth", "max_disputes_per_month")),
    )


def parse_plans(raw: Any) -> List[Plan]:
    """Parse a plan list payload. Anything that is not a list yields []."""
    items = unwrap_data(raw)
    if not isinstance(items, list):
        if items is not None:
            logger.warning("[plans] plans payload is not a list", extra={"type": type(items).__name__})
        return []

    plans: List[Plan] = []
    for item in items:
        plan = parse_plan(item)
        if plan is not None:
            plans.append(plan)
    return plans
