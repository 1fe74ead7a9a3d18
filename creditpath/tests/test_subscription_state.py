"""Tests for subscription and access-status normalization."""

import copy
import logging
from datetime import datetime, timezone

import pytest

from creditpath.features.subscriptions.service import (
    exists_for_management,
    is_active,
    is_renewing_on,
    normalize,
    normalize_access_status,
    parse_timestamp,
    unwrap_data,
)
from creditpath.models.subscription import SubscriptionStatus


RECORD = {
    "id": "sub_123",
    "userId": "user_1",
    "planId": "profesional",
    "planName": "Profesional",
    "status": "active",
    "billingCycle": "yearly",
    "currentPeriodEnd": "2026-03-01T00:00:00Z",
    "guaranteeEligible": True,
    "guaranteeStartDate": "2026-01-01T00:00:00Z",
    "guaranteeEndDate": "2026-04-01T00:00:00Z",
}


class TestUnwrap:
    def test_flat_record_is_unchanged(self):
        assert unwrap_data(RECORD) is RECORD

    def test_nested_envelopes(self):
        assert unwrap_data({"data": {"data": RECORD}}) is RECORD

    def test_record_with_data_field_is_not_unwrapped(self):
        record = {"id": "x", "data": {"other": 1}}
        assert unwrap_data(record) is record


class TestNormalize:
    @pytest.mark.parametrize(
        "payload",
        [
            RECORD,
            {"data": RECORD},
            {"data": {"data": RECORD}},
            {"hasSubscription": True, "subscription": RECORD},
            {"data": {"hasSubscription": True, "subscription": {"data": RECORD}}},
        ],
    )
    def test_envelopes_normalize_to_same_subscription(self, payload):
        sub = normalize(payload)

        assert sub is not None
        assert sub.subscription_id == "sub_123"
        assert sub.plan_id == "profesional"
        assert sub.state is SubscriptionStatus.ACTIVE
        assert sub.guarantee_end_date == datetime(2026, 4, 1, tzinfo=timezone.utc)

    def test_snake_case_keys(self):
        sub = normalize({
            "id": "sub_9",
            "user_id": "user_9",
            "plan_id": "esencial",
            "status": "trial",
            "current_period_end": 1767225600,
            "guarantee_eligible": "true",
            "cancel_at_period_end": True,
        })

        assert sub.user_id == "user_9"
        assert sub.state is SubscriptionStatus.TRIAL
        assert sub.current_period_end == datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert sub.guarantee_eligible is True
        assert sub.cancel_at_period_end is True

    @pytest.mark.parametrize(
        "payload",
        [
            {"hasSubscription": False},
            {"hasSubscription": False, "subscription": RECORD},
            {"data": {"hasSubscription": False, "subscription": None}},
            {"data": None},
            None,
            [],
            {"id": "sub_no_status"},
        ],
    )
    def test_no_subscription(self, payload):
        assert normalize(payload) is None

    def test_unknown_status_is_kept_verbatim(self, caplog):
        with caplog.at_level(logging.WARNING):
            sub = normalize({**RECORD, "status": "past_due"})

        assert sub.status == "past_due"
        assert sub.state is SubscriptionStatus.UNKNOWN
        assert not is_active(sub)
        assert not exists_for_management(sub)
        assert any("non-canonical status" in r.getMessage() for r in caplog.records)

    def test_does_not_mutate_input(self):
        payload = {"data": {"hasSubscription": True, "subscription": dict(RECORD)}}
        before = copy.deepcopy(payload)
        normalize(payload)
        assert payload == before

    def test_short_guarantee_window_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            normalize({**RECORD, "guaranteeEndDate": "2026-02-01T00:00:00Z"})
        assert any("guarantee window shorter" in r.getMessage() for r in caplog.records)


class TestLifecycle:
    @pytest.mark.parametrize(
        "status,active,exists",
        [
            ("active", True, True),
            ("trial", False, True),
            ("paused", False, True),
            ("cancelled", False, False),
            ("trialing", False, False),
        ],
    )
    def test_active_and_exists(self, status, active, exists):
        sub = normalize({**RECORD, "status": status})
        assert is_active(sub) is active
        assert exists_for_management(sub) is exists

    def test_none_subscription(self):
        assert is_active(None) is False
        assert exists_for_management(None) is False
        assert is_renewing_on(None) is None

    def test_renewing_on_is_period_end(self):
        sub = normalize(RECORD)
        assert is_renewing_on(sub) == datetime(2026, 3, 1, tzinfo=timezone.utc)


class TestTimestamps:
    def test_iso_with_z(self):
        assert parse_timestamp("2026-01-01T00:00:00Z") == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        assert parse_timestamp("2026-01-01T12:00:00").tzinfo is not None
        assert parse_timestamp(datetime(2026, 1, 1)) == datetime(2026, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "not a date", True, {"at": 1}])
    def test_unparseable_is_none(self, value):
        assert parse_timestamp(value) is None


class TestAccessStatus:
    def test_wrapped_camel_case(self):
        status = normalize_access_status({"data": {"isAdmin": False, "onboardingComplete": True, "userId": "u1"}})
        assert status.is_admin is False
        assert status.onboarding_complete is True
        assert status.user_id == "u1"

    def test_snake_case(self):
        status = normalize_access_status({"is_admin": True, "onboarding_complete": False})
        assert status.is_admin is True
        assert status.onboarding_complete is False

    @pytest.mark.parametrize("payload", [None, {}, {"data": None}, {"isAdmin": "yes", "onboardingComplete": 1}])
    def test_missing_or_malformed_flags_are_false(self, payload):
        status = normalize_access_status(payload)
        assert status.is_admin is False
        assert status.onboarding_complete is False
