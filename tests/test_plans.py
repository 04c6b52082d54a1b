"""
Plan Tests

Limits, features and the effective feature plan of a user.
"""

import datetime as dt
from unittest.mock import patch

from fanclub.data.subscriptions import upsert_subscription
from fanclub.data.users import ensure_user_row, get_user, update_user
from fanclub.services import plans


class TestLimits:
    """Transfer limits and feature tables."""

    def test_unknown_plan_falls_back_to_free(self):
        assert plans.limits_for("platinum") == plans.PLAN_LIMITS["free"]
        assert plans.features_for("basic") == plans.PLAN_FEATURES["free"]

    def test_model_slots(self):
        assert plans.can_add_model(0, "free")
        assert not plans.can_add_model(1, "free")
        assert plans.can_add_model(50, "pro")
        assert plans.remaining_models(1, "free") == 0
        assert plans.remaining_models(3, "pro") is None

    def test_retention(self):
        assert plans.retention_months("free") == 2
        assert plans.retention_months("pro") is None

    def test_retention_window(self):
        today = dt.date(2026, 1, 10)
        assert plans.within_retention(2026, 1, 2, today)
        assert plans.within_retention(2025, 12, 2, today)
        assert not plans.within_retention(2025, 11, 2, today)

    def test_apply_retention(self):
        rows = [{"year": 2026, "month": 1}, {"year": 2025, "month": 1}]
        today = dt.date(2026, 1, 10)
        assert plans.apply_retention(rows, "free", today) == [{"year": 2026, "month": 1}]
        assert plans.apply_retention(rows, "pro", today) == rows


class TestCheckPlanLimits:
    """Cumulative transfer check."""

    def test_unknown_user(self):
        assert plans.check_plan_limits("ghost", 10) == {"allowed": False, "reason": "User not found"}

    def test_within_limit(self):
        ensure_user_row("u1")
        assert plans.check_plan_limits("u1", 1024) == {"allowed": True}

    def test_exactly_at_limit_is_allowed(self):
        ensure_user_row("u1")
        assert plans.check_plan_limits("u1", 100 * plans.MB)["allowed"] is True
        assert plans.check_plan_limits("u1", 100 * plans.MB + 1)["allowed"] is False

    def test_bigger_plan_bigger_limit(self):
        ensure_user_row("u1")
        update_user("u1", plan="basic")
        assert plans.check_plan_limits("u1", 500 * plans.MB)["allowed"] is True

    def test_storage_error_is_reported_not_raised(self):
        with patch("fanclub.data.users.get_user", side_effect=RuntimeError("db down")):
            assert plans.check_plan_limits("u1", 1) == {"allowed": False, "reason": "Internal error"}


class TestEffectivePlan:
    """Feature plan resolution."""

    def test_default_free(self):
        ensure_user_row("u1")
        assert plans.effective_plan(get_user("u1")) == "free"
        assert plans.effective_plan(None) == "free"

    def test_admin_is_pro(self):
        ensure_user_row("u1")
        assert plans.effective_plan(update_user("u1", role="admin")) == "pro"

    def test_enterprise_is_pro(self):
        ensure_user_row("u1")
        assert plans.effective_plan(update_user("u1", plan="enterprise")) == "pro"

    def test_trialing_subscription_is_pro(self):
        ensure_user_row("u1")
        upsert_subscription(
            "u1",
            status="trialing",
            current_period_end=dt.datetime.now(dt.timezone.utc) + dt.timedelta(days=3),
        )
        assert plans.effective_plan(get_user("u1")) == "pro"

    def test_past_due_is_free(self):
        ensure_user_row("u1")
        upsert_subscription(
            "u1",
            status="past_due",
            current_period_end=dt.datetime.now(dt.timezone.utc) + dt.timedelta(days=3),
        )
        assert plans.effective_plan(get_user("u1")) == "free"
