import datetime as dt
import logging
from typing import Any

from fanclub.data import subscriptions, users

log = logging.getLogger("fanclub.plans")

MB = 1024 * 1024
GB = 1024 * MB

# Transfer limits by users.plan; unknown plans fall back to free
PLAN_LIMITS: dict[str, dict[str, int]] = {
    "free": {"dataTransfer": 100 * MB, "apiCalls": 1_000},
    "basic": {"dataTransfer": 1 * GB, "apiCalls": 10_000},
    "pro": {"dataTransfer": 10 * GB, "apiCalls": 100_000},
    "enterprise": {"dataTransfer": 100 * GB, "apiCalls": 1_000_000},
}

# None = unlimited
PLAN_FEATURES: dict[str, dict[str, Any]] = {
    "free": {
        "maxModels": 1,
        "dataRetentionMonths": 2,
        "advancedAnalytics": False,
        "aiSuggestions": False,
        "csvExport": False,
        "prioritySupport": False,
    },
    "pro": {
        "maxModels": None,
        "dataRetentionMonths": None,
        "advancedAnalytics": True,
        "aiSuggestions": True,
        "csvExport": True,
        "prioritySupport": True,
    },
}

# Stripe checkout plans (JPY)
CHECKOUT_PLANS: dict[str, dict[str, Any]] = {
    "monthly": {"name": "Pro (monthly)", "amount": 980, "interval": "month", "price_env": "STRIPE_PRICE_ID_MONTHLY"},
    "yearly": {"name": "Pro (yearly)", "amount": 9800, "interval": "year", "price_env": "STRIPE_PRICE_ID_YEARLY"},
}

PRO_USER_PLANS = ("pro", "enterprise")


def limits_for(plan: str | None) -> dict[str, int]:
    return PLAN_LIMITS.get(plan or "free", PLAN_LIMITS["free"])


def features_for(plan: str) -> dict[str, Any]:
    return PLAN_FEATURES.get(plan, PLAN_FEATURES["free"])


def effective_plan(user: dict[str, Any] | None) -> str:
    """Feature plan: 'pro' for admins, pro/enterprise accounts or a live subscription."""
    if not user:
        return "free"
    if user.get("role") == "admin" or user.get("plan") in PRO_USER_PLANS:
        return "pro"
    if subscriptions.is_subscribed(user["id"]):
        return "pro"
    return "free"


def has_feature(plan: str, feature: str) -> bool:
    return bool(features_for(plan).get(feature))


def can_add_model(current_count: int, plan: str) -> bool:
    limit = features_for(plan)["maxModels"]
    return limit is None or current_count < limit


def remaining_models(current_count: int, plan: str) -> int | None:
    limit = features_for(plan)["maxModels"]
    if limit is None:
        return None
    return max(0, limit - current_count)


def retention_months(plan: str) -> int | None:
    return features_for(plan)["dataRetentionMonths"]


def check_plan_limits(user_id: str, data_size: int) -> dict[str, Any]:
    try:
        user = users.get_user(user_id)
        if not user:
            return {"allowed": False, "reason": "User not found"}
        limits = limits_for(user.get("plan"))
        if int(user.get("data_usage_bytes") or 0) + int(data_size or 0) > limits["dataTransfer"]:
            return {"allowed": False, "reason": "Data transfer limit exceeded"}
        return {"allowed": True}
    except Exception:
        log.exception("plan limit check failed")
        return {"allowed": False, "reason": "Internal error"}


def within_retention(year: int, month: int, months: int, today: dt.date | None = None) -> bool:
    """True when (year, month) is the current month or one of the (months - 1) before it."""
    today = today or dt.datetime.now(dt.timezone.utc).date()
    index = int(year) * 12 + int(month) - 1
    current = today.year * 12 + today.month - 1
    return index > current - months


def apply_retention(rows: list[dict[str, Any]], plan: str, today: dt.date | None = None) -> list[dict[str, Any]]:
    """Drop monthly rows older than the plan's retention window."""
    keep = retention_months(plan)
    if keep is None:
        return rows
    return [r for r in rows if within_retention(r["year"], r["month"], keep, today)]
