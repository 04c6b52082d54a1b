import logging
from typing import Any

from fanclub.data import usage, users
from fanclub.services.plans import limits_for

log = logging.getLogger("fanclub.usage")


def track_usage(user_id: str, data_size: int) -> None:
    """Add bytes plus one API call to today's row and the user's totals. Never raises."""
    if not user_id:
        return
    try:
        usage.add_daily_usage(user_id, data_size)
        users.add_usage_counters(user_id, data_size)
    except Exception:
        log.exception("usage tracking failed user=%s", user_id)


def _percent(current: int, limit: int) -> int:
    return round(current / limit * 100) if limit else 0


def current_usage(user_id: str) -> dict[str, Any] | None:
    try:
        user = users.get_user(user_id)
    except Exception:
        log.exception("usage lookup failed user=%s", user_id)
        return None
    if not user:
        return None
    limits = limits_for(user.get("plan"))
    data_used = int(user.get("data_usage_bytes") or 0)
    calls = int(user.get("api_calls_count") or 0)
    return {
        "plan": user.get("plan"),
        "dataUsage": {
            "current": data_used,
            "limit": limits["dataTransfer"],
            "percentage": _percent(data_used, limits["dataTransfer"]),
        },
        "apiCalls": {
            "current": calls,
            "limit": limits["apiCalls"],
            "percentage": _percent(calls, limits["apiCalls"]),
        },
    }


def usage_report(days: int = 30, user_id: str | None = None) -> dict[str, Any]:
    rows = usage.usage_rows(usage.days_ago(days), user_id=user_id)
    summary = {
        "totalDataTransfer": sum(int(r.get("data_transfer_bytes") or 0) for r in rows),
        "totalApiCalls": sum(int(r.get("api_calls_count") or 0) for r in rows),
        "totalStorage": sum(int(r.get("storage_bytes") or 0) for r in rows),
        "days": len(rows),
    }
    return {"summary": summary, "dailyUsage": rows, "period": f"{days} days"}
