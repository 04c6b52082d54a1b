import datetime as dt
import logging
from collections import Counter
from typing import Any

from fanclub.data import monthly, usage, users
from fanclub.data.common import as_utc, to_iso, utc_now
from fanclub.services.analytics import calculate_trend

log = logging.getLogger("fanclub.monitoring")

HIGH_USAGE_BYTES = 50 * 1024 * 1024
INACTIVE_DAYS = 30
HIGH_TRANSFER_24H = 1024 * 1024 * 1024
HIGH_CALLS_24H = 100_000


def _ago_iso(days: int) -> str:
    return to_iso(utc_now() - dt.timedelta(days=days))


def _by_plan(rows: list[dict[str, Any]]) -> dict[str, int]:
    return dict(Counter(r.get("plan") for r in rows))


def _sum(rows: list[dict[str, Any]], col: str) -> int:
    return sum(int(r.get(col) or 0) for r in rows)


def generate_alerts() -> list[dict[str, Any]]:
    try:
        alerts: list[dict[str, Any]] = []

        heavy = usage.users_over_usage(HIGH_USAGE_BYTES)
        if heavy:
            alerts.append(
                {
                    "type": "high_usage",
                    "severity": "warning",
                    "message": f"{len(heavy)} users exceeding 50MB data usage",
                    "users": [
                        {"id": u["id"], "email": u.get("email"), "usage": u.get("data_usage_bytes")}
                        for u in heavy
                    ],
                }
            )

        inactive = usage.users_inactive_since(_ago_iso(INACTIVE_DAYS))
        if inactive:
            alerts.append(
                {
                    "type": "inactive_users",
                    "severity": "info",
                    "message": f"{len(inactive)} users inactive for 30+ days",
                    "count": len(inactive),
                }
            )

        recent = usage.usage_rows(usage.days_ago(1))
        transfer = _sum(recent, "data_transfer_bytes")
        calls = _sum(recent, "api_calls_count")
        if transfer > HIGH_TRANSFER_24H:
            alerts.append(
                {
                    "type": "high_data_transfer",
                    "severity": "critical",
                    "message": f"High data transfer: {round(transfer / 1024 / 1024)}MB in last 24h",
                    "value": transfer,
                }
            )
        if calls > HIGH_CALLS_24H:
            alerts.append(
                {
                    "type": "high_api_calls",
                    "severity": "warning",
                    "message": f"High API usage: {calls} calls in last 24h",
                    "value": calls,
                }
            )
        return alerts
    except Exception:
        log.exception("alert generation failed")
        return []


def system_overview() -> dict[str, Any]:
    recent_users = users.list_users(created_since=_ago_iso(30))
    week = usage.usage_rows(usage.days_ago(7))
    return {
        "users": {
            "total": len(recent_users),
            "byPlan": _by_plan(recent_users),
            "active": sum(1 for u in recent_users if u.get("status") == "active"),
        },
        "usage": {
            "totalDataTransfer": _sum(week, "data_transfer_bytes"),
            "totalApiCalls": _sum(week, "api_calls_count"),
            "avgDataTransfer": _sum(week, "data_transfer_bytes") / len(week) if week else 0,
        },
        "storage": monthly.storage_since(_ago_iso(30)),
        "alerts": generate_alerts(),
    }


def user_stats() -> dict[str, Any]:
    rows = users.list_users()
    cutoff = utc_now() - dt.timedelta(days=7)
    return {
        "total": len(rows),
        "active": sum(1 for u in rows if u.get("status") == "active"),
        "byPlan": _by_plan(rows),
        "topUsers": sorted(rows, key=lambda u: int(u.get("data_usage_bytes") or 0), reverse=True)[:10],
        "recentSignups": sum(1 for u in rows if (as_utc(u.get("created_at")) or cutoff) > cutoff),
    }


def usage_stats() -> dict[str, Any]:
    rows = usage.usage_rows(usage.days_ago(30))
    n = len(rows)
    transfer = _sum(rows, "data_transfer_bytes")
    calls = _sum(rows, "api_calls_count")
    # rows are newest first; trends read oldest to newest
    chronological = list(reversed(rows))
    return {
        "daily": rows,
        "summary": {
            "totalDataTransfer": transfer,
            "totalApiCalls": calls,
            "avgDailyDataTransfer": transfer / n if n else 0,
            "avgDailyApiCalls": calls / n if n else 0,
        },
        "trends": {
            "dataTransferTrend": calculate_trend([int(r.get("data_transfer_bytes") or 0) for r in chronological]),
            "apiCallsTrend": calculate_trend([int(r.get("api_calls_count") or 0) for r in chronological]),
        },
    }


REPORTS = {
    "overview": system_overview,
    "users": user_stats,
    "usage": usage_stats,
    "alerts": generate_alerts,
}
