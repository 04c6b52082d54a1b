import datetime as dt
from typing import Any

from sqlalchemy import text

from fanclub.db import engine

USAGE_COLUMNS = "user_id, date, data_transfer_bytes, api_calls_count, storage_bytes"


def today_utc() -> str:
    return dt.datetime.now(dt.timezone.utc).date().isoformat()


def days_ago(days: int) -> str:
    return (dt.datetime.now(dt.timezone.utc) - dt.timedelta(days=days)).date().isoformat()


def add_daily_usage(user_id: str, data_size: int, day: str | None = None) -> None:
    """Accumulate bytes and one API call onto the (user, day) row."""
    with engine.begin() as conn:
        conn.execute(
            text(
                "INSERT INTO usage_tracking (user_id, date, data_transfer_bytes, api_calls_count) "
                "VALUES (:uid, :day, :size, 1) "
                "ON CONFLICT (user_id, date) DO UPDATE SET "
                "data_transfer_bytes = usage_tracking.data_transfer_bytes + excluded.data_transfer_bytes, "
                "api_calls_count = usage_tracking.api_calls_count + excluded.api_calls_count"
            ),
            {"uid": user_id, "day": day or today_utc(), "size": int(data_size or 0)},
        )


def usage_rows(since: str, user_id: str | None = None, ascending: bool = False) -> list[dict[str, Any]]:
    sql = f"SELECT {USAGE_COLUMNS} FROM usage_tracking WHERE date >= :since"
    params: dict[str, Any] = {"since": since}
    if user_id:
        sql += " AND user_id = :uid"
        params["uid"] = user_id
    sql += " ORDER BY date " + ("ASC" if ascending else "DESC")
    with engine.begin() as conn:
        rows = conn.execute(text(sql), params).mappings().all()
    return [dict(r) for r in rows]


def usage_for_day(user_id: str, day: str | None = None) -> dict[str, Any] | None:
    with engine.begin() as conn:
        row = conn.execute(
            text(f"SELECT {USAGE_COLUMNS} FROM usage_tracking WHERE user_id = :uid AND date = :day"),
            {"uid": user_id, "day": day or today_utc()},
        ).mappings().first()
    return dict(row) if row else None


def users_over_usage(min_bytes: int) -> list[dict[str, Any]]:
    with engine.begin() as conn:
        rows = conn.execute(
            text(
                "SELECT id, email, plan, data_usage_bytes, api_calls_count FROM users "
                "WHERE data_usage_bytes > :n"
            ),
            {"n": int(min_bytes)},
        ).mappings().all()
    return [dict(r) for r in rows]


def users_inactive_since(cutoff_iso: str) -> list[dict[str, Any]]:
    with engine.begin() as conn:
        rows = conn.execute(
            text("SELECT id, email, last_login_at FROM users WHERE last_login_at < :cutoff"),
            {"cutoff": cutoff_iso},
        ).mappings().all()
    return [dict(r) for r in rows]
