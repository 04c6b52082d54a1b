import datetime as dt
from typing import Any

from sqlalchemy import text

from fanclub.db import engine
from fanclub.data.common import as_utc, new_id, to_iso, utc_now_iso

ACTIVE_STATUSES = ("active", "trialing")

SUBSCRIPTION_COLUMNS = (
    "user_id, stripe_customer_id, stripe_subscription_id, price_id, status, "
    "current_period_start, current_period_end, created_at, updated_at"
)


def _ts(value: dt.datetime | None) -> str | None:
    return to_iso(value) if value is not None else None


def get_subscription(user_id: str) -> dict[str, Any] | None:
    if not user_id:
        return None
    with engine.begin() as conn:
        row = conn.execute(
            text(f"SELECT {SUBSCRIPTION_COLUMNS} FROM subscriptions WHERE user_id = :uid LIMIT 1"),
            {"uid": user_id},
        ).mappings().first()
    return dict(row) if row else None


def is_subscribed(user_id: str, now: dt.datetime | None = None) -> bool:
    """
    True if the user has an active/trialing sub whose period hasn't ended.
    DB-agnostic: normalize timestamps to timezone-aware UTC before comparing.
    """
    sub = get_subscription(user_id)
    if not sub:
        return False
    now_dt = as_utc(now) if now else dt.datetime.now(dt.timezone.utc)
    cpe_dt = as_utc(sub.get("current_period_end"))
    if cpe_dt is None:
        return False
    return sub.get("status") in ACTIVE_STATUSES and cpe_dt > now_dt


def get_stripe_customer_id(user_id: str) -> str | None:
    sub = get_subscription(user_id)
    return (sub or {}).get("stripe_customer_id") or None


def find_user_id_by_stripe_customer(customer_id: str) -> str | None:
    if not customer_id:
        return None
    with engine.begin() as conn:
        res = conn.execute(
            text("SELECT user_id FROM subscriptions WHERE stripe_customer_id = :cid LIMIT 1"),
            {"cid": customer_id},
        ).first()
        return res[0] if res and res[0] else None


def upsert_subscription(
    user_id: str,
    *,
    status: str,
    stripe_customer_id: str | None = None,
    stripe_subscription_id: str | None = None,
    price_id: str | None = None,
    current_period_start: dt.datetime | None = None,
    current_period_end: dt.datetime | None = None,
) -> None:
    """One row per user; absent values keep what is already stored."""
    if not user_id:
        return
    now = utc_now_iso()
    params = {
        "user_id": user_id,
        "cid": stripe_customer_id,
        "sid": stripe_subscription_id,
        "price_id": price_id,
        "status": status,
        "cps": _ts(current_period_start),
        "cpe": _ts(current_period_end),
        "now": now,
    }
    sql = (
        "INSERT INTO subscriptions (user_id, stripe_customer_id, stripe_subscription_id, price_id, "
        "status, current_period_start, current_period_end, created_at, updated_at) "
        "VALUES (:user_id, :cid, :sid, :price_id, :status, :cps, :cpe, :now, :now) "
        "ON CONFLICT (user_id) DO UPDATE SET "
        "stripe_customer_id = COALESCE(excluded.stripe_customer_id, subscriptions.stripe_customer_id), "
        "stripe_subscription_id = COALESCE(excluded.stripe_subscription_id, subscriptions.stripe_subscription_id), "
        "price_id = COALESCE(excluded.price_id, subscriptions.price_id), "
        "status = excluded.status, "
        "current_period_start = COALESCE(excluded.current_period_start, subscriptions.current_period_start), "
        "current_period_end = COALESCE(excluded.current_period_end, subscriptions.current_period_end), "
        "updated_at = excluded.updated_at"
    )
    with engine.begin() as conn:
        conn.execute(text(sql), params)


def update_subscription_by_customer(
    customer_id: str,
    *,
    status: str,
    stripe_subscription_id: str | None = None,
    price_id: str | None = None,
    current_period_start: dt.datetime | None = None,
    current_period_end: dt.datetime | None = None,
) -> int:
    if not customer_id:
        return 0
    sets = ["status = :status", "updated_at = :now"]
    params: dict[str, Any] = {"cid": customer_id, "status": status, "now": utc_now_iso()}
    optional = {
        "stripe_subscription_id": stripe_subscription_id,
        "price_id": price_id,
        "current_period_start": _ts(current_period_start),
        "current_period_end": _ts(current_period_end),
    }
    for col, val in optional.items():
        if val is not None:
            sets.append(f"{col} = :{col}")
            params[col] = val
    with engine.begin() as conn:
        res = conn.execute(
            text(f"UPDATE subscriptions SET {', '.join(sets)} WHERE stripe_customer_id = :cid"),
            params,
        )
    return res.rowcount or 0


def record_sale(
    user_id: str,
    amount: int,
    *,
    subscription_id: str | None = None,
    payment_intent_id: str | None = None,
    status: str = "completed",
) -> str:
    sale_id = new_id()
    with engine.begin() as conn:
        conn.execute(
            text(
                "INSERT INTO sales (id, user_id, subscription_id, stripe_payment_intent_id, "
                "amount, status, purchased_at) VALUES (:id, :uid, :sid, :pi, :amount, :status, :now)"
            ),
            {
                "id": sale_id,
                "uid": user_id,
                "sid": subscription_id,
                "pi": payment_intent_id,
                "amount": int(amount or 0),
                "status": status,
                "now": utc_now_iso(),
            },
        )
    return sale_id


def list_sales(user_id: str) -> list[dict[str, Any]]:
    with engine.begin() as conn:
        rows = conn.execute(
            text(
                "SELECT id, user_id, subscription_id, stripe_payment_intent_id, amount, status, "
                "purchased_at FROM sales WHERE user_id = :uid ORDER BY purchased_at DESC"
            ),
            {"uid": user_id},
        ).mappings().all()
    return [dict(r) for r in rows]
