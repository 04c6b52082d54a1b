from typing import Any

from sqlalchemy import text

from fanclub.db import engine, is_postgres
from fanclub.data.common import utc_now_iso

USER_COLUMNS = (
    "id, email, name, role, plan, status, data_usage_bytes, api_calls_count, "
    "last_login_at, created_at"
)
UPDATABLE = ("name", "role", "plan", "status")


def ensure_user_row(user_id: str, email: str | None = None, name: str | None = None) -> None:
    """
    Best-effort upsert to ensure a users row exists. No-op on conflicts.
    """
    if not user_id:
        return
    params = {"id": user_id, "email": email, "name": name, "now": utc_now_iso()}
    sql_pg = (
        "INSERT INTO users (id, email, name, created_at) "
        "VALUES (:id, :email, :name, :now) "
        "ON CONFLICT (id) DO NOTHING"
    )
    sql_sqlite = (
        "INSERT OR IGNORE INTO users (id, email, name, created_at) "
        "VALUES (:id, :email, :name, :now)"
    )
    with engine.begin() as conn:
        conn.execute(text(sql_pg if is_postgres() else sql_sqlite), params)


def touch_last_login(user_id: str) -> None:
    with engine.begin() as conn:
        conn.execute(
            text("UPDATE users SET last_login_at = :now WHERE id = :uid"),
            {"uid": user_id, "now": utc_now_iso()},
        )


def get_user(user_id: str) -> dict[str, Any] | None:
    if not user_id:
        return None
    with engine.begin() as conn:
        row = conn.execute(
            text(f"SELECT {USER_COLUMNS} FROM users WHERE id = :uid LIMIT 1"),
            {"uid": user_id},
        ).mappings().first()
    return dict(row) if row else None


def list_users(created_since: str | None = None) -> list[dict[str, Any]]:
    sql = f"SELECT {USER_COLUMNS} FROM users"
    params: dict[str, Any] = {}
    if created_since:
        sql += " WHERE created_at >= :since"
        params["since"] = created_since
    sql += " ORDER BY created_at DESC"
    with engine.begin() as conn:
        rows = conn.execute(text(sql), params).mappings().all()
    return [dict(r) for r in rows]


def update_user(user_id: str, **fields: Any) -> dict[str, Any] | None:
    changes = {k: v for k, v in fields.items() if k in UPDATABLE and v is not None}
    if changes:
        assignments = ", ".join(f"{k} = :{k}" for k in changes)
        with engine.begin() as conn:
            conn.execute(
                text(f"UPDATE users SET {assignments} WHERE id = :uid"),
                {**changes, "uid": user_id},
            )
    return get_user(user_id)


def add_usage_counters(user_id: str, data_size: int) -> None:
    with engine.begin() as conn:
        conn.execute(
            text(
                "UPDATE users SET data_usage_bytes = data_usage_bytes + :size, "
                "api_calls_count = api_calls_count + 1 WHERE id = :uid"
            ),
            {"uid": user_id, "size": int(data_size or 0)},
        )
