from typing import Any

from sqlalchemy import text

from fanclub.db import engine
from fanclub.data.common import new_id, utc_now_iso

MODEL_COLUMNS = "id, user_id, name, display_name, description, status, created_at, updated_at"
UPDATABLE = ("name", "display_name", "description", "status")


def list_models(user_id: str) -> list[dict[str, Any]]:
    with engine.begin() as conn:
        rows = conn.execute(
            text(f"SELECT {MODEL_COLUMNS} FROM models WHERE user_id = :uid ORDER BY created_at ASC"),
            {"uid": user_id},
        ).mappings().all()
    return [dict(r) for r in rows]


def count_models(user_id: str) -> int:
    with engine.begin() as conn:
        n = conn.execute(
            text("SELECT COUNT(*) FROM models WHERE user_id = :uid"), {"uid": user_id}
        ).scalar()
    return int(n or 0)


def get_model(user_id: str, model_id: str) -> dict[str, Any] | None:
    with engine.begin() as conn:
        row = conn.execute(
            text(f"SELECT {MODEL_COLUMNS} FROM models WHERE id = :id AND user_id = :uid LIMIT 1"),
            {"id": model_id, "uid": user_id},
        ).mappings().first()
    return dict(row) if row else None


def create_model(
    user_id: str,
    name: str,
    display_name: str | None = None,
    description: str | None = None,
    model_id: str | None = None,
) -> dict[str, Any]:
    mid = model_id or new_id()
    now = utc_now_iso()
    with engine.begin() as conn:
        conn.execute(
            text(
                "INSERT INTO models (id, user_id, name, display_name, description, status, "
                "created_at, updated_at) VALUES (:id, :uid, :name, :display_name, :description, "
                "'active', :now, :now)"
            ),
            {
                "id": mid,
                "uid": user_id,
                "name": name,
                "display_name": display_name or name,
                "description": description,
                "now": now,
            },
        )
    return get_model(user_id, mid)


def update_model(user_id: str, model_id: str, **fields: Any) -> dict[str, Any] | None:
    changes = {k: v for k, v in fields.items() if k in UPDATABLE and v is not None}
    if changes:
        assignments = ", ".join(f"{k} = :{k}" for k in changes)
        with engine.begin() as conn:
            conn.execute(
                text(
                    f"UPDATE models SET {assignments}, updated_at = :now "
                    "WHERE id = :id AND user_id = :uid"
                ),
                {**changes, "now": utc_now_iso(), "id": model_id, "uid": user_id},
            )
    return get_model(user_id, model_id)


def delete_model(user_id: str, model_id: str) -> bool:
    """Removes the model and every monthly_data row stored under it."""
    with engine.begin() as conn:
        conn.execute(
            text("DELETE FROM monthly_data WHERE user_id = :uid AND model_id = :id"),
            {"uid": user_id, "id": model_id},
        )
        res = conn.execute(
            text("DELETE FROM models WHERE id = :id AND user_id = :uid"),
            {"uid": user_id, "id": model_id},
        )
    return bool(res.rowcount)
