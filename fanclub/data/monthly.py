from typing import Any

from sqlalchemy import text

from fanclub.db import engine
from fanclub.data.common import dump_json, load_json, new_id, utc_now_iso

SUMMARY_COLUMNS = "id, model_id, year, month, analysis, data_size_bytes, created_at, updated_at"


def _decode(row) -> dict[str, Any]:
    out = dict(row)
    if "analysis" in out:
        out["analysis"] = load_json(out["analysis"], {})
    if "data" in out:
        out["data"] = load_json(out["data"], [])
    return out


def data_size_of(data: list[dict[str, Any]]) -> int:
    """Size of the stored payload: UTF-8 length of its compact JSON."""
    return len(dump_json(data).encode("utf-8"))


def upsert_monthly_data(
    user_id: str,
    model_id: str,
    year: int,
    month: int,
    data: list[dict[str, Any]],
    analysis: dict[str, Any],
) -> dict[str, Any]:
    """Insert or replace the (user, model, year, month) row; created_at survives re-uploads."""
    now = utc_now_iso()
    payload = dump_json(data)
    params = {
        "id": new_id(),
        "uid": user_id,
        "mid": model_id,
        "year": int(year),
        "month": int(month),
        "data": payload,
        "analysis": dump_json(analysis),
        "size": len(payload.encode("utf-8")),
        "now": now,
    }
    sql = (
        "INSERT INTO monthly_data (id, user_id, model_id, year, month, data, analysis, "
        "data_size_bytes, created_at, updated_at) "
        "VALUES (:id, :uid, :mid, :year, :month, :data, :analysis, :size, :now, :now) "
        "ON CONFLICT (user_id, model_id, year, month) DO UPDATE SET "
        "data = excluded.data, analysis = excluded.analysis, "
        "data_size_bytes = excluded.data_size_bytes, updated_at = excluded.updated_at"
    )
    with engine.begin() as conn:
        conn.execute(text(sql), params)
        row = conn.execute(
            text(
                f"SELECT {SUMMARY_COLUMNS}, user_id FROM monthly_data "
                "WHERE user_id = :uid AND model_id = :mid AND year = :year AND month = :month"
            ),
            params,
        ).mappings().first()
    return _decode(row)


def list_monthly_data(
    user_id: str,
    model_id: str | None = None,
    year: int | None = None,
    month: int | None = None,
    include_data: bool = False,
) -> list[dict[str, Any]]:
    """Caller's rows, newest period first."""
    cols = SUMMARY_COLUMNS + (", data" if include_data else "")
    sql = f"SELECT {cols} FROM monthly_data WHERE user_id = :uid"
    params: dict[str, Any] = {"uid": user_id}
    if model_id:
        sql += " AND model_id = :mid"
        params["mid"] = model_id
    if year is not None:
        sql += " AND year = :year"
        params["year"] = int(year)
    if month is not None:
        sql += " AND month = :month"
        params["month"] = int(month)
    sql += " ORDER BY year DESC, month DESC"
    with engine.begin() as conn:
        rows = conn.execute(text(sql), params).mappings().all()
    return [_decode(r) for r in rows]


def delete_monthly_data(user_id: str, row_id: str) -> bool:
    with engine.begin() as conn:
        res = conn.execute(
            text("DELETE FROM monthly_data WHERE id = :id AND user_id = :uid"),
            {"id": row_id, "uid": user_id},
        )
    return bool(res.rowcount)


def storage_since(created_since: str) -> dict[str, int]:
    with engine.begin() as conn:
        row = conn.execute(
            text(
                "SELECT COUNT(*), COALESCE(SUM(data_size_bytes), 0) FROM monthly_data "
                "WHERE created_at >= :since"
            ),
            {"since": created_since},
        ).first()
    return {"totalRecords": int(row[0] or 0), "totalSize": int(row[1] or 0)}
