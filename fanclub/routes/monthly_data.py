import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from fanclub.core.responses import success_response
from fanclub.core.types import MonthlyDataRequest, Transaction
from fanclub.data import models as models_data
from fanclub.data import monthly
from fanclub.routes.deps import plan_of, rate_limited, track_request
from fanclub.services.analytics import lightweight_analysis
from fanclub.services.csv_import import (
    CSVFormatError,
    decode_csv_bytes,
    is_valid_year_month,
    normalize_transactions,
    parse_csv_text,
    parse_year_month_from_filename,
)
from fanclub.services.plans import apply_retention, can_add_model, check_plan_limits

router = APIRouter(prefix="/api")
log = logging.getLogger("fanclub.monthly_data")


def _ensure_model(user_id: str, model_id: str, model_name: str, plan: str) -> None:
    """Register an unseen model id under the plan's model limit."""
    if models_data.get_model(user_id, model_id):
        return
    if not can_add_model(models_data.count_models(user_id), plan):
        raise HTTPException(status_code=403, detail="Model limit reached for your plan")
    models_data.create_model(user_id, model_name, model_id=model_id)


def _save(
    request: Request,
    user_id: str,
    model_id: str,
    model_name: str,
    year: int,
    month: int,
    records: List[Dict[str, Any]],
):
    transactions = [Transaction(**t).model_dump() for t in records]
    size = monthly.data_size_of(transactions)
    check = check_plan_limits(user_id, size)
    if not check["allowed"]:
        raise HTTPException(status_code=403, detail=check.get("reason") or "Plan limit exceeded")

    _ensure_model(user_id, model_id, model_name, plan_of(user_id))
    row = monthly.upsert_monthly_data(
        user_id, model_id, year, month, transactions, lightweight_analysis(transactions)
    )
    log.info(
        "monthly_data saved user=%s model=%s period=%04d-%02d rows=%d bytes=%d",
        user_id, model_id, year, month, len(transactions), size,
    )
    track_request(request, user_id)
    return success_response(row)


@router.post("/monthly-data")
def save_monthly_data(
    body: MonthlyDataRequest,
    request: Request,
    user=Depends(rate_limited("RL_SAVE_PER_MIN", "save")),
):
    return _save(
        request,
        user["user_id"],
        body.modelId,
        body.modelName,
        body.year,
        body.month,
        normalize_transactions(body.data),
    )


@router.post("/monthly-data/upload")
async def upload_monthly_csv(
    request: Request,
    file: UploadFile = File(...),
    modelId: str = Form(..., min_length=1),
    modelName: str = Form(..., min_length=1),
    year: Optional[int] = Form(None),
    month: Optional[int] = Form(None),
    user=Depends(rate_limited("RL_SAVE_PER_MIN", "save")),
):
    if year is None or month is None:
        parsed = parse_year_month_from_filename(file.filename or "")
        if not parsed:
            raise HTTPException(
                status_code=400, detail="Could not determine year/month from file name"
            )
        year, month = parsed
    if not is_valid_year_month(year, month):
        raise HTTPException(status_code=400, detail="Year/month out of accepted range")

    try:
        records = parse_csv_text(decode_csv_bytes(await file.read()))
    except CSVFormatError as e:
        raise HTTPException(status_code=400, detail=f"Invalid CSV: {e}")
    return _save(request, user["user_id"], modelId, modelName, year, month, records)


@router.get("/monthly-data")
def list_monthly_data(
    request: Request,
    modelId: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    user=Depends(rate_limited("RL_LIST_PER_MIN", "list")),
):
    user_id = user["user_id"]
    rows = apply_retention(monthly.list_monthly_data(user_id, modelId, year, month), plan_of(user_id))
    track_request(request, user_id)
    return success_response(rows)


@router.delete("/monthly-data")
def delete_monthly_data(
    request: Request,
    id: Optional[str] = None,
    user=Depends(rate_limited("RL_DELETE_PER_MIN", "delete")),
):
    if not id:
        raise HTTPException(status_code=400, detail="ID is required")
    deleted = monthly.delete_monthly_data(user["user_id"], id)
    log.info("monthly_data delete user=%s id=%s deleted=%s", user["user_id"], id, deleted)
    track_request(request, user["user_id"])
    return success_response({"deleted": True})
