import csv
import io
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from fanclub.core.responses import NO_CACHE_HEADERS, success_response
from fanclub.data import models as models_data
from fanclub.data import monthly
from fanclub.routes.deps import plan_of, rate_limited, require_feature, track_request
from fanclub.services import analytics
from fanclub.services.plans import apply_retention

router = APIRouter(prefix="/api/analytics")
log = logging.getLogger("fanclub.analytics")

EXPORT_COLUMNS = ("model", "year", "month", "date", "amount", "fee", "type", "target", "buyer")


def _rows(user_id: str, model_id: Optional[str], year: Optional[int], month: Optional[int]) -> List[Dict[str, Any]]:
    rows = monthly.list_monthly_data(user_id, model_id, year, month, include_data=True)
    return apply_retention(rows, plan_of(user_id))


def _transactions(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # oldest period first
    out: List[Dict[str, Any]] = []
    for r in reversed(rows):
        out.extend(r.get("data") or [])
    return out


@router.get("/summary")
def summary(
    request: Request,
    modelId: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    user=Depends(rate_limited("RL_DEFAULT_PER_MIN", "analytics")),
):
    txs = _transactions(_rows(user["user_id"], modelId, year, month))
    track_request(request, user["user_id"])
    return success_response(analytics.analyze_fan_club_revenue(txs))


@router.get("/trends")
def trends(
    request: Request,
    modelId: Optional[str] = None,
    user=Depends(rate_limited("RL_DEFAULT_PER_MIN", "analytics")),
):
    rows = _rows(user["user_id"], modelId, None, None)
    track_request(request, user["user_id"])
    return success_response(analytics.build_monthly_trends(rows))


@router.get("/models")
def model_summaries(
    request: Request,
    user=Depends(rate_limited("RL_DEFAULT_PER_MIN", "analytics")),
):
    user_id = user["user_id"]
    result = analytics.summarize_models(models_data.list_models(user_id), _rows(user_id, None, None, None))
    track_request(request, user_id)
    return success_response(result)


@router.get("/customers")
def customers(
    request: Request,
    modelId: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    user=Depends(require_feature("advancedAnalytics")),
):
    txs = _transactions(_rows(user["user_id"], modelId, year, month))
    track_request(request, user["user_id"])
    return success_response(analytics.analyze_customers(txs))


@router.get("/calendar")
def calendar(
    request: Request,
    modelId: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    user=Depends(require_feature("advancedAnalytics")),
):
    txs = _transactions(_rows(user["user_id"], modelId, None, None))
    track_request(request, user["user_id"])
    return success_response(analytics.build_calendar(txs, year, month))


@router.get("/suggestions")
def suggestions(
    request: Request,
    modelId: Optional[str] = None,
    user=Depends(require_feature("aiSuggestions")),
):
    txs = _transactions(_rows(user["user_id"], modelId, None, None))
    analysis = analytics.analyze_fan_club_revenue(txs)
    track_request(request, user["user_id"])
    return success_response(analytics.generate_suggestions(analysis, txs))


@router.get("/export")
def export_csv(
    request: Request,
    modelId: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    user=Depends(require_feature("csvExport")),
):
    user_id = user["user_id"]
    names = {m["id"]: m.get("display_name") or m["name"] for m in models_data.list_models(user_id)}
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(EXPORT_COLUMNS)
    for row in reversed(_rows(user_id, modelId, year, month)):
        for t in row.get("data") or []:
            writer.writerow(
                [
                    names.get(row["model_id"], row["model_id"]),
                    row["year"],
                    row["month"],
                    t.get("date", ""),
                    t.get("amount", 0),
                    t.get("fee", 0),
                    t.get("type", ""),
                    t.get("target", ""),
                    t.get("buyer", ""),
                ]
            )
    track_request(request, user_id)
    log.info("analytics.export user=%s model=%s", user_id, modelId)
    return Response(
        # BOM so spreadsheet apps detect UTF-8
        content="\ufeff" + buf.getvalue(),
        media_type="text/csv; charset=utf-8",
        headers={**NO_CACHE_HEADERS, "Content-Disposition": 'attachment; filename="fanclub-export.csv"'},
    )
