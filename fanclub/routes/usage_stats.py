from typing import Optional

from fastapi import APIRouter, Depends, Query

from fanclub.core.auth import get_current_user, require_admin
from fanclub.core.responses import success_response
from fanclub.core.types import UsageCheckRequest
from fanclub.services.plans import check_plan_limits
from fanclub.services.usage import current_usage, usage_report

router = APIRouter(prefix="/api")


@router.get("/usage-stats")
def usage_stats(
    userId: Optional[str] = None,
    days: int = Query(30, ge=1, le=366),
    admin=Depends(require_admin),
):
    return success_response(usage_report(days, userId))


@router.post("/usage-stats")
def plan_check(body: UsageCheckRequest, user=Depends(get_current_user)):
    check = check_plan_limits(user["user_id"], body.dataSize)
    return success_response(
        {
            "allowed": check["allowed"],
            "reason": check.get("reason"),
            "currentUsage": current_usage(user["user_id"]),
        }
    )
