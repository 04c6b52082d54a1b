import logging

from fastapi import APIRouter, Depends, HTTPException

from fanclub.core.auth import require_admin
from fanclub.core.responses import success_response
from fanclub.services.monitoring import REPORTS

router = APIRouter(prefix="/api")
log = logging.getLogger("fanclub.monitoring")


@router.get("/monitoring")
def monitoring(type: str = "overview", admin=Depends(require_admin)):
    report = REPORTS.get(type)
    if report is None:
        raise HTTPException(status_code=400, detail="Invalid type parameter")
    return success_response(report())
