import logging

from fastapi import APIRouter, Depends, HTTPException

from fanclub.core.auth import require_admin
from fanclub.core.responses import success_response
from fanclub.core.types import AdminUserUpdate
from fanclub.data import users

router = APIRouter(prefix="/api/admin")
log = logging.getLogger("fanclub.admin")


@router.get("/users")
def list_users(admin=Depends(require_admin)):
    return success_response(users.list_users())


@router.patch("/users/{user_id}")
def update_user(user_id: str, body: AdminUserUpdate, admin=Depends(require_admin)):
    if not users.get_user(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    row = users.update_user(user_id, plan=body.plan, role=body.role, status=body.status)
    log.info(
        "admin.update_user by=%s user=%s changes=%s",
        admin["user_id"], user_id, body.model_dump(exclude_none=True),
    )
    return success_response(row)
