import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Header, HTTPException

from fanclub.core.auth import get_current_user, identity_from_claims, verify_bearer_token, verify_token
from fanclub.core.responses import api_response
from fanclub.data.subscriptions import get_subscription, is_subscribed
from fanclub.data.users import get_user
from fanclub.services.plans import effective_plan, features_for

router = APIRouter(prefix="/api")
log = logging.getLogger("fanclub.auth")


@router.get("/auth/user")
async def auth_user(
    authorization: Optional[str] = Header(None),
    sb_access_token: Optional[str] = Cookie(None, alias="sb-access-token"),
):
    """Session identity from the bearer token, else the sb-access-token cookie."""
    claims = None
    try:
        if authorization:
            claims = verify_bearer_token(authorization)
        elif sb_access_token:
            claims = verify_token(sb_access_token)
    except Exception:
        claims = None
    if not claims:
        raise HTTPException(status_code=401, detail="Not authenticated")
    ident = identity_from_claims(claims)
    return api_response({"id": ident["user_id"], "email": ident["email"], "name": ident["name"]})


@router.get("/me")
def me(user=Depends(get_current_user)):
    user_id = user["user_id"]
    row = get_user(user_id) or {}

    # Compute real subscription status (fallback to False on any error)
    try:
        subscribed = is_subscribed(user_id)
        sub = get_subscription(user_id)
    except Exception:
        log.exception("/api/me subscription lookup failed user=%s", user_id)
        subscribed, sub = False, None
    plan = effective_plan(row) if row else "free"
    log.info("/api/me user=%s plan=%s subscribed=%s", user_id, plan, subscribed)

    return api_response(
        {
            "userId": user_id,
            "email": user["email"],
            "name": row.get("name") or user["name"],
            "role": row.get("role", "user"),
            "plan": plan,
            "features": features_for(plan),
            "subscribed": subscribed,
            "subscriptionStatus": (sub or {}).get("status"),
        }
    )
