from typing import Any, Dict

from fastapi import Depends, HTTPException, Request

from fanclub.core.auth import get_current_user
from fanclub.core.config import get_settings
from fanclub.data.users import get_user
from fanclub.services.plans import effective_plan, has_feature
from fanclub.services.rate_limit import allow_user
from fanclub.services.usage import track_usage


def rate_limited(setting: str, scope: str):
    """Authenticated user, limited to Settings.<setting> requests per minute."""

    async def _dep(user=Depends(get_current_user)) -> Dict[str, Any]:
        limit = getattr(get_settings(), setting)
        if not await allow_user(user["user_id"], limit, scope):
            raise HTTPException(status_code=429, detail="Rate limit exceeded")
        return user

    return _dep


def plan_of(user_id: str) -> str:
    return effective_plan(get_user(user_id))


def require_feature(feature: str):
    def _dep(user=Depends(rate_limited("RL_DEFAULT_PER_MIN", "analytics"))) -> Dict[str, Any]:
        if not has_feature(plan_of(user["user_id"]), feature):
            raise HTTPException(status_code=403, detail="This feature requires the pro plan")
        return user

    return _dep


def track_request(request: Request, user_id: str) -> None:
    raw = request.headers.get("content-length")
    try:
        size = int(raw) if raw else 0
    except ValueError:
        size = 0
    track_usage(user_id, size)
