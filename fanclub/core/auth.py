# --- Supabase JWT verification (HS256 shared secret or RS256 via JWKS) ---
import logging
from typing import Any, Dict, Optional

from fastapi import Depends, Header, HTTPException
from jwt import (
    decode as jwt_decode,
    PyJWKClient,
    InvalidTokenError,
    get_unverified_header,
)

from fanclub.core.config import get_settings
from fanclub.data.users import ensure_user_row, get_user, touch_last_login

log = logging.getLogger("fanclub.auth")

_JWK_CLIENTS: Dict[str, PyJWKClient] = {}


def _jwk_client(url: str) -> PyJWKClient:
    if url not in _JWK_CLIENTS:
        _JWK_CLIENTS[url] = PyJWKClient(url)
    return _JWK_CLIENTS[url]


def verify_token(token: str) -> Dict[str, Any]:
    cfg = get_settings()
    try:
        header = get_unverified_header(token)
    except Exception as e:
        raise InvalidTokenError("Invalid JWT header") from e

    alg = header.get("alg")

    # RS256 via JWKS (newer Supabase projects)
    if alg == "RS256":
        if not cfg.SUPABASE_JWKS_URL:
            raise InvalidTokenError("JWKS client not configured")
        signing_key = _jwk_client(cfg.SUPABASE_JWKS_URL).get_signing_key_from_jwt(token).key
        claims = jwt_decode(token, signing_key, algorithms=["RS256"], options={"verify_aud": False})
    # HS256 via shared secret (many existing Supabase projects)
    elif alg == "HS256":
        if not cfg.SUPABASE_JWT_SECRET:
            raise InvalidTokenError("HS256 token but SUPABASE_JWT_SECRET not set")
        claims = jwt_decode(
            token, cfg.SUPABASE_JWT_SECRET, algorithms=["HS256"], options={"verify_aud": False}
        )
    else:
        raise InvalidTokenError(f"Unsupported alg: {alg}")

    if cfg.SUPABASE_ISS and claims.get("iss") != cfg.SUPABASE_ISS:
        raise InvalidTokenError("Invalid issuer")
    if not claims.get("sub"):
        raise InvalidTokenError("Token has no subject")
    return claims


def verify_bearer_token(authorization: Optional[str]) -> Dict[str, Any]:
    if not authorization or not authorization.startswith("Bearer "):
        raise InvalidTokenError("Missing bearer token")
    return verify_token(authorization.split(" ", 1)[1])


def identity_from_claims(claims: Dict[str, Any]) -> Dict[str, Any]:
    email = claims.get("email")
    meta = claims.get("user_metadata") or {}
    name = meta.get("name") or meta.get("full_name") or (email.split("@")[0] if email else None)
    return {"user_id": claims["sub"], "email": email, "name": name}


def get_current_user(authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    """Verified identity from the bearer token, or 401.

    Also makes sure a users row exists and stamps last_login_at (best-effort).
    """
    try:
        claims = verify_bearer_token(authorization)
    except Exception:
        # Catch all JWT-related errors (expired/invalid/missing/JWKS issues) as Unauthorized
        raise HTTPException(status_code=401, detail="Unauthorized")
    user = identity_from_claims(claims)
    try:
        ensure_user_row(user["user_id"], user["email"], user["name"])
        touch_last_login(user["user_id"])
    except Exception:
        log.exception("users row upsert failed user=%s", user["user_id"])
    return user


def require_admin(user=Depends(get_current_user)) -> Dict[str, Any]:
    row = get_user(user["user_id"])
    if not row or row.get("role") != "admin":
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user
