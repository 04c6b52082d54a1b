# fanclub/core/config.py
import os
import json
from dataclasses import dataclass, field
from typing import List
from dotenv import load_dotenv

# Load .env into process environment early
load_dotenv()


def _get(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    return v if v is not None else default


def _get_list(name: str, default_list: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default_list)
    s = raw.strip()
    # Try JSON first
    if s.startswith("[") and s.endswith("]"):
        try:
            parsed = json.loads(s)
            if isinstance(parsed, list):
                return [str(x) for x in parsed]
        except ValueError:
            pass
    # Fallback to CSV
    return [x.strip() for x in s.split(",") if x.strip()]


def _get_int(name: str, default: int) -> int:
    try:
        return int(float(_get(name, str(default)) or default))
    except ValueError:
        return default


def _get_flag(name: str, default: str = "0") -> bool:
    return (_get(name, default) or default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: List[str] = field(default_factory=lambda: ["*"])
    # Origins allowed to call /api/ in production (empty = no origin check)
    ALLOWED_ORIGINS: List[str] = field(default_factory=list)
    ENABLE_SWAGGER: bool = False
    # Supabase Auth
    SUPABASE_JWT_SECRET: str | None = None
    SUPABASE_JWKS_URL: str | None = None
    SUPABASE_ISS: str | None = None
    # Stripe (server-side)
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_PRICE_ID_MONTHLY: str | None = None
    STRIPE_PRICE_ID_YEARLY: str | None = None
    STRIPE_PORTAL_CONFIGURATION_ID: str | None = None
    PUBLIC_BASE_URL: str | None = None
    # Per-user requests per minute
    RL_SAVE_PER_MIN: int = 50
    RL_LIST_PER_MIN: int = 100
    RL_DELETE_PER_MIN: int = 20
    RL_DEFAULT_PER_MIN: int = 60

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


def get_settings() -> Settings:
    return Settings(
        ENVIRONMENT=(_get("ENVIRONMENT", "development") or "development").strip(),
        CORS_ORIGINS=_get_list("CORS_ORIGINS", ["*"]),
        ALLOWED_ORIGINS=_get_list("ALLOWED_ORIGINS", []),
        ENABLE_SWAGGER=_get_flag("ENABLE_SWAGGER"),
        SUPABASE_JWT_SECRET=_get("SUPABASE_JWT_SECRET"),
        SUPABASE_JWKS_URL=_get("SUPABASE_JWT_JWKS_URL"),
        SUPABASE_ISS=_get("SUPABASE_ISS") or _get("SUPABASE_JWT_ISSUER"),
        STRIPE_SECRET_KEY=_get("STRIPE_SECRET_KEY"),
        STRIPE_WEBHOOK_SECRET=_get("STRIPE_WEBHOOK_SECRET"),
        STRIPE_PRICE_ID_MONTHLY=_get("STRIPE_PRICE_ID_MONTHLY"),
        STRIPE_PRICE_ID_YEARLY=_get("STRIPE_PRICE_ID_YEARLY"),
        STRIPE_PORTAL_CONFIGURATION_ID=_get("STRIPE_PORTAL_CONFIGURATION_ID"),
        PUBLIC_BASE_URL=(_get("PUBLIC_BASE_URL") or "").rstrip("/") or None,
        RL_SAVE_PER_MIN=_get_int("RL_SAVE_PER_MIN", 50),
        RL_LIST_PER_MIN=_get_int("RL_LIST_PER_MIN", 100),
        RL_DELETE_PER_MIN=_get_int("RL_DELETE_PER_MIN", 20),
        RL_DEFAULT_PER_MIN=_get_int("RL_DEFAULT_PER_MIN", 60),
    )
