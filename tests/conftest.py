"""
Shared fixtures.

The app reads its configuration from the environment at import time, so the
test database, JWT secret and Stripe settings are put in place before
anything from fanclub is imported.
"""

import hashlib
import hmac
import os
import tempfile
import time

import jwt
import pytest

JWT_SECRET = "test-supabase-jwt-secret-with-enough-length"
WEBHOOK_SECRET = "whsec_test_secret"

_TMP_DIR = tempfile.mkdtemp(prefix="fanclub-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/test.db"
os.environ["SUPABASE_JWT_SECRET"] = JWT_SECRET
os.environ["SUPABASE_JWT_JWKS_URL"] = ""
os.environ["SUPABASE_ISS"] = ""
os.environ["REDIS_URL"] = ""
os.environ["ENVIRONMENT"] = "test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = WEBHOOK_SECRET
os.environ["STRIPE_PRICE_ID_MONTHLY"] = "price_monthly_test"
os.environ["STRIPE_PRICE_ID_YEARLY"] = "price_yearly_test"
os.environ["PUBLIC_BASE_URL"] = "https://dashboard.example.com"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import text  # noqa: E402

from fanclub.data.schema import TABLES  # noqa: E402
from fanclub.data.users import ensure_user_row, update_user  # noqa: E402
from fanclub.db import engine  # noqa: E402
from fanclub.main import app  # noqa: E402
from fanclub.services import rate_limit  # noqa: E402


def make_token(user_id: str, email: str | None = None, name: str | None = None, **extra) -> str:
    claims = {"sub": user_id, "email": email or f"{user_id}@example.com", **extra}
    if name:
        claims["user_metadata"] = {"name": name}
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


def auth(user_id: str, **kwargs) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, **kwargs)}"}


def stripe_signature(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    ts = timestamp or int(time.time())
    digest = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


@pytest.fixture(autouse=True)
def clean_state():
    """Empty every table and the in-memory rate limiter between tests."""
    with engine.begin() as conn:
        for table in TABLES:
            conn.execute(text(f"DELETE FROM {table}"))
    rate_limit.reset()
    yield


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def admin_headers():
    ensure_user_row("admin-1", "admin@example.com", "Admin")
    update_user("admin-1", role="admin")
    return auth("admin-1", email="admin@example.com")


def sample_transactions():
    """Export rows using the Japanese headers."""
    return [
        {"日付": "2025-05-01 10:15:00", "金額": "1,000", "手数料": "100", "種類": "プラン購入", "対象": "Gold", "購入者": "alice"},
        {"日付": "2025-05-02 21:30:00", "金額": "¥3,000", "手数料": "300", "種類": "単品販売", "対象": "Photo set", "購入者": "bob"},
        {"日付": "2025-05-15 21:05:00", "金額": "2000", "手数料": "200", "種類": "プラン購入", "対象": "Gold", "購入者": "alice"},
        {"日付": "2025-05-20 08:00:00", "金額": "500", "手数料": "", "種類": "単品販売", "対象": "Voice", "購入者": ""},
    ]
