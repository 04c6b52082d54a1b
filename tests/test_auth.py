"""
Authentication Tests

Supabase JWT verification, the session identity endpoint and /api/me.
"""

import datetime as dt
import time

import jwt
import pytest

from fanclub.core.auth import identity_from_claims, verify_token
from fanclub.data.subscriptions import upsert_subscription
from fanclub.data.users import get_user
from tests.conftest import JWT_SECRET, auth, make_token


class TestVerifyToken:
    """Token checks."""

    def test_valid_hs256(self):
        claims = verify_token(make_token("u1"))
        assert claims["sub"] == "u1"

    def test_wrong_secret(self):
        token = jwt.encode({"sub": "u1"}, "another-secret-of-adequate-length!!", algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)

    def test_expired(self):
        token = make_token("u1", exp=int(time.time()) - 60)
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)

    def test_missing_subject(self):
        token = jwt.encode({"email": "a@example.com"}, JWT_SECRET, algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)

    def test_rs256_without_jwks_rejected(self):
        with pytest.raises(jwt.InvalidTokenError):
            verify_token("eyJhbGciOiJSUzI1NiJ9.e30.c2ln")

    def test_issuer_checked(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_ISS", "https://project.supabase.co/auth/v1")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(make_token("u1", iss="https://elsewhere"))
        assert verify_token(make_token("u1", iss="https://project.supabase.co/auth/v1"))["sub"] == "u1"

    def test_identity_name_fallbacks(self):
        assert identity_from_claims({"sub": "u", "email": "hana@example.com"})["name"] == "hana"
        meta = {"sub": "u", "user_metadata": {"full_name": "Hana Sato"}}
        assert identity_from_claims(meta)["name"] == "Hana Sato"


class TestAuthUser:
    """GET /api/auth/user"""

    def test_bearer(self, client):
        response = client.get("/api/auth/user", headers=auth("u1", name="Hana"))
        assert response.status_code == 200
        assert response.json() == {"id": "u1", "email": "u1@example.com", "name": "Hana"}

    def test_cookie(self, client):
        response = client.get("/api/auth/user", headers={"Cookie": f"sb-access-token={make_token('u2')}"})
        assert response.status_code == 200
        assert response.json()["id"] == "u2"

    def test_not_authenticated(self, client):
        response = client.get("/api/auth/user")
        assert response.status_code == 401
        assert response.json() == {"error": "Not authenticated"}

    def test_garbage_token(self, client):
        response = client.get("/api/auth/user", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401


class TestMe:
    """GET /api/me"""

    def test_creates_user_row(self, client):
        response = client.get("/api/me", headers=auth("u1", name="Hana"))
        assert response.status_code == 200
        body = response.json()
        assert body["userId"] == "u1"
        assert body["plan"] == "free"
        assert body["features"]["maxModels"] == 1
        assert body["subscribed"] is False
        row = get_user("u1")
        assert row["name"] == "Hana"
        assert row["last_login_at"] is not None

    def test_subscribed_user_is_pro(self, client):
        client.get("/api/me", headers=auth("u1"))
        upsert_subscription(
            "u1",
            status="active",
            current_period_end=dt.datetime.now(dt.timezone.utc) + dt.timedelta(days=5),
        )
        body = client.get("/api/me", headers=auth("u1")).json()
        assert body["plan"] == "pro"
        assert body["subscribed"] is True
        assert body["subscriptionStatus"] == "active"
        assert body["features"]["csvExport"] is True

    def test_missing_token(self, client):
        response = client.get("/api/me")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
