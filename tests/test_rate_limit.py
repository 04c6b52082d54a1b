"""
Rate Limiter Tests

Fixed one-minute windows per (scope, user), and the 429 surfaced by the
routes once a window is used up.
"""

from unittest.mock import patch

import pytest

from fanclub.services import rate_limit
from tests.conftest import auth


class TestAllowUser:
    """In-memory limiter."""

    @pytest.mark.asyncio
    async def test_first_calls_pass_then_blocked(self):
        results = [await rate_limit.allow_user("u1", 3, "save") for _ in range(4)]
        assert results == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_scopes_and_users_are_independent(self):
        assert await rate_limit.allow_user("u1", 1, "save")
        assert await rate_limit.allow_user("u1", 1, "list")
        assert await rate_limit.allow_user("u2", 1, "save")
        assert not await rate_limit.allow_user("u1", 1, "save")

    @pytest.mark.asyncio
    async def test_new_minute_resets(self):
        with patch.object(rate_limit.time, "time", return_value=600.0):
            assert await rate_limit.allow_user("u1", 1)
            assert not await rate_limit.allow_user("u1", 1)
        with patch.object(rate_limit.time, "time", return_value=660.0):
            assert await rate_limit.allow_user("u1", 1)

    @pytest.mark.asyncio
    async def test_anonymous_not_limited(self):
        assert all([await rate_limit.allow_user(None, 1) for _ in range(3)])


class TestRouteLimits:
    """429 from the API."""

    def test_delete_limit(self, client, monkeypatch):
        monkeypatch.setenv("RL_DELETE_PER_MIN", "2")
        headers = auth("u1")
        codes = [client.delete("/api/monthly-data?id=x", headers=headers).status_code for _ in range(3)]
        assert codes == [200, 200, 429]
        response = client.delete("/api/monthly-data?id=x", headers=headers)
        assert response.json() == {"error": "Rate limit exceeded"}

    def test_other_scopes_unaffected(self, client, monkeypatch):
        monkeypatch.setenv("RL_DELETE_PER_MIN", "1")
        headers = auth("u1")
        client.delete("/api/monthly-data?id=x", headers=headers)
        assert client.delete("/api/monthly-data?id=x", headers=headers).status_code == 429
        assert client.get("/api/monthly-data", headers=headers).status_code == 200
