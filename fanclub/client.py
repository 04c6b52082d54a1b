"""HTTP client for the dashboard API.

Wraps httpx with a short-lived response cache (monthly data 5 minutes,
usage 1 minute) and a per-minute request budget that is enforced before
anything is sent.
"""
import logging
import time
from pathlib import Path
from typing import Any, Optional

import httpx
from cachetools import TTLCache

log = logging.getLogger("fanclub.client")

MONTHLY_DATA_TTL_S = 300
USAGE_TTL_S = 60


class RateLimitExceeded(Exception):
    pass


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class DashboardClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        max_requests_per_minute: int = 100,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )
        self.max_requests_per_minute = max_requests_per_minute
        self._window = int(time.time() // 60)
        self._count = 0
        self._data_cache: TTLCache = TTLCache(maxsize=256, ttl=MONTHLY_DATA_TTL_S)
        self._usage_cache: TTLCache = TTLCache(maxsize=1, ttl=USAGE_TTL_S)

    def __enter__(self) -> "DashboardClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _consume_budget(self) -> None:
        window = int(time.time() // 60)
        if window != self._window:
            self._window, self._count = window, 0
        if self._count >= self.max_requests_per_minute:
            raise RateLimitExceeded("Client request budget exhausted for this minute")
        self._count += 1

    def request(self, method: str, path: str, **kwargs: Any) -> Any:
        self._consume_budget()
        resp = self._http.request(method, path, **kwargs)
        log.debug("%s %s -> %s", method, path, resp.status_code)
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if resp.status_code == 429:
            raise RateLimitExceeded((payload or {}).get("error", "Rate limit exceeded"))
        if resp.is_error:
            message = (payload or {}).get("error") if isinstance(payload, dict) else None
            raise ApiError(resp.status_code, message or resp.text)
        return payload

    @staticmethod
    def _monthly_key(model_id: Optional[str], year: Optional[int], month: Optional[int]) -> str:
        return f"monthly-data-{model_id}-{year}-{month}"

    def fetch_monthly_data(
        self,
        model_id: Optional[str] = None,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> Any:
        key = self._monthly_key(model_id, year, month)
        if key in self._data_cache:
            return self._data_cache[key]
        params = {k: v for k, v in (("modelId", model_id), ("year", year), ("month", month)) if v is not None}
        payload = self.request("GET", "/api/monthly-data", params=params)
        if isinstance(payload, dict) and payload.get("success"):
            self._data_cache[key] = payload
        return payload

    def save_monthly_data(
        self,
        model_id: str,
        model_name: str,
        year: int,
        month: int,
        data: list[dict[str, Any]],
    ) -> Any:
        payload = self.request(
            "POST",
            "/api/monthly-data",
            json={"modelId": model_id, "modelName": model_name, "year": year, "month": month, "data": data},
        )
        stale = (
            self._monthly_key(model_id, year, month),
            self._monthly_key(model_id, None, None),
            self._monthly_key(None, None, None),
        )
        for key in stale:
            self._data_cache.pop(key, None)
        return payload

    def upload_csv(
        self,
        path: str | Path,
        model_id: str,
        model_name: str,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> Any:
        path = Path(path)
        form = {"modelId": model_id, "modelName": model_name}
        if year is not None and month is not None:
            form.update(year=str(year), month=str(month))
        with path.open("rb") as fh:
            payload = self.request(
                "POST",
                "/api/monthly-data/upload",
                data=form,
                files={"file": (path.name, fh, "text/csv")},
            )
        self._data_cache.clear()
        return payload

    def delete_monthly_data(self, row_id: str) -> Any:
        payload = self.request("DELETE", "/api/monthly-data", params={"id": row_id})
        self._data_cache.clear()
        return payload

    def usage(self) -> Any:
        if "usage" in self._usage_cache:
            return self._usage_cache["usage"]
        payload = self.request("POST", "/api/usage-stats", json={"dataSize": 0})
        if isinstance(payload, dict) and payload.get("success"):
            self._usage_cache["usage"] = payload
        return payload
