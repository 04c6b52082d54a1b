import logging
import os
import time
from typing import Optional

from redis.asyncio import Redis

log = logging.getLogger("fanclub.rate_limit")

_redis: Optional[Redis] = None
# (scope, user) -> (count, bucket_ts)
_mem: dict[tuple[str, str], tuple[int, float]] = {}


def _redis_client() -> Optional[Redis]:
    global _redis
    if _redis is not None:
        return _redis
    url = os.getenv("REDIS_URL")
    if url:
        _redis = Redis.from_url(url, encoding="utf-8", decode_responses=True)
    return _redis


def _minute_bucket(ts: Optional[float] = None) -> int:
    return int((ts or time.time()) // 60)


async def allow_user(user_id: Optional[str], limit: int, scope: str = "api") -> bool:
    """Fixed one-minute window per (scope, user); the first `limit` calls pass."""
    if not user_id:
        return True
    limit = max(1, int(limit))
    key = f"fc:rl:{scope}:{user_id}:{_minute_bucket()}"
    r = _redis_client()
    if r is not None:
        try:
            val = await r.incr(key)
            if val == 1:
                await r.expire(key, 120)
            return val <= limit
        except Exception:
            log.warning("redis rate limit unavailable, using in-memory counter", exc_info=True)
    # Fallback in-memory counter (per-process only)
    now = time.time()
    count, bucket_ts = _mem.get((scope, user_id), (0, now))
    if _minute_bucket(bucket_ts) != _minute_bucket(now):
        count = 0
        bucket_ts = now
    count += 1
    _mem[(scope, user_id)] = (count, bucket_ts)
    return count <= limit


def reset() -> None:
    _mem.clear()
