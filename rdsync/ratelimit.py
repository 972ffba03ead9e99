from __future__ import annotations

import hashlib
import logging

import redis
from fastapi import HTTPException, Request

from rdsync.redis_client import redis_client

logger = logging.getLogger(__name__)

def _hash(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()[:24]

# fixed-window limiter using redis INCR + EXPIRE; the limit is read per
# request from the settings the app was built with
def rate_limit(name: str, limit_setting: str, window_seconds: int = 60):
    async def _dep(request: Request) -> None:
        settings = request.app.state.settings
        if not settings.rate_limit_enabled:
            return
        limit_per_window = getattr(settings, limit_setting)

        ip = (request.client.host if request.client else "unknown").strip()
        key = f"rl:{name}:{_hash(ip)}"

        try:
            pipe = redis_client.pipeline()
            pipe.incr(key)
            pipe.expire(key, window_seconds, nx=True)
            count, _ = pipe.execute()
        except redis.RedisError:
            # fail-open if redis is down
            logger.warning("rate limiter unavailable for %s", name)
            return

        if int(count) > int(limit_per_window):
            raise HTTPException(status_code=429, detail="rate_limited")

    return _dep
