# This module limits how many chat requests one client may make per time window, using Redis.
# Date: 2025-06-14
# Version: 0.1.0

import time
from functools import lru_cache
from typing import Optional

from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from toolstream.core.config import get_settings
from toolstream.utils.logger import console


class RateLimiter:
    """
    Fixed-window counter: one Redis key per client and window, incremented on
    every request and expiring with the window.
    """
    def __init__(self, redis_client: Redis, limit: int, window_seconds: int, prefix: str = "toolstream:ratelimit"):
        self._redis_client = redis_client
        self._limit = limit
        self._window_seconds = window_seconds
        self._prefix = prefix

    def _key(self, identifier: str, now: Optional[float] = None) -> str:
        window = int((now if now is not None else time.time()) // self._window_seconds)
        return f"{self._prefix}:{identifier}:{window}"

    async def hit(self, identifier: str) -> bool:
        """
        Counts one request for `identifier`. Returns True while the client is
        within its allowance. If Redis is unreachable the request is allowed.
        """
        key = self._key(identifier)
        try:
            count = await self._redis_client.incr(key)
            if count == 1:
                await self._redis_client.expire(key, self._window_seconds)
        except RedisError as e:
            console.error(f"Rate limiter unavailable, allowing request from '{identifier}': {e}")
            return True

        if count > self._limit:
            console.warning(f"Rate limit exceeded for '{identifier}' ({count}/{self._limit}).")
            return False
        return True


@lru_cache
def get_rate_limiter() -> Optional[RateLimiter]:
    settings = get_settings()
    if not settings.RATE_LIMIT_ENABLED:
        return None
    client = from_url(settings.REDIS_URL, decode_responses=True)
    console.info("Async Redis client for rate limiting initialized.")
    return RateLimiter(client, settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)
