"""
Rate Limiter
------------
Fixed-window request counter keyed by (identity, endpoint, window start).

The window start is floor(now / window) * window, so windows are predictable
and a burst across a boundary is possible. The counter increment and the
count read are one atomic operation in the store; the limiter itself holds
no shared state.

Fails open: if the counter store errors, the request is allowed with
remaining=0 and the failure is logged.
"""
import asyncio
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Protocol

import redis.asyncio as redis

from mealplanner.config import RATE_LIMIT_MAX_REQUESTS, RATE_LIMIT_WINDOW_MINUTES, REDIS_URL

logger = logging.getLogger(__name__)

GENERATE_ENDPOINT = "generate-meal-plan"


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int
    window_minutes: int

    @property
    def window_ms(self) -> int:
        return self.window_minutes * 60 * 1000


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: datetime

    def retry_after(self, now: Optional[datetime] = None) -> int:
        """Whole seconds until the window resets (never negative)."""
        now = now or datetime.now(timezone.utc)
        return max(0, math.ceil((self.reset_at - now).total_seconds()))


DEFAULT_LIMITS: Dict[str, RateLimitConfig] = {
    GENERATE_ENDPOINT: RateLimitConfig(max_requests=RATE_LIMIT_MAX_REQUESTS, window_minutes=RATE_LIMIT_WINDOW_MINUTES),
}


class CounterStore(Protocol):
    async def incr(self, key: str, ttl_seconds: int) -> int:
        """Atomically increment key and return the new count; key expires after ttl_seconds."""
        ...


class RedisCounterStore:
    def __init__(self, client: Optional[redis.Redis] = None, url: str = REDIS_URL):
        self.client = client or redis.from_url(url)

    async def incr(self, key: str, ttl_seconds: int) -> int:
        # MULTI/EXEC so the INCR and the EXPIRE land together
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, ttl_seconds)
            count, _ = await pipe.execute()
        return int(count)

    async def close(self):
        await self.client.aclose()


class InMemoryCounterStore:
    """Process-local store for tests and single-worker development."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._counts: Dict[str, int] = {}
        self._expires: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    async def incr(self, key: str, ttl_seconds: int) -> int:
        async with self._lock:
            now = self.clock()
            self._evict_expired(now)
            count = self._counts.get(key, 0) + 1
            self._counts[key] = count
            self._expires.setdefault(key, now + ttl_seconds)
            return count

    def _evict_expired(self, now: float):
        for key in [k for k, expires in self._expires.items() if expires <= now]:
            self._counts.pop(key, None)
            self._expires.pop(key, None)


def window_start_ms(now_ms: int, window_ms: int) -> int:
    return (now_ms // window_ms) * window_ms


class RateLimiter:
    def __init__(
        self,
        store: CounterStore,
        limits: Optional[Dict[str, RateLimitConfig]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.limits = DEFAULT_LIMITS if limits is None else limits
        self.clock = clock

    async def check_limit(self, identity: str, endpoint: str) -> RateLimitResult:
        now_ms = int(self.clock() * 1000)
        config = self.limits.get(endpoint)
        if config is None:
            return RateLimitResult(allowed=True, remaining=999, reset_at=_from_ms(now_ms))

        start_ms = window_start_ms(now_ms, config.window_ms)
        reset_at = _from_ms(start_ms + config.window_ms)
        key = f"ratelimit:{endpoint}:{identity}:{start_ms}"
        # Outlives the window by a minute
        ttl_seconds = math.ceil(config.window_ms / 1000) + 60

        try:
            count = await self.store.incr(key, ttl_seconds)
        except Exception as e:
            logger.error(f"[RateLimit] Counter store failed for {endpoint}/{identity}, failing open: {e}")
            return RateLimitResult(allowed=True, remaining=0, reset_at=reset_at)

        remaining = max(0, config.max_requests - count)
        allowed = count <= config.max_requests
        if not allowed:
            logger.info(f"[RateLimit] {identity} exceeded {endpoint}: {count}/{config.max_requests}")
        return RateLimitResult(allowed=allowed, remaining=remaining, reset_at=reset_at)


def _from_ms(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
