"""Per-client rate limiting for the metric routes.

Uses a Redis sliding window when Redis is connected and an in-memory token
bucket otherwise. Limits are keyed by client IP and route group.
"""

import logging
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from fastapi import HTTPException, Request, status

from cellstatus.core.redis import get_redis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    """A request budget for one route group."""

    prefix: str
    limit: int
    window: int = 60


# Metric calculations are cheap; report and simulation payloads are not.
DEFAULT_LIMIT = RateLimit(prefix="metrics", limit=60)
STRICT_LIMIT = RateLimit(prefix="heavy", limit=10)


@dataclass
class _TokenBucket:
    """Token bucket refilled continuously at limit/window tokens per second."""

    tokens: float
    last_refill: float
    limit: int
    window: int

    def consume(self, now: float) -> tuple[bool, int]:
        """Try to consume a token. Returns (allowed, retry_after_seconds)."""
        refill_rate = self.limit / self.window
        self.tokens = min(self.limit, self.tokens + (now - self.last_refill) * refill_rate)
        self.last_refill = now

        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True, 0

        retry_after = max(1, int((1.0 - self.tokens) / refill_rate))
        return False, retry_after


@dataclass
class _InMemoryLimiter:
    """Thread-safe in-memory rate limiter using token buckets per client."""

    _buckets: dict[str, _TokenBucket] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def check(self, key: str, rule: RateLimit) -> tuple[bool, int]:
        now = time.time()
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket.limit != rule.limit or bucket.window != rule.window:
                bucket = _TokenBucket(
                    tokens=float(rule.limit), last_refill=now, limit=rule.limit, window=rule.window
                )
                self._buckets[key] = bucket
            return bucket.consume(now)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


_memory_limiter = _InMemoryLimiter()


def _get_client_ip(request: Request) -> str:
    """Extract the client IP, respecting X-Forwarded-For behind a reverse proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    client = request.client
    return client.host if client else "unknown"


def _too_many_requests(retry_after: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=f"Rate limit exceeded. Try again in {retry_after}s.",
        headers={"Retry-After": str(retry_after)},
    )


async def check_rate_limit(request: Request, rule: RateLimit) -> None:
    """Enforce ``rule`` for the calling client.

    Raises HTTP 429 with a Retry-After header when the budget is spent.
    """
    key = f"ratelimit:{rule.prefix}:{_get_client_ip(request)}"

    try:
        redis = get_redis()
    except RuntimeError:
        logger.debug("Redis unavailable, using in-memory rate limiter for %s", key)
        allowed, retry_after = _memory_limiter.check(key, rule)
        if not allowed:
            raise _too_many_requests(retry_after)
        return

    now = time.time()
    pipe = redis.pipeline()
    pipe.zremrangebyscore(key, 0, now - rule.window)
    pipe.zadd(key, {str(now): now})
    pipe.zcard(key)
    pipe.zrange(key, 0, 0, withscores=True)
    pipe.expire(key, rule.window)
    results = await pipe.execute()

    if results[2] > rule.limit:
        oldest_entries = results[3]
        if oldest_entries:
            retry_after = max(1, int(oldest_entries[0][1] + rule.window - now))
        else:
            retry_after = rule.window
        raise _too_many_requests(retry_after)


def rate_limiter(rule: RateLimit) -> Callable[[Request], Awaitable[None]]:
    """Build a FastAPI dependency enforcing ``rule``."""

    async def _dependency(request: Request) -> None:
        await check_rate_limit(request, rule)

    return _dependency


rate_limit_default = rate_limiter(DEFAULT_LIMIT)
rate_limit_strict = rate_limiter(STRICT_LIMIT)
