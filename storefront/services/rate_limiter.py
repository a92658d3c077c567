"""
Fixed-window rate limiting for payment endpoints

InMemoryRateLimiter keeps counters in process memory and is only correct for a
single server instance. RedisRateLimiter shares counters across instances.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Tuple

import redis

from storefront.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float  # epoch seconds


class RateLimiter(Protocol):
    def check(self, identifier: str) -> RateLimitResult:
        ...


class InMemoryRateLimiter:
    """Per-process fixed-window counter

    Expired windows are swept at most once per window, so the map only holds
    identifiers seen in roughly the last two windows.
    """

    def __init__(self, max_requests: int, window_seconds: int, clock: Callable[[], float] = time.time):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def check(self, identifier: str) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep > self.window_seconds:
                self._sweep(now)

            tracker = self._windows.get(identifier)

            if tracker is None or now - tracker[1] > self.window_seconds:
                self._windows[identifier] = (1, now)
                return RateLimitResult(
                    allowed=True,
                    remaining=self.max_requests - 1,
                    reset_time=now + self.window_seconds
                )

            count, window_start = tracker
            reset_time = window_start + self.window_seconds

            if count >= self.max_requests:
                return RateLimitResult(allowed=False, remaining=0, reset_time=reset_time)

            count += 1
            self._windows[identifier] = (count, window_start)
            return RateLimitResult(
                allowed=True,
                remaining=self.max_requests - count,
                reset_time=reset_time
            )

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _sweep(self, now: float) -> None:
        expired = [
            identifier for identifier, (_, window_start) in self._windows.items()
            if now - window_start > self.window_seconds
        ]
        for identifier in expired:
            del self._windows[identifier]
        self._last_sweep = now
        if expired:
            logger.debug("Evicted %d expired rate limit windows", len(expired))


class RedisRateLimiter:
    """Fixed-window counter stored in Redis, shared by every instance"""

    def __init__(self, client: "redis.Redis", max_requests: int, window_seconds: int, prefix: str = "ratelimit"):
        self.client = client
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.prefix = prefix

    def check(self, identifier: str) -> RateLimitResult:
        """
        Count one request against the identifier's window

        Fails open when Redis is unreachable: the request is allowed with a
        full quota and the outage is logged.
        """
        key = f"{self.prefix}:{identifier}"
        window_ms = self.window_seconds * 1000

        try:
            pipe = self.client.pipeline()
            pipe.incr(key)
            pipe.pttl(key)
            count, ttl_ms = pipe.execute()

            if count == 1 or ttl_ms is None or ttl_ms < 0:
                self.client.pexpire(key, window_ms)
                ttl_ms = window_ms
        except redis.RedisError as e:
            logger.error("Rate limiter backend unavailable, allowing request: %s", e)
            return RateLimitResult(
                allowed=True,
                remaining=self.max_requests,
                reset_time=time.time() + self.window_seconds
            )

        reset_time = time.time() + ttl_ms / 1000
        if count > self.max_requests:
            return RateLimitResult(allowed=False, remaining=0, reset_time=reset_time)

        return RateLimitResult(
            allowed=True,
            remaining=self.max_requests - count,
            reset_time=reset_time
        )


def build_rate_limiter(settings: Settings, redis_client: Optional["redis.Redis"] = None) -> RateLimiter:
    """Pick the Redis-backed limiter when REDIS_URL is configured"""
    if redis_client is None and settings.REDIS_URL:
        redis_client = redis.Redis.from_url(settings.REDIS_URL)

    if redis_client is not None:
        logger.info("Rate limiter backend: redis")
        return RedisRateLimiter(
            redis_client,
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS
        )

    logger.info("Rate limiter backend: in-memory (single instance only)")
    return InMemoryRateLimiter(
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS
    )
