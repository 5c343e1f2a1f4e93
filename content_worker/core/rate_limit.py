import asyncio
import time
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from content_worker.core.errors import RateLimitExceededError
from content_worker.core.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitWindow:
    count: int
    reset_at_ms: float


class RateLimitStore(Protocol):
    async def increment(self, key: str, window_ms: int) -> RateLimitWindow:
        """Count one request for `key` and return the window it landed in."""
        ...


def _now_ms() -> float:
    return time.time() * 1000.0


class InMemoryRateLimitStore:
    """
    Process-local fixed-window counters.

    Created once at process start; expired windows of every key are dropped on each increment.
    """

    def __init__(self) -> None:
        self._windows: Dict[str, RateLimitWindow] = {}
        self._lock = asyncio.Lock()

    async def increment(self, key: str, window_ms: int) -> RateLimitWindow:
        async with self._lock:
            now = _now_ms()
            for stale in [k for k, w in self._windows.items() if w.reset_at_ms <= now]:
                del self._windows[stale]
            window = self._windows.get(key)
            if window is None:
                window = RateLimitWindow(count=0, reset_at_ms=now + window_ms)
            window = RateLimitWindow(count=window.count + 1, reset_at_ms=window.reset_at_ms)
            self._windows[key] = window
            return window

    def __len__(self) -> int:
        return len(self._windows)


class RedisRateLimitStore:
    """Fixed-window counters shared across worker instances (INCR + PEXPIRE)."""

    def __init__(self, redis_client, prefix: str = "ratelimit:") -> None:
        self.redis = redis_client
        self.prefix = prefix

    async def increment(self, key: str, window_ms: int) -> RateLimitWindow:
        redis_key = f"{self.prefix}{key}"
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.incr(redis_key)
            pipe.pexpire(redis_key, window_ms, nx=True)
            pipe.pttl(redis_key)
            count, _, ttl_ms = await pipe.execute()
        if ttl_ms is None or ttl_ms < 0:
            ttl_ms = window_ms
        return RateLimitWindow(count=int(count), reset_at_ms=_now_ms() + float(ttl_ms))


async def enforce_rate_limit(
    store: RateLimitStore,
    key: str,
    max_requests: int,
    window_ms: int,
) -> int:
    """
    Enforce a fixed-window limit for `key`.

    Returns the remaining request budget, or raises RateLimitExceededError
    carrying the time until the window resets.
    """
    if max_requests <= 0 or window_ms <= 0:
        raise ValueError("Invalid rate limit configuration")

    window = await store.increment(key, window_ms)
    if window.count > max_requests:
        retry_after_ms = window.reset_at_ms - _now_ms()
        logger.warning(f"[RateLimit] Limit hit for key={key} (count={window.count}, max={max_requests})")
        raise RateLimitExceededError(retry_after_ms)
    return max_requests - window.count


class AsyncRateLimiter:
    """
    Async Token Bucket Rate Limiter.
    Ensures that no more than `max_calls` occur within `period` seconds.

    Example:
        limiter = AsyncRateLimiter(max_calls=5, period=1)
        await limiter.acquire()  # blocks until allowed
    """

    def __init__(self, max_calls: int, period: float) -> None:
        self.max_calls = max_calls
        self.period = period
        self._tokens: float = float(max_calls)
        self._lock = asyncio.Lock()
        self._last_refill = time.monotonic()

    def _refill(self) -> None:
        """Refill tokens based on elapsed time."""
        now = time.monotonic()
        elapsed = now - self._last_refill
        if elapsed > 0:
            refill_amount = (elapsed / self.period) * self.max_calls
            self._tokens = min(self.max_calls, self._tokens + refill_amount)
            self._last_refill = now

    async def acquire(self) -> None:
        """Wait until a token is available."""
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return
                await asyncio.sleep(0.01)


def build_rate_limit_store(backend: str, redis_client: Optional[object] = None) -> RateLimitStore:
    if backend == "redis":
        if redis_client is None:
            raise RuntimeError("Redis rate limit backend requires a redis client")
        return RedisRateLimitStore(redis_client)
    return InMemoryRateLimitStore()
