import asyncio
import os
import time
from collections import defaultdict, deque

# Routes that call the external text model get their own, stricter budget.
AI_ROUTE_PATHS = frozenset({"/api/chatbot/query", "/api/uploads/ai-receipt"})


class SimpleRateLimiter:
    """
    Sliding-window rate limiter keyed by client identifier (IP).

    Keeps per-key deques of recent request timestamps in process memory, so the
    limits apply per worker; a multi-host deployment needs a shared store.
    """

    def __init__(self, max_requests: int, window_seconds: int = 60, burst: int = 0):
        self._max_requests = max(1, max_requests)
        self._window_seconds = max(1, window_seconds)
        self._burst = max(0, burst)
        self._buckets: dict[str, deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()

    async def allow(self, client_id: str) -> tuple[bool, float]:
        """
        Returns (allowed, retry_after_seconds). When disallowed, retry_after_seconds
        represents how long the client should wait before retrying.
        """

        now = time.monotonic()
        async with self._lock:
            bucket = self._buckets[client_id]
            self._evict_old(bucket, now)

            limit = self._max_requests + self._burst
            if len(bucket) >= limit:
                retry_after = self._window_seconds - (now - bucket[0])
                return False, max(retry_after, 0.0)

            bucket.append(now)
            return True, 0.0

    def remaining(self, client_id: str) -> int:
        bucket = self._buckets.get(client_id)
        if not bucket:
            return self._max_requests + self._burst
        return max((self._max_requests + self._burst) - len(bucket), 0)

    def _evict_old(self, bucket: deque[float], now: float) -> None:
        threshold = now - self._window_seconds
        while bucket and bucket[0] <= threshold:
            bucket.popleft()


def build_default_rate_limiter() -> SimpleRateLimiter:
    per_minute = int(os.getenv("FINANCE_API_RATE_LIMIT_PER_MIN", "60"))
    burst = int(os.getenv("FINANCE_API_RATE_LIMIT_BURST", "20"))
    return SimpleRateLimiter(max_requests=per_minute, window_seconds=60, burst=burst)


def build_ai_rate_limiter() -> SimpleRateLimiter:
    per_minute = int(os.getenv("FINANCE_API_AI_RATE_LIMIT_PER_MIN", "10"))
    return SimpleRateLimiter(max_requests=per_minute, window_seconds=60)


def is_ai_route(path: str) -> bool:
    return path.rstrip("/") in AI_ROUTE_PATHS
