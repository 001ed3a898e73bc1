import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    started_at: float
    count: int = 0
    blocked_until: float = 0.0


class RateLimiter:
    """
    Fixed-window request counter keyed by client IP.

    Each key may spend ``points`` requests per ``window_seconds``. The request
    that exceeds the quota blocks the key for ``block_seconds``.

    Thread Safety:
        Single-process safe (in-memory, lock-guarded). Counters reset on
        restart.
    """

    def __init__(
        self,
        points: int = 10,
        window_seconds: float = 60.0,
        block_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.points = points
        self.window_seconds = window_seconds
        self.block_seconds = block_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def consume(self, key: str) -> Tuple[bool, int, float]:
        """
        Spend one point for ``key``.

        Returns:
            Tuple of (allowed: bool, remaining: int, retry_after_seconds: float)
        """
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            window = self._windows.get(key)
            if window is not None and window.blocked_until > now:
                return False, 0, window.blocked_until - now

            if window is None or now - window.started_at >= self.window_seconds:
                window = _Window(started_at=now)
                self._windows[key] = window

            window.count += 1
            if window.count > self.points:
                window_reset = window.started_at + self.window_seconds
                if self.block_seconds > 0:
                    window.blocked_until = max(now + self.block_seconds, window_reset)
                else:
                    window.blocked_until = window_reset
                return False, 0, window.blocked_until - now

            return True, self.points - window.count, 0.0

    def _sweep(self, now: float) -> None:
        """Drop keys whose window has lapsed and that are not blocked. Caller holds the lock."""
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.started_at >= self.window_seconds and window.blocked_until <= now
        ]
        for key in expired:
            del self._windows[key]
        self._last_sweep = now

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: RateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next):
        ip = request.client.host if request.client else "unknown"
        allowed, remaining, retry_after = self.limiter.consume(ip)
        if not allowed:
            retry_seconds = max(1, math.ceil(retry_after))
            logger.warning(f"[RATE] Rate limit exceeded for IP: {ip}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": "Too many requests", "retryAfter": retry_seconds},
                headers={"Retry-After": str(retry_seconds)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
