"""
Rate limiting middleware for FastAPI.
Implements in-memory sliding-window rate limiting per client IP.
"""
from typing import Callable, Deque, Dict, Optional
from collections import defaultdict, deque
import logging
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


# Rate limit configuration: endpoint -> requests per window (per client IP)
RATE_LIMITS: Dict[str, int] = {
    "/api/estimate": 60,
    "/api/estimate/regions": 20,
    "/api/recommendations": 30,
    "/api/projections": 20,
    "/api/variants": 20,
    "/api/services/rank": 20,
    "/api/services/alternatives": 20,
    "/api/data-transfer": 60,
}

# Time window for rate limiting (seconds)
RATE_LIMIT_WINDOW = 60


class RateLimiter:
    """
    In-memory rate limiter using a sliding window.

    Keeps request times per client and endpoint, dropping the expired ones on
    each check so memory stays bounded by the active clients.
    """

    def __init__(self, window_seconds: float = RATE_LIMIT_WINDOW, clock: Callable[[], float] = time.monotonic):
        """
        Initialize rate limiter with empty storage.

        Args:
            window_seconds: Length of the sliding window
            clock: Monotonic time source in seconds
        """
        self.window_seconds = window_seconds
        self._clock = clock
        # Storage: (client_id, endpoint) -> request times, oldest first
        self._storage: Dict[tuple, Deque[float]] = defaultdict(deque)

    @staticmethod
    def client_id(request: Request) -> str:
        """
        Identify the client by IP address.

        The first X-Forwarded-For hop is used for proxied requests, otherwise
        the socket peer address.
        """
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return f"ip:{forwarded_for.split(',')[0].strip()}"
        return f"ip:{request.client.host if request.client else 'unknown'}"

    def _expire(self, key: tuple, now: float) -> Deque[float]:
        timestamps = self._storage[key]
        cutoff = now - self.window_seconds
        while timestamps and timestamps[0] <= cutoff:
            timestamps.popleft()
        return timestamps

    def is_allowed(self, client_id: str, endpoint: str, limit: int) -> bool:
        """
        Record a request if it fits under the limit.

        Args:
            client_id: Client identifier
            endpoint: Endpoint path
            limit: Maximum requests per window

        Returns:
            True if allowed, False if rate limited
        """
        key = (client_id, endpoint)
        now = self._clock()
        timestamps = self._expire(key, now)
        if len(timestamps) >= limit:
            return False
        timestamps.append(now)
        return True

    def get_remaining(self, client_id: str, endpoint: str, limit: int) -> int:
        key = (client_id, endpoint)
        timestamps = self._expire(key, self._clock())
        remaining = max(0, limit - len(timestamps))
        if not timestamps:
            del self._storage[key]
        return remaining


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies per-IP rate limits to configured endpoints.
    Other routes pass through untouched.
    """

    def __init__(
        self,
        app: ASGIApp,
        limits: Optional[Dict[str, int]] = None,
        limiter: Optional[RateLimiter] = None,
    ):
        super().__init__(app)
        self.limits = limits if limits is not None else RATE_LIMITS
        self.limiter = limiter or RateLimiter()

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        limit = self.limits.get(path)

        if limit is not None:
            client_id = self.limiter.client_id(request)
            if not self.limiter.is_allowed(client_id, path, limit):
                logger.info(f"Rate limit exceeded for endpoint {path} (limit: {limit}/min)")
                return JSONResponse(
                    status_code=429,
                    content={
                        "status": "error",
                        "error": "rate_limited",
                        "message": "Too many requests. Please try again later.",
                        "retry_after": int(self.limiter.window_seconds),
                    },
                    headers={"Retry-After": str(int(self.limiter.window_seconds))},
                )

        response = await call_next(request)
        if limit is not None:
            response.headers["X-RateLimit-Limit"] = str(limit)
            response.headers["X-RateLimit-Remaining"] = str(self.limiter.get_remaining(client_id, path, limit))
        return response
