import time
from collections import defaultdict
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import logging

from listeners_club.config import RATE_LIMIT_PER_MINUTE

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60

# Endpoints that should be exempt from rate limiting
RATE_LIMIT_EXEMPT_PATHS = {
    "/api/health",
}

class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP fixed-window rate limiting; a limit of 0 disables it"""

    def __init__(self, app, max_requests_per_minute: int = RATE_LIMIT_PER_MINUTE):
        super().__init__(app)
        self.max_requests = max_requests_per_minute
        # In-memory rate limiting storage, per process
        self.rate_limit_data = defaultdict(lambda: {"count": 0, "reset_time": time.time() + WINDOW_SECONDS})

    async def dispatch(self, request: Request, call_next):
        # Skip rate limiting for exempt paths
        if self.max_requests <= 0 or request.url.path in RATE_LIMIT_EXEMPT_PATHS:
            return await call_next(request)

        # Apply rate limiting
        try:
            self._check_rate_limit(request)
        except HTTPException as e:
            logger.warning(f"Rate limit exceeded for IP: {self._client_ip(request)}")
            return JSONResponse(
                status_code=e.status_code,
                content={"detail": e.detail}
            )

        # Continue with the request
        return await call_next(request)

    @staticmethod
    def _client_ip(request: Request) -> str:
        return request.client.host if request.client else "unknown"

    def _check_rate_limit(self, request: Request):
        """Check rate limit for the requesting IP"""
        now = time.time()
        record = self.rate_limit_data[self._client_ip(request)]

        # Reset counter if time window has passed
        if now > record["reset_time"]:
            record["count"] = 0
            record["reset_time"] = now + WINDOW_SECONDS

        # Check if rate limit is exceeded
        if record["count"] >= self.max_requests:
            raise HTTPException(
                status_code=429,
                detail="Rate limit exceeded. Try again later."
            )

        # Increment request count
        record["count"] += 1
