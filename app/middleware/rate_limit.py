"""
Global rate limiter — sliding window per client IP.

Limits:
  - Every request, every route: max_requests per window_seconds per IP
    (defaults 100 per 15 min, EAE_RATE_LIMIT_*)

Over the limit the request never reaches a handler; the caller gets a 429
in the standard error envelope with Retry-After and RateLimit-* headers.
"""

import time

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.errors import TooManyRequests, error_body

import structlog

logger = structlog.get_logger()

_PRIVATE_PREFIXES = (
    "10.", "172.16.", "172.17.", "172.18.", "172.19.",
    "172.20.", "172.21.", "172.22.", "172.23.", "172.24.",
    "172.25.", "172.26.", "172.27.", "172.28.", "172.29.",
    "172.30.", "172.31.", "192.168.", "127.", "::1",
)

_CLEANUP_THRESHOLD = 10000


def get_client_ip(request: Request) -> str:
    """Extract real client IP from x-forwarded-for or request."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ips = [ip.strip() for ip in forwarded.split(",")]
        for ip in ips:
            if ip and not ip.startswith(_PRIVATE_PREFIXES):
                return ip
        return ips[0]
    return request.client.host if request.client else "unknown"


class SlidingWindow:
    """In-process hit log: key → timestamps inside the current window."""

    def __init__(self, limit: int, window_seconds: int):
        self.limit = limit
        self.window_seconds = window_seconds
        self._hits: dict[str, list[float]] = {}

    def check(self, key: str, now: float | None = None) -> tuple[bool, int]:
        now = time.time() if now is None else now
        cutoff = now - self.window_seconds

        hits = [t for t in self._hits.get(key, []) if t > cutoff]
        if len(hits) >= self.limit:
            self._hits[key] = hits
            return False, 0

        hits.append(now)
        self._hits[key] = hits

        # Periodic cleanup
        if len(self._hits) > _CLEANUP_THRESHOLD:
            self._hits = {k: v for k, v in self._hits.items() if v and v[-1] > cutoff}

        return True, self.limit - len(hits)


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_requests: int = 100, window_seconds: int = 900):
        super().__init__(app)
        self.window = SlidingWindow(max_requests, window_seconds)

    async def dispatch(self, request: Request, call_next):
        ip = get_client_ip(request)
        allowed, remaining = self.window.check(f"ip:{ip}")
        limit_headers = {
            "RateLimit-Limit": str(self.window.limit),
            "RateLimit-Remaining": str(remaining),
        }

        if not allowed:
            logger.info("rate_limited", ip=ip, path=request.url.path)
            return JSONResponse(
                status_code=TooManyRequests.status_code,
                content=error_body(TooManyRequests.error, "Rate limit exceeded. Please try again later."),
                headers={"Retry-After": str(self.window.window_seconds), **limit_headers},
            )

        response = await call_next(request)
        response.headers.update(limit_headers)
        return response
