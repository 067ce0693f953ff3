"""
Response hardening headers.

  - the usual browser protections on every response
  - API responses are never cached (they carry per-tenant data and fresh keys)
  - interactive docs keep their own CSP so the UI assets can load
"""

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

DEFAULT_HEADERS = {
    "Content-Security-Policy": "default-src 'self'; frame-ancestors 'self'; object-src 'none'",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}

NO_STORE_HEADERS = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}

_DOCS_PATHS = ("/docs", "/redoc")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, api_prefix: str = "/api"):
        super().__init__(app)
        self.api_prefix = api_prefix.rstrip("/") + "/"

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        path = request.url.path

        for name, value in DEFAULT_HEADERS.items():
            if name == "Content-Security-Policy" and path.startswith(_DOCS_PATHS):
                continue
            response.headers.setdefault(name, value)

        if path.startswith(self.api_prefix):
            response.headers.update(NO_STORE_HEADERS)

        return response
