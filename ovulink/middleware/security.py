"""Response hardening for a JSON-only API serving health data.

Every response gets transport-security and content-sniffing headers; any
response under ``/api/`` is also marked uncacheable so cycle and semen
analysis data never lands in a shared cache.
"""

from __future__ import annotations

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}

NO_STORE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        headers = dict(SECURITY_HEADERS)
        if request.url.path.startswith("/api/"):
            headers.update(NO_STORE_HEADERS)
        for header, value in headers.items():
            response.headers.setdefault(header, value)
        return response
