"""In-memory sliding-window rate limiter.

Keyed by the authenticated Firebase uid when the auth middleware has run,
otherwise by client IP (the public score calculator and health check).
Single-process only; a multi-instance deployment needs a shared backend.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ovulink.config import Settings, get_settings


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client sliding window rate limiter."""

    def __init__(
        self,
        app: Any,
        settings: Settings | None = None,
        window_seconds: float = 60.0,
    ) -> None:
        super().__init__(app)
        s = settings or get_settings()
        self._max_requests = s.rate_limit_per_minute
        self._window_seconds = window_seconds
        # client key -> request timestamps, oldest first
        self._requests: dict[str, deque[float]] = {}
        self._last_sweep = 0.0

    @staticmethod
    def _client_key(request: Request) -> str:
        auth = getattr(request.state, "auth", None)
        if auth is not None:
            return f"user:{auth.user_id}"
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return "ip:" + forwarded.split(",")[0].strip()
        return "ip:" + (request.client.host if request.client else "unknown")

    def _cleanup(self, key: str, now: float) -> deque[float]:
        cutoff = now - self._window_seconds
        stamps = self._requests.get(key, deque())
        while stamps and stamps[0] <= cutoff:
            stamps.popleft()
        if not stamps:
            self._requests.pop(key, None)
        return stamps

    def _sweep(self, now: float) -> None:
        """Drop clients with no requests left in the window, at most once per window."""
        if now - self._last_sweep < self._window_seconds:
            return
        self._last_sweep = now
        for key in list(self._requests):
            self._cleanup(key, now)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        key = self._client_key(request)
        now = time.monotonic()
        self._sweep(now)
        stamps = self._cleanup(key, now)

        if len(stamps) >= self._max_requests:
            retry_after = int(self._window_seconds - (now - stamps[0]))
            return Response(
                content='{"success":false,"error":{"code":"rate_limited","message":"Rate limit exceeded"}}',
                status_code=429,
                media_type="application/json",
                headers={"Retry-After": str(max(retry_after, 1))},
            )

        stamps.append(now)
        self._requests[key] = stamps

        response = await call_next(request)

        remaining = self._max_requests - len(stamps)
        response.headers["X-RateLimit-Limit"] = str(self._max_requests)
        response.headers["X-RateLimit-Remaining"] = str(max(remaining, 0))

        return response
