"""Firebase ID token verification middleware for FastAPI.

Validates the Bearer token on every request (except public routes) against
Google's published signing keys, checks audience and issuer for the
configured Firebase project, and sets ``request.state.auth`` with the
authenticated user context that route handlers consume via
``get_current_user``.
"""

from __future__ import annotations

import logging
from typing import Any

import jwt as pyjwt
from fastapi import Request, Response
from jwt import PyJWKClient
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ovulink.config import Settings, get_settings
from ovulink.dependencies import AuthContext

logger = logging.getLogger("ovulink.auth")

# Paths that do not require authentication
PUBLIC_PATHS: set[str] = {
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/api/v1/male-health/calculate-score",
}


def _is_public(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith("/docs") or path.startswith("/redoc")


def _unauthorized(message: str) -> Response:
    return Response(
        content=f'{{"success":false,"error":{{"code":"unauthorized","message":"{message}"}}}}',
        status_code=401,
        media_type="application/json",
    )


class FirebaseAuthMiddleware(BaseHTTPMiddleware):
    """Verify Firebase-issued JWTs and populate request.state.auth."""

    def __init__(
        self,
        app: Any,
        settings: Settings | None = None,
        jwks_client: PyJWKClient | None = None,
    ) -> None:
        super().__init__(app)
        self._settings = settings or get_settings()
        self._jwks_client = jwks_client or PyJWKClient(
            self._settings.firebase_jwks_url,
            cache_keys=True,
            lifespan=3600,
        )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if _is_public(request.url.path):
            return await call_next(request)

        # OPTIONS requests pass through (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return _unauthorized("Missing or invalid Authorization header")

        token = auth_header.removeprefix("Bearer ").strip()

        try:
            # Key fetches are blocking HTTP calls when the cache is cold
            signing_key = await run_in_threadpool(
                self._jwks_client.get_signing_key_from_jwt, token
            )
            payload = pyjwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self._settings.firebase_project_id,
                issuer=self._settings.firebase_issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except pyjwt.ExpiredSignatureError:
            return _unauthorized("Token expired")
        except pyjwt.PyJWTError as exc:
            logger.warning("JWT validation failed: %s", exc)
            return _unauthorized("Invalid token")

        uid: str = payload.get("sub", "")
        if not uid:
            return _unauthorized("Invalid token")

        request.state.auth = AuthContext(
            user_id=uid,
            email=payload.get("email"),
            email_verified=bool(payload.get("email_verified", False)),
        )

        return await call_next(request)
