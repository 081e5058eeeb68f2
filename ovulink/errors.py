"""Error kinds and the exception hierarchy shared by the core and the API.

Every domain failure carries an ``ErrorKind``; the FastAPI handlers
registered by ``register_exception_handlers`` map the kind to an HTTP status
and render ``{"success": false, "error": {...}}``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("ovulink.errors")


class ErrorKind(str, Enum):
    validation_error = "validation_error"
    not_found = "not_found"
    unauthorized = "unauthorized"
    conflict = "conflict"
    internal_error = "internal_error"


_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.validation_error: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.not_found: status.HTTP_404_NOT_FOUND,
    ErrorKind.unauthorized: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.conflict: status.HTTP_409_CONFLICT,
    ErrorKind.internal_error: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class OvulinkError(Exception):
    """Base class for errors that carry an ``ErrorKind``."""

    kind: ErrorKind = ErrorKind.internal_error

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self.kind]

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.kind.value, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"success": False, "error": error}


class ValidationError(OvulinkError):
    """Input violates a domain invariant."""

    kind = ErrorKind.validation_error


class CycleValidationError(ValidationError):
    """A cycle record is malformed (e.g. ends before it starts).

    Attributes:
        record_id: Identifier of the offending cycle, when it has one.
    """

    def __init__(self, message: str, record_id: Any = None) -> None:
        details = {"record_id": str(record_id)} if record_id is not None else None
        super().__init__(message, details)
        self.record_id = record_id


class SpermTestValidationError(ValidationError):
    """A sperm test carries impossible measurements."""


class RecordNotFoundError(OvulinkError):
    kind = ErrorKind.not_found


class ConflictError(OvulinkError):
    kind = ErrorKind.conflict


# ---------------------------------------------------------------------------
# FastAPI integration
# ---------------------------------------------------------------------------


async def _ovulink_error_handler(request: Request, exc: OvulinkError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("[%s] %s >> %s", request.method, request.url.path, exc.message)
    else:
        logger.warning(
            "[%s] %s >> %d %s", request.method, request.url.path, exc.status_code, exc.message
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


_CODE_BY_STATUS: dict[int, str] = {code: kind.value for kind, code in _STATUS_BY_KIND.items()}


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    fallback = "bad_request" if exc.status_code < 500 else "internal_error"
    code = _CODE_BY_STATUS.get(exc.status_code, fallback)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": {"code": code, "message": str(exc.detail)}},
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render pydantic errors as one entry per offending field."""
    fields = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    logger.info("[%s] %s >> 422 %d invalid field(s)", request.method, request.url.path, len(fields))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": {
                "code": ErrorKind.validation_error.value,
                "message": "Request validation failed",
                "details": {"fields": fields},
            },
        },
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception on [%s] %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": {
                "code": ErrorKind.internal_error.value,
                "message": "An unexpected error occurred",
            },
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OvulinkError, _ovulink_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)
