from __future__ import annotations

"""
JSON exception handlers.

Every error leaves the API as `{"success": false, "message": ..., "code": ...,
"request_id": ...}`. Unexpected exceptions are logged with their traceback and
rendered as a generic 500; the exception text is only echoed outside
production. Tracebacks never reach clients.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from watchly.core.config import settings
from watchly.core.exceptions import AppException
from watchly.middleware.request_id import get_request_id

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return get_request_id(request) or "N/A"


def _error(request: Request, status_code: int, message: str, **extra) -> JSONResponse:
    body = {"success": False, "message": message, "code": status_code, "request_id": _request_id(request)}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:  # type: ignore
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_problem(request_id=_request_id(request)),
        headers=getattr(exc, "headers", None),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:  # type: ignore
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error(request, exc.status_code, detail)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # type: ignore
    return _error(
        request,
        status.HTTP_400_BAD_REQUEST,
        "Validation error",
        details=jsonable_errors(exc),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # type: ignore
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    extra = {} if settings.is_production else {"error": str(exc)}
    return _error(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred.", **extra)


def jsonable_errors(exc: RequestValidationError) -> list:
    """Pydantic error list without the raw `input`/`ctx` objects (may not be JSON-safe)."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, global_exception_handler)  # type: ignore[arg-type]


__all__ = [
    "app_exception_handler",
    "http_exception_handler",
    "validation_exception_handler",
    "global_exception_handler",
    "install_exception_handlers",
]
