# watchly/core/exceptions.py
from __future__ import annotations

"""
Watchly — Application Exceptions
================================
A small, consistent layer on top of FastAPI/Starlette's `HTTPException` that
lets us attach structured metadata and integrate cleanly with the JSON error
shape rendered by `watchly.core.exception_handlers`.

Key ideas
---------
- One base `AppException` that carries `message`, `code`, `details`.
- Domain exceptions inherit from it and set the status code.
- `to_problem()` renders the canonical `{success: false, message, ...}` body.

Usage
-----
    raise NotFoundException("Movie not found", details={"id": str(movie_id)})
"""

from typing import Any, Dict, Iterable, Optional

from fastapi import HTTPException, status

__all__ = [
    "AppException",
    "ValidationException",
    "InvalidFileTypeException",
    "PayloadTooLargeException",
    "TooManyFilesException",
    "RemoteUploadException",
    "NotFoundException",
    "DatabaseException",
    "StagingException",
]


# ──────────────────────────────────────────────────────────────
# 📦 Core: AppException
# ──────────────────────────────────────────────────────────────
class AppException(HTTPException):
    """Base application-level exception with optional metadata.

    Attributes
    -----------
    status_code : int
        HTTP status code.
    message : str
        Human-readable error message (also exposed as `detail`).
    code : int
        Optional typed error code. Defaults to `status_code`.
    details : Any
        Machine-readable details (allowed types, offending field, ids).
    """

    default_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An unexpected error occurred."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        code: Optional[int] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        status_code = int(status_code or self.default_status)
        message = message or self.default_message
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code: int = int(code or status_code)
        self.message: str = message
        self.details: Optional[Any] = details

    def __str__(self) -> str:
        return self.message

    def to_problem(self, *, request_id: Optional[str] = None) -> Dict[str, Any]:
        """Return the canonical error body used by the handlers."""
        body: Dict[str, Any] = {
            "success": False,
            "message": self.message,
            "code": self.code,
            "request_id": request_id or "N/A",
        }
        if self.details is not None:
            body["details"] = self.details
        return body


# ──────────────────────────────────────────────────────────────
# 📝 Request input / upload constraints (400)
# ──────────────────────────────────────────────────────────────
class ValidationException(AppException):
    """Missing or malformed request input."""

    default_status = status.HTTP_400_BAD_REQUEST
    default_message = "Validation error"


class InvalidFileTypeException(ValidationException):
    """Upload content type outside the allow-list for its field."""

    def __init__(
        self,
        field: str,
        content_type: Optional[str],
        allowed: Iterable[str],
        *,
        label: Optional[str] = None,
    ) -> None:
        allowed = list(allowed)
        super().__init__(
            f"Invalid {label or field} file type. Allowed types: {', '.join(allowed)}",
            details={"field": field, "content_type": content_type, "allowed": allowed},
        )


class PayloadTooLargeException(ValidationException):
    """A single uploaded file exceeds the configured size limit."""

    def __init__(self, max_bytes: int, field: Optional[str] = None) -> None:
        super().__init__(
            f"File too large. Maximum size is {_human_bytes(max_bytes)}.",
            details={"field": field, "max_bytes": max_bytes},
        )


class TooManyFilesException(ValidationException):
    """More files than allowed in one request."""

    def __init__(self, max_files: int) -> None:
        super().__init__(
            f"Too many files. Maximum {max_files} files allowed.",
            details={"max_files": max_files},
        )


# ──────────────────────────────────────────────────────────────
# 🔎 Lookup (404)
# ──────────────────────────────────────────────────────────────
class NotFoundException(AppException):
    default_status = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


# ──────────────────────────────────────────────────────────────
# 💥 Dependencies (500)
# ──────────────────────────────────────────────────────────────
class RemoteUploadException(AppException):
    """The media host rejected or failed an upload; its message is passed through."""

    def __init__(self, message: str, *, stage: Optional[str] = None) -> None:
        super().__init__(message, details={"stage": stage} if stage else None)
        self.stage = stage


class DatabaseException(AppException):
    default_message = "Database operation failed"


class StagingException(AppException):
    default_message = "No writable staging directory available"


def _human_bytes(n: int) -> str:
    for unit, size in (("GB", 1024 ** 3), ("MB", 1024 ** 2), ("KB", 1024)):
        if n >= size and n % size == 0:
            return f"{n // size}{unit}"
    return f"{n} bytes"
