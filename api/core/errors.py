"""
Application error taxonomy.

Every error here carries the HTTP status and machine-readable code it is
rendered with (see the handlers registered in `api/main.py`).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


class AppError(Exception):
    status_code = 500
    code = "UNEXPECTED_ERROR"
    error = "INTERNAL_ERROR"
    default_message = "Unexpected error."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class UpstreamUnavailable(AppError):
    status_code = 502
    code = "BRASILAPI_UNAVAILABLE"
    default_message = "Failed to fetch the bank catalog from BrasilAPI."


class NotFoundInCatalog(AppError):
    status_code = 404
    code = "BANK_NOT_FOUND_IN_CATALOG"
    error = "NOT_FOUND"
    default_message = "Bank not found in catalog."


class CacheAccessError(AppError):
    status_code = 500
    code = "CACHE_ERROR"
    default_message = "Failed to access the bank catalog cache."


def error_body(
    *,
    status: int,
    code: str,
    error: str,
    message: str,
    path: str,
    field_errors: list[dict[str, str]] | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "status": status,
        "error": error,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": path,
        "code": code,
    }
    if field_errors:
        body["fieldErrors"] = field_errors
    return body
