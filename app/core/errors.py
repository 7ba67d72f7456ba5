"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context rendered next to the error code.

    Keys are merged into the top level of the error envelope, so they use
    the public (camelCase where historical) field names.
    """

    limit: int
    resetTime: str
    retryAfter: int
    suggestion: str
    getKey: str
    contact: str
    searched: str | None
    api_key_used: bool
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Short, stable error code shown to clients.
        message: Human-readable error message.
        details: Optional structured details merged into the response.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    status_code = 400

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class FormatAppError(AppError):
    """Raised when credential input is malformed, duplicated or conflicting."""


class AuthenticationAppError(AppError):
    """Raised when a presented API key is unknown or inactive."""

    status_code = 401


class QuotaExceededAppError(AppError):
    """Raised when an anonymous caller used up its window budget."""

    status_code = 429

    def __init__(
        self,
        code: str,
        message: str,
        details: ErrorDetails | None = None,
        *,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(code=code, message=message, details=details)
        self.headers = headers or {}


class NotFoundAppError(AppError):
    """Raised when no record matches the request."""

    status_code = 404


class BackendAppError(AppError):
    """Raised when the credential store or lookup backend fails."""

    status_code = 500


class QuotaBackendError(Exception):
    """Raised by quota stores when the backing service is unreachable."""


class CacheBackendError(Exception):
    """Raised by cache backends when the backing service is unreachable."""
