"""Application-level exception types.

This module defines domain errors used across services and routes, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    field: str
    limiter: str
    limit: int
    retry_after: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    status_code = 400

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when credentials are missing or wrong."""

    status_code = 401


class AuthorizationAppError(AppError):
    """Raised when an admin API key is missing or invalid."""

    status_code = 403


class ConflictAppError(AppError):
    """Raised when a resource already exists."""

    status_code = 409


@dataclass
class RateLimitAppError(AppError):
    """Raised when a named limiter denies an attempt.

    Attributes:
        headers: Response headers (Retry-After, X-RateLimit-Limit).
    """

    headers: dict[str, str] = field(default_factory=dict)

    status_code = 429
