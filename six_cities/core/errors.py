"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

Only referential validation failures cross the domain service boundary as
exceptions. Not-found is reported as ``None`` by services, and store outages
are absorbed by the cache service and the rate limiter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: float
    entity: str
    entity_id: str
    field: str
    setting: str
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

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input or referential validation fails."""


class ConfigurationAppError(AppError):
    """Raised at startup when settings are missing or invalid."""


class NotFoundAppError(AppError):
    """Raised by HTTP adapters when a looked-up entity does not exist."""
