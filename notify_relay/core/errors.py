"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

Rate limit rejections are deliberately absent here: they are returned as
values (see ``notify_relay.services.relay_service``), not raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    field: str
    backend: str
    retry_after: float
    attempts: int


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
    """Raised when input/config validation fails."""


class StoreUnavailableError(AppError):
    """Raised when the keyed store cannot complete an operation.

    Always transient from the caller's point of view: retrying later may
    succeed, and the HTTP layer answers 503 with ``Retry-After``. Nothing
    inside this service retries on its own.
    """


def invalid_argument(field: str, message: str) -> ValidationAppError:
    """Build the standard error for an empty or malformed argument."""
    return ValidationAppError(
        code="invalid_argument",
        message=message,
        details={"field": field},
    )
