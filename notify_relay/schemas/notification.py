"""Pydantic schemas for notifications and the push endpoint."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Notification(BaseModel):
    """A stored message. Immutable once written."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique identifier (UUID4).")
    message: str = Field(..., description="Message text as pushed by the client.")
    timestamp: str = Field(
        ...,
        description="Creation instant, ISO-8601 UTC with milliseconds (e.g. 2024-05-01T12:00:00.123Z).",
    )


class NotifyRequest(BaseModel):
    """Body of ``POST /api/v1/notify``.

    ``message`` is optional at the schema level so a missing or empty value
    gets the same plain 400 response instead of a 422 validation error.
    """

    message: str | None = Field(
        default=None,
        description="Text to store for the bearer token.",
    )
