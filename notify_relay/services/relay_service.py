"""Relay service: the write and read paths of the notification relay.

Write path: consult the rate limiter for the token; when admitted, append the
message and report the remaining quota; when not, report when to retry.
Rate limit rejection is an ordinary outcome, returned as ``Rejected`` rather
than raised.

Read path: list the token's notifications. The limiter is not involved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from notify_relay.adapters.rate_limit.base import AbstractRateLimiter
from notify_relay.core.errors import invalid_argument
from notify_relay.core.logging import hash_token
from notify_relay.schemas.notification import Notification
from notify_relay.services.notification_store import NotificationStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Admitted:
    """The message was stored.

    Attributes:
        notification: The stored notification.
        limit: Max writes per window.
        remaining: Writes left in the current window.
        reset_at: UNIX epoch seconds when the window resets.
    """

    notification: Notification
    limit: int
    remaining: int
    reset_at: int


@dataclass(frozen=True)
class Rejected:
    """The token is over its limit; nothing was stored.

    Attributes:
        limit: Max writes per window.
        reset_at: UNIX epoch seconds when the window resets.
        retry_after_seconds: Seconds until a retry can succeed.
    """

    limit: int
    reset_at: int
    retry_after_seconds: int


PushOutcome = Union[Admitted, Rejected]


class RelayService:
    """Coordinates the rate limiter and the notification store."""

    def __init__(self, *, limiter: AbstractRateLimiter, notifications: NotificationStore) -> None:
        self._limiter = limiter
        self._notifications = notifications

    def push(self, token: str, message: str) -> PushOutcome:
        """Store ``message`` for ``token`` if the token is within its limit.

        The message is validated before the limiter runs, so a malformed
        request never consumes quota.

        Args:
            token: Bearer token the message is pushed against.
            message: Non-empty message text.

        Returns:
            Admitted with the stored notification, or Rejected.

        Raises:
            ValidationAppError: If token or message is empty.
            StoreUnavailableError: If the store fails.
        """
        if not token:
            raise invalid_argument("token", "token must be a non-empty string")
        if not message:
            raise invalid_argument("message", "message must be a non-empty string")

        token_hash = hash_token(token)
        result = self._limiter.consume(token)

        if not result.allowed:
            retry_after = result.retry_after_seconds or 0
            logger.warning(
                "rate_limit.exceeded",
                extra={
                    "token_hash": token_hash,
                    "limit": result.limit,
                    "remaining": result.remaining,
                    "retry_after_s": retry_after,
                },
            )
            return Rejected(
                limit=result.limit,
                reset_at=result.reset_at,
                retry_after_seconds=retry_after,
            )

        logger.info(
            "rate_limit.allowed",
            extra={
                "token_hash": token_hash,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        notification = self._notifications.append(token, message)
        return Admitted(
            notification=notification,
            limit=result.limit,
            remaining=result.remaining,
            reset_at=result.reset_at,
        )

    def notifications(self, token: str) -> list[Notification]:
        """Return the token's notifications, newest first."""
        return self._notifications.list(token)
