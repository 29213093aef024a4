"""Notification persistence on top of the keyed store.

Each notification is written once under ``("notifications", token, id)`` and
never updated, so appends need no coordination. Listing is a prefix scan of
the token's keyspace followed by a newest-first sort on the timestamp string.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from notify_relay.adapters.kv.base import AbstractKeyValueStore, Key
from notify_relay.core.errors import invalid_argument
from notify_relay.core.logging import hash_token
from notify_relay.schemas.notification import Notification

logger = logging.getLogger(__name__)

KEY_SPACE = "notifications"


def format_timestamp(epoch_seconds: float) -> str:
    """Render UNIX time as ISO-8601 UTC with millisecond precision and ``Z``.

    Examples:
        >>> format_timestamp(0)
        '1970-01-01T00:00:00.000Z'
    """
    instant = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return instant.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class NotificationStore:
    """Appends and lists notifications for a token."""

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._store = store
        self._clock = clock
        self._id_factory = id_factory

    @staticmethod
    def token_prefix(token: str) -> Key:
        return (KEY_SPACE, token)

    def append(self, token: str, message: str) -> Notification:
        """Persist a new notification for ``token``.

        Args:
            token: Token the message belongs to.
            message: Non-empty message text.

        Returns:
            The stored notification.

        Raises:
            ValidationAppError: If token or message is empty.
            StoreUnavailableError: If the store rejects the write.
        """
        if not token:
            raise invalid_argument("token", "token must be a non-empty string")
        if not message:
            raise invalid_argument("message", "message must be a non-empty string")

        notification = Notification(
            id=self._id_factory(),
            message=message,
            timestamp=format_timestamp(self._clock()),
        )
        self._store.put(
            (*self.token_prefix(token), notification.id),
            notification.model_dump(),
        )

        logger.info(
            "notification.stored",
            extra={
                "token_hash": hash_token(token),
                "notification_id": notification.id,
                "message_chars": len(message),
            },
        )
        return notification

    def list(self, token: str) -> list[Notification]:
        """Return every notification for ``token``, most recent first.

        Ordering compares the ISO-8601 timestamp strings; the sort is stable,
        so notifications with equal timestamps keep the store's scan order.

        Raises:
            ValidationAppError: If token is empty.
            StoreUnavailableError: If the store cannot be scanned.
        """
        if not token:
            raise invalid_argument("token", "token must be a non-empty string")

        notifications = [
            Notification.model_validate(entry.value)
            for entry in self._store.scan(self.token_prefix(token))
        ]
        notifications.sort(key=lambda n: n.timestamp, reverse=True)
        return notifications
