"""Keyed store interfaces.

Services depend on this abstraction so the backing engine (in-process dict,
SQLite, or anything offering the same guarantees) can be swapped without
touching the rate limiter or the notification store.

Contract:
- Keys are non-empty tuples of strings and order as tuples.
- ``put``/``get`` are atomic per key; expired keys read as absent.
- ``scan`` yields entries strictly under a prefix, in key order.
- ``put_if`` is the compare-and-swap primitive: it writes only when the
  stored versionstamp still matches the one the caller read.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterator, Tuple

from notify_relay.core.errors import ValidationAppError

Key = Tuple[str, ...]

_FORBIDDEN_KEY_CHAR = "\x00"


@dataclass(frozen=True)
class KvEntry:
    """A stored value together with the version it was written at.

    Attributes:
        key: Full key of the entry.
        value: JSON-compatible mapping as written.
        versionstamp: Opaque version; changes on every write of the key.
    """

    key: Key
    value: dict[str, Any]
    versionstamp: str


def validate_key(key: Key, *, allow_empty: bool = False) -> Key:
    """Check a key (or prefix) and return it as a tuple.

    Args:
        key: Tuple of string parts.
        allow_empty: Accept the empty tuple (only meaningful for prefixes).

    Returns:
        The key as a tuple.

    Raises:
        ValidationAppError: If the key is empty or a part is not a NUL-free string.
    """
    key = tuple(key)
    if not key and not allow_empty:
        raise ValidationAppError(code="invalid_key", message="key must not be empty")
    for part in key:
        if not isinstance(part, str) or _FORBIDDEN_KEY_CHAR in part:
            raise ValidationAppError(
                code="invalid_key",
                message="key parts must be strings without NUL characters",
                details={"field": "key"},
            )
    return key


def validate_expire_in(expire_in: float | None) -> None:
    if expire_in is not None and expire_in <= 0:
        raise ValueError("expire_in must be > 0 seconds")


class AbstractKeyValueStore(ABC):
    """Interface for ordered keyed stores."""

    @abstractmethod
    def put(self, key: Key, value: dict[str, Any], *, expire_in: float | None = None) -> str:
        """Insert or replace the value at ``key``.

        Args:
            key: Entry key.
            value: JSON-compatible mapping.
            expire_in: Seconds after which the key disappears (None keeps it).

        Returns:
            The versionstamp of the write.

        Raises:
            StoreUnavailableError: If the backend cannot complete the write.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, key: Key) -> KvEntry | None:
        """Return the live entry at ``key`` or None.

        Raises:
            StoreUnavailableError: If the backend cannot be read.
        """
        raise NotImplementedError

    @abstractmethod
    def scan(self, prefix: Key) -> Iterator[KvEntry]:
        """Yield live entries whose key starts with ``prefix``, in key order.

        The prefix itself is never yielded, only keys strictly below it.

        Raises:
            StoreUnavailableError: If the backend cannot be read.
        """
        raise NotImplementedError

    @abstractmethod
    def put_if(
        self,
        key: Key,
        value: dict[str, Any],
        *,
        versionstamp: str | None,
        expire_in: float | None = None,
    ) -> str | None:
        """Write ``value`` only if the key is still at ``versionstamp``.

        Args:
            key: Entry key.
            value: JSON-compatible mapping.
            versionstamp: Version the caller read, or None to require that the
                key is absent (or expired).
            expire_in: Seconds after which the key disappears.

        Returns:
            The new versionstamp, or None when another writer got there first.

        Raises:
            StoreUnavailableError: If the backend cannot complete the write.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release backend resources. No-op by default."""
