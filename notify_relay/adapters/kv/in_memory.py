"""In-memory keyed store.

Notes:
- Per-process only: multiple workers each get their own store.
- Thread-safe: a single lock guards all entries, which also makes
  ``put_if`` atomic.
- Expiry is lazy: expired entries are dropped when touched or scanned.
- Keys are also kept in a sorted index, so a prefix scan only visits keys
  under that prefix.
"""

from __future__ import annotations

import bisect
import copy
import itertools
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from notify_relay.adapters.kv.base import (
    AbstractKeyValueStore,
    Key,
    KvEntry,
    validate_expire_in,
    validate_key,
)


@dataclass
class _Slot:
    value: dict[str, Any]
    versionstamp: str
    expires_at: float | None


class InMemoryKeyValueStore(AbstractKeyValueStore):
    """Dict-backed store honoring the full keyed-store contract.

    Values are deep-copied on the way in and out so callers can never mutate
    stored state by accident.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store.

        Args:
            clock: Time source returning UNIX time in seconds (used for expiry).
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._slots: dict[Key, _Slot] = {}
        self._index: list[Key] = []
        self._versions = itertools.count(1)

    def _next_versionstamp(self) -> str:
        # Zero-padded so versionstamps also compare correctly as strings
        return f"{next(self._versions):020d}"

    def _expires_at(self, expire_in: float | None) -> float | None:
        validate_expire_in(expire_in)
        return None if expire_in is None else self._clock() + expire_in

    def _live_slot_locked(self, key: Key) -> _Slot | None:
        slot = self._slots.get(key)
        if slot is None:
            return None
        if slot.expires_at is not None and self._clock() >= slot.expires_at:
            del self._slots[key]
            del self._index[bisect.bisect_left(self._index, key)]
            return None
        return slot

    def _write_locked(self, key: Key, value: dict[str, Any], expires_at: float | None) -> str:
        versionstamp = self._next_versionstamp()
        if key not in self._slots:
            bisect.insort(self._index, key)
        self._slots[key] = _Slot(
            value=copy.deepcopy(value),
            versionstamp=versionstamp,
            expires_at=expires_at,
        )
        return versionstamp

    def put(self, key: Key, value: dict[str, Any], *, expire_in: float | None = None) -> str:
        key = validate_key(key)
        with self._lock:
            return self._write_locked(key, value, self._expires_at(expire_in))

    def get(self, key: Key) -> KvEntry | None:
        key = validate_key(key)
        with self._lock:
            slot = self._live_slot_locked(key)
            if slot is None:
                return None
            return KvEntry(key=key, value=copy.deepcopy(slot.value), versionstamp=slot.versionstamp)

    def scan(self, prefix: Key) -> Iterator[KvEntry]:
        prefix = validate_key(prefix, allow_empty=True)
        depth = len(prefix)

        # Snapshot under the lock, then yield lazily without holding it
        with self._lock:
            # ("",) is the smallest possible next part, so this skips the prefix key itself
            start = bisect.bisect_left(self._index, prefix + ("",))
            end = start
            while end < len(self._index) and self._index[end][:depth] == prefix:
                end += 1
            candidates = self._index[start:end]

            matches = []
            for key in candidates:
                slot = self._live_slot_locked(key)
                if slot is not None:
                    matches.append(
                        KvEntry(
                            key=key,
                            value=copy.deepcopy(slot.value),
                            versionstamp=slot.versionstamp,
                        )
                    )

        yield from matches

    def put_if(
        self,
        key: Key,
        value: dict[str, Any],
        *,
        versionstamp: str | None,
        expire_in: float | None = None,
    ) -> str | None:
        key = validate_key(key)
        with self._lock:
            current = self._live_slot_locked(key)
            current_version = current.versionstamp if current is not None else None
            if current_version != versionstamp:
                return None
            return self._write_locked(key, value, self._expires_at(expire_in))

