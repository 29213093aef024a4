"""Process-wide keyed store instance.

The store is created on first use and cached in-module so every request
shares it. If the store configuration changes (primarily in tests), the
previous store is closed and a new one is built.
"""

from __future__ import annotations

import logging

from notify_relay.adapters.kv.base import AbstractKeyValueStore
from notify_relay.adapters.kv.factory import create_kv_store
from notify_relay.core.config import settings

logger = logging.getLogger(__name__)


_store: AbstractKeyValueStore | None = None
_store_config: tuple[str, str, float] | None = None


def get_kv_store() -> AbstractKeyValueStore:
    """Return the shared keyed store for the current configuration."""

    global _store, _store_config

    config = (settings.store.backend, settings.store.url, settings.store.timeout_seconds)

    if _store is None or _store_config != config:
        if _store is not None:
            _store.close()
        _store = create_kv_store(settings.store)
        _store_config = config
        logger.info("kv.opened", extra={"backend": settings.store.backend})

    return _store


def reset_kv_store() -> None:
    """Close and forget the shared store; the next call builds a fresh one."""

    global _store, _store_config

    if _store is not None:
        _store.close()
    _store = None
    _store_config = None
