"""Factory for keyed store instances."""

from notify_relay.adapters.kv.base import AbstractKeyValueStore
from notify_relay.adapters.kv.in_memory import InMemoryKeyValueStore
from notify_relay.adapters.kv.sqlite import SqliteKeyValueStore
from notify_relay.core.config import StoreSettings, settings
from notify_relay.core.errors import ValidationAppError


def create_kv_store(store_settings: StoreSettings | None = None) -> AbstractKeyValueStore:
    """Instantiate the keyed store selected by ``STORE_BACKEND``.

    Args:
        store_settings: Optional settings; defaults to the global settings.

    Returns:
        AbstractKeyValueStore: Ready-to-use store.

    Raises:
        ValidationAppError: If the backend name is unknown.
        StoreUnavailableError: If a durable backend cannot be opened.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "memory":
        return InMemoryKeyValueStore()

    if backend == "sqlite":
        return SqliteKeyValueStore(cfg.url, timeout_seconds=cfg.timeout_seconds)

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: memory, sqlite",
    )
