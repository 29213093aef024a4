from __future__ import annotations

from fastapi import APIRouter

from notify_relay.core.config import settings
from notify_relay.core.store import get_kv_store

router = APIRouter(tags=["Health"])

_PROBE_KEY = ("health", "probe")


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Performs one read against the keyed store so a broken backend shows up
    as 503 (via the StoreUnavailableError handler) instead of "ok".

    Returns:
        dict: ``{"status": "ok", "store": <backend name>}``.
    """

    get_kv_store().get(_PROBE_KEY)
    return {"status": "ok", "store": settings.store.backend}
