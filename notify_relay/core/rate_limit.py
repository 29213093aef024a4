"""Rate limiting wiring for the HTTP layer.

- ``get_rate_limiter`` builds the process-wide limiter on the shared store.
- ``build_rate_limit_headers`` turns a push outcome into the
  ``X-RateLimit-*`` / ``Retry-After`` headers.
"""

from __future__ import annotations

from notify_relay.adapters.kv.base import AbstractKeyValueStore
from notify_relay.adapters.rate_limit.base import AbstractRateLimiter
from notify_relay.adapters.rate_limit.kv_fixed_window import KeyValueFixedWindowRateLimiter
from notify_relay.core.config import settings
from notify_relay.core.store import get_kv_store
from notify_relay.services.relay_service import Admitted, PushOutcome


_limiter: AbstractRateLimiter | None = None
_limiter_config: tuple[int, int, int] | None = None
_limiter_store: AbstractKeyValueStore | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module. If configuration changes (primarily in
    tests), or the shared store was replaced, the limiter is rebuilt.

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config, _limiter_store

    store = get_kv_store()
    config = (
        settings.app.rate_limit_requests,
        settings.app.rate_limit_window_seconds,
        settings.store.cas_max_attempts,
    )

    if _limiter is None or _limiter_config != config or _limiter_store is not store:
        _limiter = KeyValueFixedWindowRateLimiter(
            store,
            limit=settings.app.rate_limit_requests,
            window_seconds=settings.app.rate_limit_window_seconds,
            max_attempts=settings.store.cas_max_attempts,
        )
        _limiter_config = config
        _limiter_store = store

    return _limiter


def build_rate_limit_headers(outcome: PushOutcome) -> dict[str, str]:
    """Headers describing the token's quota after a push attempt.

    Empty when ``APP_RATE_LIMIT_INCLUDE_HEADERS`` is off.
    """

    if not settings.app.rate_limit_include_headers:
        return {}

    if isinstance(outcome, Admitted):
        return {
            "X-RateLimit-Limit": str(outcome.limit),
            "X-RateLimit-Remaining": str(outcome.remaining),
            "X-RateLimit-Reset": str(outcome.reset_at),
        }

    return {
        "Retry-After": str(outcome.retry_after_seconds),
        "X-RateLimit-Limit": str(outcome.limit),
        "X-RateLimit-Remaining": "0",
        "X-RateLimit-Reset": str(outcome.reset_at),
    }
