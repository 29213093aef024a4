"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any application import so settings are
built against the in-memory store and never pick up a developer .env file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from notify_relay.adapters.kv.in_memory import InMemoryKeyValueStore
from notify_relay.adapters.rate_limit.kv_fixed_window import KeyValueFixedWindowRateLimiter
from notify_relay.core.store import reset_kv_store
from notify_relay.services.notification_store import NotificationStore
from notify_relay.services.relay_service import RelayService


class FakeTime:
    """Deterministic clock; call it like ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeTime:
    return FakeTime()


@pytest.fixture
def kv(clock: FakeTime) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def notification_store(kv: InMemoryKeyValueStore, clock: FakeTime) -> NotificationStore:
    return NotificationStore(kv, clock=clock)


@pytest.fixture
def relay_factory(kv: InMemoryKeyValueStore, clock: FakeTime, notification_store: NotificationStore):
    """Build a RelayService on the shared fake-clock store with a given limit."""

    def _build(limit: int = 10, window_seconds: int = 60) -> RelayService:
        limiter = KeyValueFixedWindowRateLimiter(
            kv, limit=limit, window_seconds=window_seconds, clock=clock
        )
        return RelayService(limiter=limiter, notifications=notification_store)

    return _build


@pytest.fixture(autouse=True)
def _fresh_process_store():
    """Give every test its own process-wide store."""
    reset_kv_store()
    yield
    reset_kv_store()
