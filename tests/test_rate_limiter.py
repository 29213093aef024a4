"""Unit tests for the keyed-store fixed-window rate limiter."""

import threading
from pathlib import Path
from unittest.mock import Mock

import pytest

from notify_relay.adapters.kv.in_memory import InMemoryKeyValueStore
from notify_relay.adapters.kv.sqlite import SqliteKeyValueStore
from notify_relay.adapters.rate_limit.base import RateLimitState
from notify_relay.adapters.rate_limit.kv_fixed_window import KeyValueFixedWindowRateLimiter
from notify_relay.core.errors import StoreUnavailableError, ValidationAppError


def _limiter(kv, clock, *, limit: int = 3, window_seconds: int = 60, **kwargs):
    return KeyValueFixedWindowRateLimiter(
        kv, limit=limit, window_seconds=window_seconds, clock=clock, **kwargs
    )


def test_admits_up_to_limit_with_count_in_call_order(kv, clock) -> None:
    limiter = _limiter(kv, clock, limit=3)

    results = [limiter.check("k") for _ in range(3)]

    assert [admitted for admitted, _ in results] == [True, True, True]
    assert [state.count for _, state in results] == [1, 2, 3]
    assert {state.reset_at for _, state in results} == {clock() + 60}


def test_rejects_when_over_limit(kv, clock) -> None:
    limiter = _limiter(kv, clock, limit=2)
    limiter.check("k")
    limiter.check("k")

    admitted, state = limiter.check("k")

    assert admitted is False
    assert state.count == 2


def test_rejection_leaves_stored_state_untouched(kv, clock) -> None:
    limiter = _limiter(kv, clock, limit=2)
    limiter.check("k")
    _, at_limit = limiter.check("k")
    version_at_limit = kv.get(limiter.state_key("k")).versionstamp

    clock.advance(10)
    for _ in range(3):
        admitted, state = limiter.check("k")
        assert admitted is False
        assert state == at_limit

    assert kv.get(limiter.state_key("k")).versionstamp == version_at_limit


def test_window_resets_after_reset_at(kv, clock) -> None:
    limiter = _limiter(kv, clock, limit=2, window_seconds=60)
    # Stale record without a TTL: only the reset_at comparison can reset it
    kv.put(limiter.state_key("k"), RateLimitState(count=2, reset_at=clock() - 1).to_value())

    admitted, state = limiter.check("k")

    assert admitted is True
    assert state.count == 1
    assert state.reset_at == clock() + 60


def test_window_resets_exactly_at_reset_at(kv, clock) -> None:
    limiter = _limiter(kv, clock, limit=1, window_seconds=10)
    assert limiter.check("k")[0] is True
    assert limiter.check("k")[0] is False

    clock.advance(10)

    admitted, state = limiter.check("k")
    assert admitted is True
    assert state.count == 1


def test_state_record_expires_with_window(kv, clock) -> None:
    limiter = _limiter(kv, clock, limit=5, window_seconds=30)
    limiter.check("k")

    clock.advance(29)
    assert kv.get(limiter.state_key("k")) is not None

    clock.advance(1)
    assert kv.get(limiter.state_key("k")) is None


def test_isolated_by_token(kv, clock) -> None:
    limiter = _limiter(kv, clock, limit=1)

    assert limiter.check("a")[0] is True
    assert limiter.check("a")[0] is False
    admitted, state = limiter.check("b")

    assert admitted is True
    assert state.count == 1


def test_consume_reports_remaining_and_retry_after(kv, clock) -> None:
    limiter = _limiter(kv, clock, limit=2, window_seconds=60)

    first = limiter.consume("T")
    second = limiter.consume("T")
    clock.advance(15)
    third = limiter.consume("T")

    assert (first.allowed, first.remaining) == (True, 1)
    assert (second.allowed, second.remaining) == (True, 0)
    assert first.retry_after_seconds is None
    assert third.allowed is False
    assert third.remaining == 0
    assert third.retry_after_seconds == 45
    assert third.reset_at == first.reset_at


def test_empty_token_is_invalid(kv, clock) -> None:
    limiter = _limiter(kv, clock)

    with pytest.raises(ValidationAppError) as exc_info:
        limiter.check("")

    assert exc_info.value.code == "invalid_argument"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0, "window_seconds": 60},
        {"limit": 1, "window_seconds": 0},
        {"limit": 1, "window_seconds": 60, "max_attempts": 0},
    ],
)
def test_invalid_constructor_args(kv, kwargs: dict) -> None:
    with pytest.raises(ValueError):
        KeyValueFixedWindowRateLimiter(kv, **kwargs)


def test_retries_after_losing_a_compare_and_swap(kv, clock) -> None:
    limiter = _limiter(kv, clock, limit=5)
    real_put_if = kv.put_if
    calls = {"n": 0}

    def _racing_put_if(key, value, *, versionstamp, expire_in=None):
        calls["n"] += 1
        if calls["n"] == 1:
            # Another caller is admitted between our read and our write
            real_put_if(
                key,
                RateLimitState(count=1, reset_at=clock() + 60).to_value(),
                versionstamp=versionstamp,
                expire_in=60,
            )
        return real_put_if(key, value, versionstamp=versionstamp, expire_in=expire_in)

    kv.put_if = _racing_put_if

    admitted, state = limiter.check("k")

    assert admitted is True
    assert state.count == 2
    assert calls["n"] == 2


def test_gives_up_after_max_attempts(clock) -> None:
    store = Mock(spec=InMemoryKeyValueStore)
    store.get.return_value = None
    store.put_if.return_value = None
    limiter = _limiter(store, clock, max_attempts=3)

    with pytest.raises(StoreUnavailableError) as exc_info:
        limiter.check("k")

    assert exc_info.value.code == "store_contention"
    assert store.put_if.call_count == 3


def test_store_failure_propagates(clock) -> None:
    store = Mock(spec=InMemoryKeyValueStore)
    store.get.side_effect = StoreUnavailableError(code="store_unavailable", message="down")
    limiter = _limiter(store, clock)

    with pytest.raises(StoreUnavailableError):
        limiter.check("k")


@pytest.mark.parametrize("backend", ["memory", "sqlite"])
def test_concurrent_checks_never_over_admit(backend: str, tmp_path: Path) -> None:
    if backend == "memory":
        store = InMemoryKeyValueStore()
    else:
        store = SqliteKeyValueStore(f"sqlite:///{tmp_path / 'limits.db'}")
    limiter = KeyValueFixedWindowRateLimiter(
        store, limit=5, window_seconds=60, max_attempts=1000
    )
    admitted: list[int] = []
    barrier = threading.Barrier(12)

    def _caller() -> None:
        barrier.wait()
        ok, state = limiter.check("shared")
        if ok:
            admitted.append(state.count)

    threads = [threading.Thread(target=_caller) for _ in range(12)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    store.close()

    assert sorted(admitted) == [1, 2, 3, 4, 5]
