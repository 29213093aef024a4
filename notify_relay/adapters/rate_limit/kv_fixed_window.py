"""Fixed-window rate limiter persisted in the keyed store.

Notes:
- State lives under ``("rate_limit", token)``, one record per token, and
  nothing else reads or writes that keyspace.
- The window starts at the first admitted request (not on a wall-clock
  boundary) and lasts ``window_seconds``.
- Admission is a compare-and-swap on the record's versionstamp, so callers
  racing on the same token can never be admitted beyond the limit, even
  across processes sharing a durable store.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from notify_relay.adapters.kv.base import AbstractKeyValueStore, Key
from notify_relay.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    RateLimitState,
)
from notify_relay.core.errors import StoreUnavailableError, invalid_argument
from notify_relay.core.logging import hash_token

logger = logging.getLogger(__name__)

KEY_SPACE = "rate_limit"


class KeyValueFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per token.

    For example, with ``limit=10`` and ``window_seconds=60`` a token may write
    ten times within sixty seconds of its first write; the eleventh attempt is
    rejected until the window ends.
    """

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        limit: int,
        window_seconds: int,
        max_attempts: int = 16,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Keyed store holding the per-token state.
            limit: Maximum number of admitted requests per window.
            window_seconds: Size of the fixed window in seconds.
            max_attempts: Compare-and-swap attempts before giving up on a check.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit, window_seconds or max_attempts are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        self._store = store
        self._limit = limit
        self._window_seconds = window_seconds
        self._max_attempts = max_attempts
        self._clock = clock

    @property
    def limit(self) -> int:
        return self._limit

    @staticmethod
    def state_key(token: str) -> Key:
        return (KEY_SPACE, token)

    def get_or_init(self, token: str, now: float) -> tuple[RateLimitState, str | None]:
        """Load the token's current window, starting a fresh one if needed.

        A missing record, or one whose window has ended (``now >= reset_at``),
        yields ``count=0, reset_at=now + window_seconds``. Nothing is written
        here; the fresh state only becomes durable when a request is admitted.

        Args:
            token: Token whose state to load.
            now: Current UNIX time in seconds.

        Returns:
            Tuple of (state, versionstamp). The versionstamp is that of the
            stored record, or None when there is no live record.
        """
        entry = self._store.get(self.state_key(token))
        if entry is None:
            return RateLimitState(count=0, reset_at=now + self._window_seconds), None

        state = RateLimitState.from_value(entry.value)
        if now >= state.reset_at:
            # Stale window; the old record is replaced on the next admitted write
            return RateLimitState(count=0, reset_at=now + self._window_seconds), entry.versionstamp

        return state, entry.versionstamp

    def check(self, token: str) -> tuple[bool, RateLimitState]:
        """Decide admission for ``token`` and record an admitted request.

        Raises:
            ValidationAppError: If the token is empty.
            StoreUnavailableError: If the store fails, or concurrent writers
                keep winning the compare-and-swap for ``max_attempts`` rounds.
        """
        if not token:
            raise invalid_argument("token", "token must be a non-empty string")

        key = self.state_key(token)
        for attempt in range(1, self._max_attempts + 1):
            now = self._clock()
            state, versionstamp = self.get_or_init(token, now)

            if state.count >= self._limit:
                return False, state

            admitted = RateLimitState(count=state.count + 1, reset_at=state.reset_at)
            written = self._store.put_if(
                key,
                admitted.to_value(),
                versionstamp=versionstamp,
                expire_in=admitted.reset_at - now,
            )
            if written is not None:
                return True, admitted

            logger.debug(
                "kv.put_if_conflict",
                extra={"token_hash": hash_token(token), "attempt": attempt},
            )

        logger.warning(
            "rate_limit.contention_exhausted",
            extra={"token_hash": hash_token(token), "attempts": self._max_attempts},
        )
        raise StoreUnavailableError(
            code="store_contention",
            message="Too many concurrent writes for this token; retry shortly",
            details={"attempts": self._max_attempts, "retry_after": 1.0},
        )

    def consume(self, token: str) -> RateLimitResult:
        """Check ``token`` and build the header-ready result.

        Returns:
            RateLimitResult with allowance decision and metadata.
        """
        admitted, state = self.check(token)
        reset_at = int(math.ceil(state.reset_at))
        remaining = max(0, self._limit - state.count)

        if admitted:
            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=remaining,
                reset_at=reset_at,
                retry_after_seconds=None,
            )

        retry_after = max(0, int(math.ceil(state.reset_at - self._clock())))
        return RateLimitResult(
            allowed=False,
            limit=self._limit,
            remaining=remaining,
            reset_at=reset_at,
            retry_after_seconds=retry_after,
        )
