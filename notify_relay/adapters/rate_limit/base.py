"""Rate limiter interfaces.

The relay service depends on this abstraction (not the concrete
implementation) so the counting strategy can change without touching the
write path.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RateLimitState:
    """Per-token window bookkeeping.

    Attributes:
        count: Requests admitted in the current window.
        reset_at: UNIX epoch seconds at which the window ends.
    """

    count: int
    reset_at: float

    def to_value(self) -> dict[str, Any]:
        return {"count": self.count, "reset_at": self.reset_at}

    @classmethod
    def from_value(cls, value: dict[str, Any]) -> "RateLimitState":
        return cls(count=int(value["count"]), reset_at=float(value["reset_at"]))


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check/consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for per-token rate limiters."""

    @property
    @abstractmethod
    def limit(self) -> int:
        """Maximum admitted requests per window."""
        raise NotImplementedError

    @abstractmethod
    def check(self, token: str) -> tuple[bool, RateLimitState]:
        """Decide admission for one write attempt and record it if admitted.

        Args:
            token: Non-empty token the write is made against.

        Returns:
            Tuple of (admitted, state). On admission ``state.count`` already
            includes this request; on rejection the state is the stored one,
            untouched.
        """
        raise NotImplementedError

    @abstractmethod
    def consume(self, token: str) -> RateLimitResult:
        """Run ``check`` and describe the outcome for the HTTP layer."""
        raise NotImplementedError
