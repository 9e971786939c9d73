"""Rate limiter interfaces.

Request handlers depend on this abstraction so the in-memory store can later
be replaced by a shared backend (e.g., Redis) without touching the routes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class AbstractRateLimiter(ABC):
    """Interface for keyed admission limiters."""

    @abstractmethod
    def is_allowed(self, key: str) -> bool:
        """Decide whether one more attempt for ``key`` is admitted.

        Args:
            key: Identifier of the logical actor (e.g., client IP).

        Returns:
            True when the attempt is admitted, False when the quota for the
            current window is exhausted.
        """
        raise NotImplementedError

    @abstractmethod
    def retry_after_seconds(self, key: str) -> int:
        """Seconds until ``key`` is admitted again (0 if not throttled)."""
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> dict[str, Any]:
        """Return counters describing the limiter without exposing keys."""
        raise NotImplementedError

    def close(self) -> None:
        """Release background resources. No-op by default."""
