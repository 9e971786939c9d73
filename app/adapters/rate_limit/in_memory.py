"""In-memory keyed window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: records are guarded by striped locks, so unrelated keys do
  not contend on a single lock.
- A background thread sweeps expired records to bound memory growth.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from app.adapters.rate_limit.base import AbstractRateLimiter

logger = logging.getLogger(__name__)

DEFAULT_LOCK_STRIPES = 64


@dataclass
class _WindowRecord:
    count: int
    reset_at: float


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Admit at most ``max_requests`` attempts per key per window.

    The window for a key opens on its first admitted attempt and lasts
    ``window_seconds``. Once it elapses the next attempt starts a new window,
    regardless of how the previous one ended.

    Important:
        This limiter is per-process only. If the API runs with multiple
        workers, each worker enforces its own independent limits.
    """

    def __init__(
        self,
        *,
        window_seconds: float,
        max_requests: int,
        sweep_interval_seconds: float | None = 60.0,
        clock: Callable[[], float] = time.monotonic,
        name: str = "default",
        lock_stripes: int = DEFAULT_LOCK_STRIPES,
    ) -> None:
        """Initialize the limiter and start its sweeper.

        Args:
            window_seconds: Length of the admission window in seconds.
            max_requests: Attempts admitted per key within one window.
            sweep_interval_seconds: Cadence of the background sweep. ``None``
                disables the sweeper thread (``sweep()`` can still be called).
            clock: Monotonic time source returning seconds.
            name: Label used in logs and stats.
            lock_stripes: Size of the lock pool keys are hashed onto.

        Raises:
            ValueError: If any numeric parameter is not positive, or
                ``max_requests`` is not an integer.
        """
        # Negated comparisons so NaN is rejected too.
        if not window_seconds > 0:
            raise ValueError("window_seconds must be > 0")
        if not isinstance(max_requests, int) or max_requests < 1:
            raise ValueError("max_requests must be an integer >= 1")
        if sweep_interval_seconds is not None and not sweep_interval_seconds > 0:
            raise ValueError("sweep_interval_seconds must be > 0")
        if lock_stripes < 1:
            raise ValueError("lock_stripes must be >= 1")

        self.name = name
        self._window_seconds = window_seconds
        self._max_requests = max_requests
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._locks = [threading.Lock() for _ in range(lock_stripes)]
        self._records: dict[str, _WindowRecord] = {}

        self._counters_lock = threading.Lock()
        self._admitted = 0
        self._denied = 0
        self._sweeps = 0
        self._evictions = 0

        self._stop_event = threading.Event()
        self._sweeper: threading.Thread | None = None
        if sweep_interval_seconds is not None:
            self.start()

    def __enter__(self) -> "InMemorySlidingWindowRateLimiter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemorySlidingWindowRateLimiter(name={self.name!r}, "
            f"window_seconds={self._window_seconds}, max_requests={self._max_requests}, "
            f"tracked_keys={len(self._records)})"
        )

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def _lock_for(self, key: str) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]

    def is_allowed(self, key: str) -> bool:
        """Admit or deny one attempt for ``key``.

        Check-expire, compare, increment and write-back run under the key's
        stripe lock, so concurrent calls for the same key are serialized.

        Args:
            key: Identifier of the actor. Any string is accepted; the empty
                string is a bucket like any other.

        Returns:
            True if the attempt is admitted, False if the quota is exhausted
            for the remainder of the current window.
        """
        with self._lock_for(key):
            now = self._clock()
            record = self._records.get(key)

            if record is None or now >= record.reset_at:
                self._records[key] = _WindowRecord(
                    count=1, reset_at=now + self._window_seconds
                )
                allowed = True
            elif record.count < self._max_requests:
                record.count += 1
                allowed = True
            else:
                allowed = False

        with self._counters_lock:
            if allowed:
                self._admitted += 1
            else:
                self._denied += 1
        return allowed

    def retry_after_seconds(self, key: str) -> int:
        """Return whole seconds until ``key`` gets a fresh window.

        Returns 0 when the key is unknown, expired, or still has quota.
        """
        with self._lock_for(key):
            record = self._records.get(key)
            if record is None or record.count < self._max_requests:
                return 0
            remaining = record.reset_at - self._clock()
        return max(0, int(math.ceil(remaining)))

    def sweep(self) -> int:
        """Remove records whose window has elapsed.

        Each candidate is re-checked under its stripe lock and only deleted
        if the stored record is still the expired one observed, so a record
        refreshed by a concurrent ``is_allowed`` call is never dropped.

        Returns:
            Number of records removed.
        """
        now = self._clock()
        candidates = [
            (key, record)
            for key, record in self._snapshot()
            if now >= record.reset_at
        ]

        removed = 0
        for key, record in candidates:
            now = self._clock()
            with self._lock_for(key):
                current = self._records.get(key)
                if current is record and now >= current.reset_at:
                    del self._records[key]
                    removed += 1

        with self._counters_lock:
            self._sweeps += 1
            self._evictions += removed

        if removed:
            logger.debug(
                "rate_limit.sweep",
                extra={
                    "limiter": self.name,
                    "removed": removed,
                    "tracked_keys": len(self._records),
                },
            )
        return removed

    def _snapshot(self) -> list[tuple[str, _WindowRecord]]:
        """Copy the records without holding a lock.

        ``is_allowed`` may insert keys while the copy is taken; on builds
        without a GIL that surfaces as RuntimeError, so the copy is retried.
        """
        while True:
            try:
                return list(self._records.items())
            except RuntimeError:
                continue

    def stats(self) -> dict[str, Any]:
        with self._counters_lock:
            return {
                "name": self.name,
                "window_seconds": self._window_seconds,
                "max_requests": self._max_requests,
                "tracked_keys": len(self._records),
                "admitted": self._admitted,
                "denied": self._denied,
                "sweeps": self._sweeps,
                "evictions": self._evictions,
            }

    def start(self) -> None:
        """Start the background sweeper if it is not already running."""
        if self._sweep_interval is None:
            raise RuntimeError("sweeper disabled: sweep_interval_seconds is None")
        if self._sweeper is not None and self._sweeper.is_alive():
            return

        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._run_sweeper,
            name=f"rate-limit-sweeper-{self.name}",
            daemon=True,
        )
        self._sweeper.start()

    def close(self) -> None:
        """Stop and join the background sweeper. Safe to call repeatedly."""
        self._stop_event.set()
        sweeper = self._sweeper
        if sweeper is not None and sweeper is not threading.current_thread():
            sweeper.join(timeout=5)
        self._sweeper = None

    def _run_sweeper(self) -> None:
        assert self._sweep_interval is not None
        while not self._stop_event.wait(self._sweep_interval):
            try:
                self.sweep()
            except Exception:
                # Keep the sweeper alive; stale records are harmless.
                logger.exception("rate_limit.sweep_failed", extra={"limiter": self.name})
