"""Rate limiting dependencies for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

- One named limiter per throttled action (login, register, password reset,
  password change), each with its own window, quota and keyspace.
- Routes depend on ``rate_limited(<name>)`` only; the storage backend sits
  behind ``AbstractRateLimiter``.
- The client key is the first X-Forwarded-For entry (when trusted), then the
  socket peer, then ``"unknown"``. Callers without an address therefore
  share a single bucket.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping

from fastapi import Request

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.core.config import AppSettings, settings
from app.core.errors import RateLimitAppError
from app.core.logging import hash_for_log

logger = logging.getLogger(__name__)

LOGIN = "login"
REGISTER = "register"
PASSWORD_RESET = "password_reset"
PASSWORD_CHANGE = "password_change"

LIMITER_NAMES = (LOGIN, REGISTER, PASSWORD_RESET, PASSWORD_CHANGE)

UNKNOWN_CLIENT_KEY = "unknown"

_DENIED_MESSAGES = {
    LOGIN: "Too many login attempts. Please try again later.",
    REGISTER: "Too many registration attempts. Please try again later.",
    PASSWORD_RESET: "Too many password reset requests. Please try again later.",
    PASSWORD_CHANGE: "Too many password change attempts. Please try again later.",
}


def _limiter_config(app_settings: AppSettings) -> dict[str, tuple[int, int]]:
    """Map limiter name to (window_seconds, max_requests)."""
    return {
        LOGIN: (app_settings.login_window_seconds, app_settings.login_max_requests),
        REGISTER: (app_settings.register_window_seconds, app_settings.register_max_requests),
        PASSWORD_RESET: (
            app_settings.password_reset_window_seconds,
            app_settings.password_reset_max_requests,
        ),
        PASSWORD_CHANGE: (
            app_settings.password_change_window_seconds,
            app_settings.password_change_max_requests,
        ),
    }


class RateLimiterRegistry:
    """Owns the named limiters of the process.

    Each limiter keeps independent state; closing the registry stops every
    background sweeper.
    """

    def __init__(self, limiters: Mapping[str, AbstractRateLimiter]) -> None:
        self._limiters = dict(limiters)

    @classmethod
    def from_settings(cls, app_settings: AppSettings) -> "RateLimiterRegistry":
        limiters = {
            name: InMemorySlidingWindowRateLimiter(
                window_seconds=window_seconds,
                max_requests=max_requests,
                sweep_interval_seconds=app_settings.rate_limit_sweep_interval_seconds,
                name=name,
            )
            for name, (window_seconds, max_requests) in _limiter_config(app_settings).items()
        }
        return cls(limiters)

    def __getitem__(self, name: str) -> AbstractRateLimiter:
        return self._limiters[name]

    def __contains__(self, name: object) -> bool:
        return name in self._limiters

    def names(self) -> list[str]:
        return list(self._limiters)

    def stats(self) -> dict[str, dict[str, Any]]:
        return {name: limiter.stats() for name, limiter in self._limiters.items()}

    def close(self) -> None:
        for limiter in self._limiters.values():
            limiter.close()


_registry: RateLimiterRegistry | None = None
_registry_config: tuple[Any, ...] | None = None


def _current_config() -> tuple[Any, ...]:
    return (
        settings.app.rate_limit_sweep_interval_seconds,
        tuple(sorted(_limiter_config(settings.app).items())),
    )


def get_rate_limiters() -> RateLimiterRegistry:
    """Return the process-wide limiter registry.

    The registry is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), it is rebuilt and the
    previous limiters are closed.
    """

    global _registry, _registry_config

    config = _current_config()
    if _registry is None or _registry_config != config:
        if _registry is not None:
            _registry.close()
        _registry = RateLimiterRegistry.from_settings(settings.app)
        _registry_config = config
        logger.info(
            "rate_limit.registry_built",
            extra={"limiters": _registry.names()},
        )

    return _registry


def shutdown_rate_limiters() -> None:
    """Stop all sweepers and drop the cached registry (application shutdown)."""

    global _registry, _registry_config

    if _registry is not None:
        _registry.close()
    _registry = None
    _registry_config = None


def build_client_key(request: Request) -> str:
    """Derive the limiter key identifying the caller.

    Args:
        request: FastAPI request.

    Returns:
        str: First X-Forwarded-For address when trusted, else the peer host,
            else ``"unknown"``.
    """

    if settings.app.trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT_KEY


def rate_limited(name: str) -> Callable[[Request], Awaitable[None]]:
    """Build a FastAPI dependency enforcing the limiter called ``name``.

    Usage:
        @router.post("/login", dependencies=[Depends(rate_limited(LOGIN))])

    Raises:
        KeyError: If ``name`` is not a configured limiter.
    """

    if name not in LIMITER_NAMES:
        raise KeyError(f"unknown rate limiter: {name!r}")

    async def enforce_rate_limit(request: Request) -> None:
        """Consume one attempt; raise 429 when the quota is exhausted.

        Raises:
            RateLimitAppError: When the named limiter denies the attempt.
        """

        if not settings.app.rate_limit_enabled:
            return

        limiter = get_rate_limiters()[name]
        key = build_client_key(request)

        if limiter.is_allowed(key):
            logger.debug(
                "rate_limit.allowed",
                extra={"limiter": name, "key_hash": hash_for_log(key)},
            )
            return

        retry_after = limiter.retry_after_seconds(key)
        stats = limiter.stats()
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "limiter": name,
                "key_hash": hash_for_log(key),
                "limit": stats["max_requests"],
                "window_s": stats["window_seconds"],
                "retry_after_s": retry_after,
            },
        )

        headers: dict[str, str] = {}
        if settings.app.rate_limit_include_headers:
            headers["Retry-After"] = str(retry_after)
            headers["X-RateLimit-Limit"] = str(stats["max_requests"])

        raise RateLimitAppError(
            code="too_many_requests",
            message=_DENIED_MESSAGES[name],
            details={"limiter": name, "retry_after": retry_after},
            headers=headers,
        )

    return enforce_rate_limit
