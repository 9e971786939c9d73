"""Structured logging for the accounts API.

Every record leaves the process as one JSON object carrying the request id
of the HTTP call that produced it. Credentials, emails and client addresses
are masked before formatting; code that needs to correlate them logs
``hash_for_log(value)`` instead.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Compared after _normalize_key, so "X-Forwarded-For" matches "x_forwarded_for".
SENSITIVE_KEYS_DEFAULT: set[str] = {
    "authorization",
    "cookie",
    "set_cookie",
    "x_api_key",
    "api_key",
    "app_api_keys",
    "secret",
    "token",
    "access_token",
    "refresh_token",
    "csrf_token",
    "password",
    "current_password",
    "new_password",
    "password_hash",
    "email",
    "client_key",
    "x_forwarded_for",
}

# Standard LogRecord attributes; anything else on a record came from ``extra``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"message", "asctime", "taskName", "stack"}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_for_log(value: str) -> str:
    """First 16 hex chars of the SHA-256 of ``value``.

    Stable across processes, so the same client IP or email can be followed
    through the logs without the raw value ever being written.
    """
    return hashlib.sha256(value.encode()).hexdigest()[:16]


def _normalize_key(key: str) -> str:
    return key.lower().replace("-", "_")


def _mask(value: Any, sensitive_keys: set[str]) -> Any:
    """Walk mappings, lists and tuples, masking values under sensitive keys."""
    if isinstance(value, Mapping):
        return {
            k: REDACTED if _normalize_key(str(k)) in sensitive_keys else _mask(v, sensitive_keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_mask(v, sensitive_keys) for v in value)
    return value


def _extras(record: LogRecord, sensitive_keys: set[str]) -> dict[str, Any]:
    """Return the ``extra`` fields of a record with sensitive values masked.

    Args:
        record: Record to inspect. It is not modified.
        sensitive_keys: Normalized names whose values must not be emitted.

    Returns:
        Mapping of extra field name to its safe value.
    """
    extras: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        if _normalize_key(key) in sensitive_keys:
            extras[key] = REDACTED
        else:
            extras[key] = _mask(value, sensitive_keys)
    return extras


def _normalized(keys: Iterable[str] | None) -> set[str]:
    return {_normalize_key(k) for k in (keys or SENSITIVE_KEYS_DEFAULT)}


class RequestIdFilter(logging.Filter):
    """Stamp the current request id on records that do not carry one."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Mask sensitive extras in place so every formatter sees safe values."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = _normalized(sensitive_keys)

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in _extras(record, self.sensitive_keys).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """Render a record as a single JSON line.

    Masking is applied again here so the formatter stays safe when it is
    installed without ``SensitiveDataFilter``.
    """

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.sensitive_keys = _normalized(sensitive_keys)
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id

        payload.update(_extras(record, self.sensitive_keys))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(cfg: LogSettings) -> logging.Handler:
    if cfg.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    path = Path(cfg.file_path or "logs/app.log")
    path.parent.mkdir(parents=True, exist_ok=True)
    if not cfg.max_bytes:
        return logging.FileHandler(path, encoding="utf-8")
    return RotatingFileHandler(
        path,
        maxBytes=cfg.max_bytes,
        backupCount=cfg.backup_count,
        encoding="utf-8",
    )


def configure_logging(
    log_settings: LogSettings | None = None,
    *,
    debug: bool | None = None,
) -> None:
    """Install a single masking handler on the root logger.

    Args:
        log_settings: Overrides ``settings.log``.
        debug: Force DEBUG level; defaults to ``settings.app.debug``.
    """
    cfg = log_settings or settings.log
    if debug is None:
        debug = settings.app.debug
    level = logging.DEBUG if debug else getattr(logging, cfg.level.upper(), logging.INFO)

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Uvicorn installs its own handlers; stop its records reaching root twice.
    for name in ("uvicorn", "uvicorn.access"):
        logging.getLogger(name).propagate = False
