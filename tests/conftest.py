"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any app import so the global settings
object is built with test values.
"""

import os

import pytest

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from app.core.rate_limit import shutdown_rate_limiters  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_rate_limiters():
    """Give every test empty limiters and stop their sweepers afterwards."""
    shutdown_rate_limiters()
    yield
    shutdown_rate_limiters()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-API-Key": "test-api-key-123"}
