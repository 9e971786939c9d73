"""Tests for limiter registry, client key derivation and the 429 dependency."""

from unittest.mock import Mock, patch

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from app.core import rate_limit
from app.core.exception_handlers import setup_exception_handlers
from app.core.rate_limit import (
    LIMITER_NAMES,
    LOGIN,
    REGISTER,
    RateLimiterRegistry,
    build_client_key,
    get_rate_limiters,
    rate_limited,
)


def _request(headers: dict[str, str] | None = None, client: tuple[str, int] | None = ("10.0.0.1", 1234)) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


@pytest.fixture
def throttled_app() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)

    @app.post("/login", dependencies=[Depends(rate_limited(LOGIN))])
    async def login() -> dict:
        return {"ok": True}

    @app.post("/register", dependencies=[Depends(rate_limited(REGISTER))])
    async def register() -> dict:
        return {"ok": True}

    return app


class TestBuildClientKey:
    def test_uses_first_forwarded_address(self) -> None:
        request = _request({"X-Forwarded-For": "1.2.3.4, 10.0.0.2"})
        assert build_client_key(request) == "1.2.3.4"

    def test_falls_back_to_peer_host(self) -> None:
        assert build_client_key(_request()) == "10.0.0.1"

    def test_blank_forwarded_header_falls_back_to_peer(self) -> None:
        assert build_client_key(_request({"X-Forwarded-For": " , 5.6.7.8"})) == "10.0.0.1"

    def test_unknown_when_no_address_available(self) -> None:
        assert build_client_key(_request(client=None)) == "unknown"

    @patch("app.core.rate_limit.settings")
    def test_ignores_forwarded_header_when_not_trusted(self, mock_settings) -> None:
        mock_settings.app.trust_forwarded_for = False
        request = _request({"X-Forwarded-For": "1.2.3.4"})
        assert build_client_key(request) == "10.0.0.1"


class TestRegistry:
    def test_builds_all_named_limiters_with_default_quotas(self) -> None:
        registry = get_rate_limiters()

        assert set(registry.names()) == set(LIMITER_NAMES)
        stats = registry.stats()
        assert (stats["login"]["window_seconds"], stats["login"]["max_requests"]) == (900, 5)
        assert (stats["register"]["window_seconds"], stats["register"]["max_requests"]) == (3600, 3)
        assert (stats["password_reset"]["window_seconds"], stats["password_reset"]["max_requests"]) == (3600, 3)
        assert (stats["password_change"]["window_seconds"], stats["password_change"]["max_requests"]) == (900, 5)

    def test_registry_is_cached_between_calls(self) -> None:
        assert get_rate_limiters() is get_rate_limiters()

    def test_limiters_do_not_share_keyspace(self) -> None:
        registry = get_rate_limiters()
        for _ in range(3):
            assert registry[REGISTER].is_allowed("1.2.3.4") is True
        assert registry[REGISTER].is_allowed("1.2.3.4") is False

        assert registry[LOGIN].is_allowed("1.2.3.4") is True

    def test_registry_rebuilt_when_config_changes(self, monkeypatch: pytest.MonkeyPatch) -> None:
        first = get_rate_limiters()
        monkeypatch.setattr(rate_limit.settings.app, "login_max_requests", 1)

        second = get_rate_limiters()
        assert second is not first
        assert second.stats()["login"]["max_requests"] == 1

    def test_close_closes_every_limiter(self) -> None:
        limiters = {"a": Mock(), "b": Mock()}
        RateLimiterRegistry(limiters).close()

        limiters["a"].close.assert_called_once()
        limiters["b"].close.assert_called_once()


def test_rate_limited_rejects_unknown_name() -> None:
    with pytest.raises(KeyError):
        rate_limited("nope")


class TestEnforceRateLimit:
    def test_returns_429_with_headers_after_quota(self, throttled_app: FastAPI) -> None:
        client = TestClient(throttled_app)
        headers = {"X-Forwarded-For": "9.9.9.9"}

        for _ in range(3):
            assert client.post("/register", headers=headers).status_code == 200

        response = client.post("/register", headers=headers)
        assert response.status_code == 429
        body = response.json()
        assert body["error"]["code"] == "too_many_requests"
        assert body["error"]["message"] == "Too many registration attempts. Please try again later."
        assert body["error"]["details"]["limiter"] == "register"
        assert int(response.headers["Retry-After"]) > 0
        assert response.headers["X-RateLimit-Limit"] == "3"

    def test_other_clients_unaffected(self, throttled_app: FastAPI) -> None:
        client = TestClient(throttled_app)
        for _ in range(4):
            client.post("/register", headers={"X-Forwarded-For": "9.9.9.9"})

        assert client.post("/register", headers={"X-Forwarded-For": "8.8.8.8"}).status_code == 200

    def test_other_actions_unaffected(self, throttled_app: FastAPI) -> None:
        client = TestClient(throttled_app)
        headers = {"X-Forwarded-For": "9.9.9.9"}
        for _ in range(4):
            client.post("/register", headers=headers)

        assert client.post("/login", headers=headers).status_code == 200

    def test_headers_omitted_when_disabled(self, throttled_app: FastAPI, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(rate_limit.settings.app, "rate_limit_include_headers", False)
        client = TestClient(throttled_app)
        headers = {"X-Forwarded-For": "7.7.7.7"}
        for _ in range(3):
            client.post("/register", headers=headers)

        response = client.post("/register", headers=headers)
        assert response.status_code == 429
        assert "Retry-After" not in response.headers

    def test_disabled_rate_limiting_is_a_no_op(self, throttled_app: FastAPI, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(rate_limit.settings.app, "rate_limit_enabled", False)
        client = TestClient(throttled_app)

        statuses = {client.post("/register").status_code for _ in range(10)}
        assert statuses == {200}

    def test_anonymous_callers_share_unknown_bucket(self) -> None:
        registry = get_rate_limiters()
        for _ in range(3):
            registry[REGISTER].is_allowed(build_client_key(_request(client=None)))

        assert registry[REGISTER].is_allowed("unknown") is False
