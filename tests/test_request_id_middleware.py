from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import app


client = TestClient(app)


def test_preserves_incoming_request_id_header():
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing():
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_error_body_carries_request_id():
    resp = client.post(
        "/v1/auth/login",
        json={"email": "not-an-email", "password": "x"},
        headers={"X-Request-ID": "req-err-1", "X-Forwarded-For": "192.0.2.99"},
    )

    assert resp.status_code == 400
    assert resp.json()["error"]["request_id"] == "req-err-1"
    assert resp.headers.get("X-Request-ID") == "req-err-1"
