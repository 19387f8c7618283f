from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from mealdecide.admission.request_id import RequestIdMiddleware
from mealdecide.app import app
from mealdecide.errors import Conflict, NotFound, ValidationFailed, install_error_handlers

client = TestClient(app)

ENVELOPE_KEYS = {"timestamp", "status", "error", "message", "path", "requestId", "fieldErrors"}


def _app_raising(exc: Exception) -> FastAPI:
    demo = FastAPI()
    install_error_handlers(demo)
    demo.add_middleware(RequestIdMiddleware)

    @demo.get("/boom")
    def boom():
        raise exc

    return demo


def test_request_id_is_echoed():
    resp = client.get("/health", headers={"X-Request-Id": "abc-123"})
    assert resp.headers["X-Request-Id"] == "abc-123"


def test_request_id_is_minted_when_absent():
    resp = client.get("/health")
    assert resp.headers["X-Request-Id"]


def test_not_authenticated_uses_envelope():
    resp = client.get("/decisions", headers={"X-Request-Id": "req-1"})
    assert resp.status_code == 401
    body = resp.json()
    assert set(body) == ENVELOPE_KEYS
    assert body["status"] == 401
    assert body["error"] == "Unauthorized"
    assert body["message"] == "Not authenticated"
    assert body["path"] == "/decisions"
    assert body["requestId"] == "req-1"
    assert body["fieldErrors"] is None
    assert body["timestamp"].endswith("Z")


def test_unknown_route_uses_envelope():
    resp = client.get("/no-such-route")
    assert resp.status_code == 404
    assert set(resp.json()) == ENVELOPE_KEYS


def test_api_errors_map_to_status():
    for exc, status in ((NotFound("gone"), 404), (Conflict("busy"), 409), (ValidationFailed("bad"), 400)):
        resp = TestClient(_app_raising(exc)).get("/boom")
        assert resp.status_code == status
        assert resp.json()["message"] == exc.message


def test_field_errors_are_carried():
    exc = ValidationFailed("bad input", [{"field": "platform", "message": "required"}])
    resp = TestClient(_app_raising(exc)).get("/boom")
    assert resp.json()["fieldErrors"] == [{"field": "platform", "message": "required"}]


def test_unexpected_errors_hide_details():
    demo = _app_raising(RuntimeError("secret stack detail"))
    resp = TestClient(demo, raise_server_exceptions=False).get("/boom")
    assert resp.status_code == 500
    body = resp.json()
    assert body["message"] == "Unexpected error"
    assert "secret" not in resp.text


def test_nested_field_errors_name_the_path():
    login = client.post("/auth/login", json={"username": "user", "password": "user123"}).json()
    headers = {"Authorization": f"Bearer {login['token']}"}
    resp = client.post("/decide", json={"mustHaveTags": ["ok", "t" * 33]}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["fieldErrors"][0]["field"] == "mustHaveTags.1"


def test_query_parameter_errors_drop_the_location():
    login = client.post("/auth/login", json={"username": "user", "password": "user123"}).json()
    headers = {"Authorization": f"Bearer {login['token']}"}
    resp = client.get("/decisions", params={"limit": "many"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["fieldErrors"][0]["field"] == "limit"
