"""Tests for normalized error responses."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from creditpath.core.errors import (
    AccessDeniedError,
    AppError,
    CheckoutInProgressError,
    UpstreamError,
    app_error_handler,
    unhandled_exception_handler,
)
from creditpath.core.middleware.request_id import RequestIdMiddleware


def _make_app():
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware)
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/denied")
    async def denied():
        raise AccessDeniedError("Access denied", reason="requires-subscription", redirect_to="/pricing")

    @app.get("/busy")
    async def busy():
        raise CheckoutInProgressError("A checkout request is already in progress")

    @app.get("/upstream")
    async def upstream():
        raise UpstreamError("Billing request failed")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("boom")

    return app


def test_error_status_codes():
    assert AccessDeniedError("x", reason="none").status_code == 403
    assert CheckoutInProgressError("x").status_code == 409
    assert UpstreamError("x").status_code == 502


def test_access_denied_carries_reason():
    client = TestClient(_make_app())
    resp = client.get("/denied")

    assert resp.status_code == 403
    body = resp.json()
    assert body["error"]["code"] == "access_denied"
    assert body["error"]["reason"] == "requires-subscription"
    assert body["error"]["redirect_to"] == "/pricing"
    assert body["error"]["request_id"] == resp.headers["x-request-id"]
    assert body["detail"] == "Access denied"


def test_conflict_shape():
    client = TestClient(_make_app())
    resp = client.get("/busy", headers={"X-Request-Id": "rid-409"})

    assert resp.status_code == 409
    assert resp.json()["error"] == {
        "code": "checkout_in_progress",
        "message": "A checkout request is already in progress",
        "request_id": "rid-409",
    }


def test_upstream_shape():
    client = TestClient(_make_app())
    resp = client.get("/upstream")
    assert resp.status_code == 502
    assert resp.json()["error"]["code"] == "upstream_error"


def test_unhandled_error_is_generic():
    client = TestClient(_make_app(), raise_server_exceptions=False)
    resp = client.get("/boom")

    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["code"] == "internal_error"
    assert "boom" not in body["error"]["message"]
