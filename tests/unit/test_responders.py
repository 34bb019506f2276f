"""Unit tests for hansei/responders.py — 404 and error responders.

Covers:
  - build_error_response dispatches on error type (not message text)
  - unmatched paths → 404 with path + availableEndpoints
  - a collaborator's own 404 keeps its detail
  - unhandled handler errors → 500 with the message, CORS headers kept
  - GatewayError raised inside a route handled by type
"""

from __future__ import annotations

import json
from typing import Callable

from fastapi import APIRouter, FastAPI
from starlette.testclient import TestClient

from hansei.errors import InternalError, OriginDenied, RouteNotFound
from hansei.responders import build_error_response

_AVAILABLE = [
    "/api/health",
    "/api/auth",
    "/api/sales",
    "/api/analytics",
    "/api/upload",
    "/api/chatbot",
]


def _body(response) -> dict:
    return json.loads(response.body)


class TestBuildErrorResponse:

    def test_origin_denied_is_403(self) -> None:
        response = build_error_response(OriginDenied("https://x.test", ["http://localhost"]))
        assert response.status_code == 403
        assert _body(response) == {
            "error": "CORS policy violation",
            "details": "CORS Policy Violation: The origin https://x.test is not allowed.",
            "allowedOrigins": ["http://localhost"],
        }

    def test_route_not_found_is_404(self) -> None:
        response = build_error_response(RouteNotFound("/api/nope"))
        assert response.status_code == 404
        assert _body(response) == {
            "error": "Endpoint not found",
            "path": "/api/nope",
            "availableEndpoints": _AVAILABLE,
        }

    def test_plain_exception_is_500_with_message(self) -> None:
        response = build_error_response(ValueError("bad thing"))
        assert response.status_code == 500
        assert _body(response) == {"error": "Internal server error", "message": "bad thing"}

    def test_internal_error_is_500(self) -> None:
        response = build_error_response(InternalError(KeyError("k")))
        assert response.status_code == 500
        assert _body(response)["error"] == "Internal server error"

    def test_message_mentioning_cors_is_still_500(self) -> None:
        """Dispatch is on type: a generic error whose text says CORS is not a 403."""
        response = build_error_response(RuntimeError("CORS config reload failed"))
        assert response.status_code == 500


class TestNotFoundResponder:

    def test_unknown_api_path_is_404(self, build_app: Callable[..., FastAPI]) -> None:
        client = TestClient(build_app())
        response = client.get("/api/does-not-exist")
        assert response.status_code == 404
        assert response.json() == {
            "error": "Endpoint not found",
            "path": "/api/does-not-exist",
            "availableEndpoints": _AVAILABLE,
        }

    def test_unknown_root_path_is_404(self, build_app: Callable[..., FastAPI]) -> None:
        client = TestClient(build_app())
        response = client.post("/totally/unknown", json={})
        assert response.status_code == 404
        assert response.json()["path"] == "/totally/unknown"

    def test_404_for_allowed_origin_carries_cors_headers(
        self, build_app: Callable[..., FastAPI]
    ) -> None:
        client = TestClient(build_app())
        response = client.get("/api/does-not-exist", headers={"Origin": "http://localhost"})
        assert response.status_code == 404
        assert response.headers["access-control-allow-origin"] == "http://localhost"

    def test_collaborator_404_keeps_its_detail(self, build_app: Callable[..., FastAPI]) -> None:
        client = TestClient(build_app())
        response = client.get("/api/sales/missing")
        assert response.status_code == 404
        assert response.json() == {"error": "sales record not found"}


class TestErrorResponder:

    def test_unhandled_handler_error_is_500(self, build_app: Callable[..., FastAPI]) -> None:
        client = TestClient(build_app())
        response = client.get("/api/auth/boom")
        assert response.status_code == 500
        assert response.json() == {
            "error": "Internal server error",
            "message": "auth exploded",
        }

    def test_500_for_allowed_origin_carries_cors_headers(
        self, build_app: Callable[..., FastAPI]
    ) -> None:
        client = TestClient(build_app())
        response = client.get(
            "/api/chatbot/boom", headers={"Origin": "https://chennai-fe.vercel.app"}
        )
        assert response.status_code == 500
        assert response.headers["access-control-allow-origin"] == "https://chennai-fe.vercel.app"

    def test_gateway_error_raised_in_route_is_dispatched_by_type(
        self, build_app: Callable[..., FastAPI], healthy_factories
    ) -> None:
        router = APIRouter()

        @router.get("/forbidden-origin")
        async def forbidden_origin():
            raise OriginDenied("https://other.test", ["http://localhost"])

        factories = dict(healthy_factories, upload=lambda: router)
        client = TestClient(build_app(factories=factories))
        response = client.get("/api/upload/forbidden-origin")
        assert response.status_code == 403
        assert response.json()["allowedOrigins"] == ["http://localhost"]

    def test_process_keeps_serving_after_errors(self, build_app: Callable[..., FastAPI]) -> None:
        client = TestClient(build_app())
        for _ in range(3):
            assert client.get("/api/analytics/boom").status_code == 500
        assert client.get("/api/health").status_code == 200
