"""Unit tests for hansei/health.py — / and /api/health.

/api/health must answer 200 "healthy" whatever state the collaborators are
in, and report each service's availability.
"""

from __future__ import annotations

import re
from typing import Callable

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient

from hansei.config import CollaboratorsConfig, Config

_ISO_UTC = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


class TestHealthEndpoint:

    @pytest.mark.asyncio
    async def test_health_returns_200_healthy(self, build_app: Callable[..., FastAPI]) -> None:
        transport = ASGITransport(app=build_app())  # type: ignore[arg-type]
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["cors"] == "WORKING"
        assert body["backend"] == "Chennai Backend Connected"
        assert _ISO_UTC.match(body["timestamp"])
        assert body["origin"] == "null"

    def test_health_echoes_origin(self, build_app: Callable[..., FastAPI]) -> None:
        client = TestClient(build_app())
        response = client.get("/api/health", headers={"Origin": "https://chennai-fe.vercel.app"})
        assert response.json()["origin"] == "https://chennai-fe.vercel.app"

    def test_health_reports_all_services_available(self, build_app: Callable[..., FastAPI]) -> None:
        client = TestClient(build_app())
        services = client.get("/api/health").json()["services"]
        assert services == {
            "auth": "available",
            "sales": "available",
            "analytics": "available",
            "upload": "available",
            "chatbot": "available",
        }

    def test_health_still_healthy_when_collaborators_fail(
        self, build_app: Callable[..., FastAPI], healthy_factories, failing_factory
    ) -> None:
        factories = dict(healthy_factories, chatbot=failing_factory())
        client = TestClient(build_app(factories=factories))
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert set(body["services"].values()) == {"unavailable"}

    def test_health_with_default_module_paths_missing(
        self, build_app: Callable[..., FastAPI]
    ) -> None:
        """Default collaborator modules (routes.*) are not installed in tests."""
        config = Config(
            collaborators=CollaboratorsConfig(
                modules={name: f"missing_pkg_for_tests.{name}" for name in
                         ("auth", "sales", "analytics", "upload", "chatbot")}
            )
        )
        client = TestClient(build_app(config, factories={}))
        assert client.get("/api/health").json()["status"] == "healthy"


class TestRootEndpoint:

    def test_root_banner(self, build_app: Callable[..., FastAPI]) -> None:
        client = TestClient(build_app())
        response = client.get("/", headers={"Origin": "http://127.0.0.1"})
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Hansei Backend is WORKING!"
        assert body["cors"] == "ENABLED - Fixed Configuration"
        assert body["health"] == "/api/health"
        assert body["origin"] == "http://127.0.0.1"
        assert _ISO_UTC.match(body["timestamp"])
