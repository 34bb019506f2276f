"""Root test configuration for the Hansei gateway.

Every test runs with:
  - the gateway's environment overrides cleared (HANSEI_*, PORT)
  - no config file search outside what the test passes explicitly
  - the working directory set to a fresh tmp dir, so a developer's
    .env or .hansei/config.yaml never leaks into a test

Shared helpers build collaborator routers that behave like the real
auth/sales/analytics/upload/chatbot services from the gateway's point of view.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterator, Mapping, Optional

import pytest
import structlog
from fastapi import APIRouter, FastAPI, HTTPException, Request
from structlog.testing import capture_logs

from hansei.config import Config
from hansei.constants import SERVICE_PREFIXES
from hansei.main import create_app

_GATEWAY_ENV_VARS = (
    "HANSEI_CONFIG",
    "HANSEI_PORT",
    "HANSEI_HOST",
    "HANSEI_ALLOWED_ORIGINS",
    "PORT",
)


@pytest.fixture(autouse=True)
def isolate_gateway_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory
) -> None:
    """Clear env overrides and default config paths for every test."""
    for name in _GATEWAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("hansei.config.DEFAULT_CONFIG_PATHS", [])
    monkeypatch.chdir(tmp_path_factory.mktemp("cwd"))


@pytest.fixture()
def captured_logs() -> Iterator[list[dict[str, Any]]]:
    """Collect structlog events emitted during the test as plain dicts.

    Module loggers are cached on first use, which would bind them to the
    processors configured at import time, so caching is turned off first.
    """
    structlog.configure(cache_logger_on_first_use=False)
    with capture_logs() as logs:
        yield logs


# ─── Collaborator helpers ────────────────────────────────────────────────────


def make_service_router(name: str) -> APIRouter:
    """A well-behaved collaborator router, with a few failure endpoints."""
    router = APIRouter()

    @router.get("/ping")
    async def ping() -> dict[str, str]:
        return {"service": name}

    @router.post("/echo")
    async def echo(request: Request) -> dict[str, int]:
        body = await request.body()
        return {"received_bytes": len(body)}

    @router.get("/boom")
    async def boom() -> dict[str, str]:
        raise RuntimeError(f"{name} exploded")

    @router.get("/missing")
    async def missing() -> dict[str, str]:
        raise HTTPException(status_code=404, detail=f"{name} record not found")

    @router.get("/slow")
    async def slow() -> dict[str, str]:
        await asyncio.sleep(0.05)
        return {"service": name, "slow": "done"}

    return router


def _healthy_factories() -> dict[str, Callable[[], APIRouter]]:
    return {name: (lambda n=name: make_service_router(n)) for name in SERVICE_PREFIXES}


def _failing_factory(message: str = "cannot import collaborator") -> Callable[[], APIRouter]:
    def _load() -> APIRouter:
        raise ImportError(message)

    return _load


@pytest.fixture()
def healthy_factories() -> dict[str, Callable[[], APIRouter]]:
    """One working factory per service."""
    return _healthy_factories()


@pytest.fixture()
def failing_factory() -> Callable[..., Callable[[], APIRouter]]:
    """failing_factory(message) → factory raising ImportError(message)."""
    return _failing_factory


@pytest.fixture()
def build_app() -> Callable[..., FastAPI]:
    """Factory fixture: build_app(config=None, factories=None) → FastAPI."""

    def _build(
        config: Optional[Config] = None,
        factories: Optional[Mapping[str, Callable[[], APIRouter]]] = None,
    ) -> FastAPI:
        return create_app(
            config or Config.defaults(),
            collaborator_factories=_healthy_factories() if factories is None else factories,
        )

    return _build
