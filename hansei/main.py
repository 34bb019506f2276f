"""Hansei gateway FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — testable application factory
  - lifespan     — @asynccontextmanager startup banner / shutdown log

Request pipeline (outermost first):
  ErrorResponderMiddleware   → turns anything raised below into a JSON error
  RequestLoggingMiddleware   → request id + access log
  OriginGateMiddleware       → allow-list check, preflight answers, CORS headers
  BodySizeLimitMiddleware    → 10 MB body cap
  router                     → /, /api/health, then the five route groups
  404 responder              → exception handler for unmatched paths

Run with the programmatic entry point (hansei/run.py), or directly:
  uvicorn hansei.main:create_app --factory --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Mapping, Optional

from fastapi import FastAPI

from hansei.config import Config, load_config
from hansei.cors import OriginGate, OriginGateMiddleware
from hansei.health import router as health_router
from hansei.middleware import BodySizeLimitMiddleware, RequestLoggingMiddleware
from hansei.responders import ErrorResponderMiddleware, register_error_handlers
from hansei.routing import CollaboratorFactory, build_specs, load_collaborators
from hansei.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
# Configure logging at module import time (before any other module logs).
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Log the startup banner; log the drain on shutdown.

    Everything the gateway needs is built by create_app(), so startup only
    reports it. Shutdown runs after uvicorn has stopped accepting and the
    in-flight requests have finished.
    """
    config: Config = app.state.config
    groups = app.state.route_groups

    logger.info(
        "Hansei gateway started",
        url=f"http://localhost:{config.server.port}",
        host=config.server.host,
        port=config.server.port,
        cors_policy=config.cors.policy,
        health=f"http://localhost:{config.server.port}/api/health",
    )
    for origin in config.cors.allowed_origins:
        logger.info("Allowed origin", origin=origin)
    for group in groups:
        logger.info(
            "Route group mounted",
            service=group.spec.name,
            prefix=group.spec.prefix,
            available=group.available,
        )

    yield

    logger.info("Shutdown requested, in-flight requests drained")
    logger.info("Hansei gateway closed")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app(
    config: Optional[Config] = None,
    collaborator_factories: Optional[Mapping[str, CollaboratorFactory]] = None,
) -> FastAPI:
    """Create and configure the Hansei gateway application.

    Call this function directly in unit tests to get an isolated app instance:
        app = create_app(Config.defaults(), collaborator_factories={...})

    Args:
        config: Gateway config. Loaded with load_config() when omitted.
        collaborator_factories: Optional service name → router factory
            overrides; services not listed use the module path from config.

    Returns:
        Configured FastAPI application with lifespan, routers and middleware.
    """
    if config is None:
        config = load_config()

    gate = OriginGate.from_config(config.cors)

    application = FastAPI(
        title="Hansei Gateway",
        description="CORS-gated entry point for the Hansei auth, sales, analytics, upload and chatbot services",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
        openapi_url="/openapi.json" if DEBUG else None,
    )
    application.state.config = config
    application.state.gate = gate

    register_error_handlers(application)

    # In Starlette the LAST-added middleware is OUTERMOST (runs first).
    application.add_middleware(BodySizeLimitMiddleware, max_body_bytes=config.limits.max_body_bytes)
    application.add_middleware(OriginGateMiddleware, gate=gate)
    application.add_middleware(RequestLoggingMiddleware)
    # Registered LAST so it wraps every other stage.
    application.add_middleware(ErrorResponderMiddleware, gate=gate)

    # / and /api/health go first and never depend on the collaborators.
    application.include_router(health_router)

    specs = build_specs(config.collaborators, collaborator_factories)
    groups = load_collaborators(specs, fallback=config.collaborators.fallback)
    for group in groups:
        application.include_router(group.router, prefix=group.spec.prefix)
    application.state.route_groups = groups

    return application
