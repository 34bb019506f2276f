"""Liveness endpoints for the Hansei gateway.

Implements:
  GET /            — service banner
  GET /api/health  — health check, always HTTP 200 while the process serves

Both are mounted ahead of the five route groups and never depend on
whether the collaborators loaded. /api/health reports per-service
availability as extra information; a degraded service does not change
``status``.

/api/health is polled by:
  - the hosting platform's health probe
  - the frontends, to show a "backend connected" indicator
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request

from hansei.constants import HEALTH_PATH
from hansei.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


def _utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2026-01-01T00:00:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get("/")
async def root(request: Request) -> dict[str, Any]:
    """Root endpoint — service identity."""
    return {
        "message": "Hansei Backend is WORKING!",
        "cors": "ENABLED - Fixed Configuration",
        "health": HEALTH_PATH,
        "timestamp": _utc_timestamp(),
        "origin": request.headers.get("origin") or "null",
    }


@router.get(HEALTH_PATH)
async def health(request: Request) -> dict[str, Any]:
    """Health check endpoint.

    Response body (200):
        {
          "status": "healthy",
          "cors": "WORKING",
          "backend": "Chennai Backend Connected",
          "timestamp": "2026-01-01T00:00:00.000Z",
          "origin": "<request origin>" | "null",
          "services": {"auth": "available" | "unavailable", ...}
        }
    """
    origin = request.headers.get("origin")
    logger.info("Health check requested", origin=origin)

    groups = getattr(request.app.state, "route_groups", [])
    return {
        "status": "healthy",
        "cors": "WORKING",
        "backend": "Chennai Backend Connected",
        "timestamp": _utc_timestamp(),
        "origin": origin or "null",
        "services": {
            group.spec.name: "available" if group.available else "unavailable"
            for group in groups
        },
    }
