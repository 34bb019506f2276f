"""Origin gate middleware for the Hansei gateway.

Runs before the router on every request:
  - Denied origin → raises OriginDenied; the error responder (outermost
    middleware) turns it into HTTP 403 listing the allowed origins.
  - OPTIONS on any path → answered here with the CORS header set; the
    router and the mounted route groups never see preflights.
  - Allowed origin → request passes through and the CORS headers are added
    to whatever response comes back.
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from hansei.constants import PREFLIGHT_STATUS_CODE
from hansei.cors.gate import OriginGate
from hansei.utils.logger import get_logger

logger = get_logger(__name__)


def apply_cors_headers(response: Response, gate: OriginGate, origin: str | None) -> Response:
    """Merge the gate's CORS headers into ``response`` in place."""
    for name, value in gate.cors_headers(origin).items():
        if name == "Vary" and "vary" in response.headers:
            existing = response.headers["vary"]
            if "origin" not in existing.lower():
                response.headers["Vary"] = f"{existing}, {value}"
            continue
        response.headers[name] = value
    return response


class OriginGateMiddleware(BaseHTTPMiddleware):
    """Enforce the origin allow-list and answer CORS preflights.

    Registration (in create_app() in hansei/main.py):
        application.add_middleware(OriginGateMiddleware, gate=gate)
    """

    def __init__(self, app: ASGIApp, gate: OriginGate) -> None:
        super().__init__(app)
        self.gate = gate

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        origin = request.headers.get("origin")

        # Raises OriginDenied for disallowed origins, preflights included.
        self.gate.check(origin)

        if request.method == "OPTIONS":
            logger.debug("CORS preflight answered", origin=origin, path=request.url.path)
            return apply_cors_headers(
                Response(status_code=PREFLIGHT_STATUS_CODE), self.gate, origin
            )

        response = await call_next(request)
        return apply_cors_headers(response, self.gate, origin)
