"""Terminal responders for the Hansei gateway: 404 and error responses.

Response envelopes (all JSON, always with an ``error`` field):

  403 CORS violation:
      {"error": "CORS policy violation", "details": "<message>",
       "allowedOrigins": [...]}
  404 unmatched path:
      {"error": "Endpoint not found", "path": "/api/x",
       "availableEndpoints": ["/api/health", "/api/auth", ...]}
  500 anything else:
      {"error": "Internal server error", "message": "<message>"}

build_error_response() dispatches on the error type (see hansei/errors.py).
Errors reach it two ways:
  - raised inside a route → FastAPI exception handlers registered by
    register_error_handlers(); the response then still flows out through the
    origin gate and picks up CORS headers.
  - raised by a middleware or left unhandled → ErrorResponderMiddleware,
    registered last so it wraps every other stage.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from hansei.constants import AVAILABLE_ENDPOINTS
from hansei.cors import OriginGate, apply_cors_headers
from hansei.errors import GatewayError, InternalError, OriginDenied, RouteNotFound
from hansei.utils.logger import get_logger

logger = get_logger(__name__)


# ─── Builders ─────────────────────────────────────────────────────────────────


def build_origin_denied_response(exc: OriginDenied) -> JSONResponse:
    """HTTP 403 naming the rejected origin and every allowed origin."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "CORS policy violation",
            "details": str(exc),
            "allowedOrigins": list(exc.allowed_origins),
        },
    )


def build_not_found_response(exc: RouteNotFound) -> JSONResponse:
    """HTTP 404 naming the unmatched path and the known top-level endpoints."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "Endpoint not found",
            "path": exc.path,
            "availableEndpoints": list(AVAILABLE_ENDPOINTS),
        },
    )


def build_internal_error_response(exc: InternalError) -> JSONResponse:
    """HTTP 500 carrying the underlying error message."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "Internal server error", "message": str(exc)},
    )


def build_error_response(exc: BaseException) -> JSONResponse:
    """Map any error to its JSON response. Unknown errors become InternalError."""
    if isinstance(exc, OriginDenied):
        return build_origin_denied_response(exc)
    if isinstance(exc, RouteNotFound):
        return build_not_found_response(exc)
    if not isinstance(exc, InternalError):
        exc = InternalError(exc)
    return build_internal_error_response(exc)


# ─── Exception handlers (route-level errors) ─────────────────────────────────


def register_error_handlers(application: FastAPI) -> None:
    """Install the 404 responder and the typed error handler on ``application``."""

    @application.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        # The router raises 404 without setting an endpoint in scope when no
        # route matched. A 404 raised by a collaborator's own handler keeps
        # its detail.
        if exc.status_code == 404 and request.scope.get("endpoint") is None:
            logger.info("Route not found", path=request.url.path, method=request.method)
            return build_not_found_response(RouteNotFound(request.url.path))

        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @application.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        _log_error(request, exc)
        return build_error_response(exc)


# ─── Outermost middleware (middleware-level and unhandled errors) ────────────


class ErrorResponderMiddleware(BaseHTTPMiddleware):
    """Catch everything raised below and answer with the typed error envelope.

    MUST be added last in create_app() — in Starlette the last-added
    middleware is outermost, so this wraps the origin gate, request logging,
    the body size limit and the router.

    500 responses to an allowed origin still carry the CORS headers, so a
    browser can read the error body instead of reporting a CORS failure.
    """

    def __init__(self, app: ASGIApp, gate: OriginGate) -> None:
        super().__init__(app)
        self.gate = gate

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        try:
            return await call_next(request)
        except Exception as exc:  # noqa: BLE001
            _log_error(request, exc)
            response = build_error_response(exc)
            if not isinstance(exc, OriginDenied):
                origin = request.headers.get("origin")
                if self.gate.allows(origin):
                    apply_cors_headers(response, self.gate, origin)
            return response


def _log_error(request: Request, exc: BaseException) -> None:
    if isinstance(exc, OriginDenied):
        logger.warning(
            "CORS policy violation",
            origin=exc.origin,
            path=request.url.path,
            method=request.method,
        )
    elif isinstance(exc, RouteNotFound):
        logger.info("Route not found", path=exc.path, method=request.method)
    else:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
