"""Request guards for the Hansei gateway.

BodySizeLimitMiddleware
    Enforces the request body cap (10 MB by default, ``limits.max_body_bytes``)
    before any route group reads the body:
      1. Content-Length fast path: reject immediately on an oversized value.
      2. Chunked/streaming slow path: accumulate the body with a rolling cap.

RequestLoggingMiddleware
    Assigns every request a ULID request id, binds it into the log context,
    logs method, path, origin, status and duration, and returns the id in
    the ``X-Request-ID`` response header.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from hansei.constants import MAX_REQUEST_BODY_BYTES, REQUEST_ID_HEADER
from hansei.utils.logger import clear_request_id, get_logger, set_request_id
from hansei.utils.ulid import generate_request_id

logger = get_logger(__name__)

_INVALID_CONTENT_LENGTH_BODY: dict = {"error": "Invalid Content-Length header"}


def _payload_too_large(limit: int) -> JSONResponse:
    return JSONResponse(
        status_code=413,
        content={"error": "Request body too large", "limit": limit},
    )


# ─── Body size limit ──────────────────────────────────────────────────────────


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Starlette middleware enforcing a request body hard cap.

    - Content-Length > limit   → HTTP 413 (fast path, no body read)
    - Content-Length == limit  → accepted
    - Content-Length not an int → HTTP 400
    - No Content-Length, accumulated body > limit → HTTP 413 (rolling cap)
    - No Content-Length, accumulated body ≤ limit → accepted, body cached
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int = MAX_REQUEST_BODY_BYTES) -> None:
        super().__init__(app)
        self.max_body_bytes = max_body_bytes

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        content_length_header = request.headers.get("content-length")

        if content_length_header is not None:
            try:
                declared_size = int(content_length_header)
            except ValueError:
                logger.warning(
                    "Invalid Content-Length header",
                    value=content_length_header,
                    path=request.url.path,
                )
                return JSONResponse(status_code=400, content=_INVALID_CONTENT_LENGTH_BODY)

            if declared_size > self.max_body_bytes:
                logger.warning(
                    "Request body too large (Content-Length)",
                    declared_size=declared_size,
                    limit=self.max_body_bytes,
                    path=request.url.path,
                )
                return _payload_too_large(self.max_body_bytes)

            return await call_next(request)

        body_chunks: list[bytes] = []
        total_size: int = 0

        async for chunk in request.stream():
            total_size += len(chunk)
            if total_size > self.max_body_bytes:
                logger.warning(
                    "Request body too large (chunked)",
                    accumulated_size=total_size,
                    limit=self.max_body_bytes,
                    path=request.url.path,
                )
                return _payload_too_large(self.max_body_bytes)
            body_chunks.append(chunk)

        # Starlette's Request.body() checks request._body first, so handlers
        # downstream get the cached bytes instead of the consumed stream.
        request._body = b"".join(body_chunks)  # type: ignore[attr-defined]

        return await call_next(request)


# ─── Request logging ──────────────────────────────────────────────────────────


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request with a request id and echo the id to the client."""

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        set_request_id(request_id)
        start = time.perf_counter()
        origin = request.headers.get("origin") or "null"

        logger.info(
            "Request received",
            method=request.method,
            path=request.url.path,
            origin=origin,
        )
        try:
            response = await call_next(request)
            logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_request_id()
