"""Gateway error taxonomy.

The error responder dispatches on these types, never on message text:

  OriginDenied   — request origin not in the allow-list (HTTP 403)
  RouteNotFound  — no route matched the request path (HTTP 404)
  InternalError  — anything else raised while handling a request (HTTP 500)
"""

from __future__ import annotations

from typing import Sequence


class GatewayError(Exception):
    """Base class for errors the gateway turns into JSON responses."""

    status_code: int = 500


class OriginDenied(GatewayError):
    """Raised by the origin gate when a declared origin is not allowed."""

    status_code = 403

    def __init__(self, origin: str, allowed_origins: Sequence[str]) -> None:
        self.origin = origin
        self.allowed_origins = tuple(allowed_origins)
        super().__init__(f"CORS Policy Violation: The origin {origin} is not allowed.")


class RouteNotFound(GatewayError):
    """No mounted route matched the request path."""

    status_code = 404

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Endpoint not found: {path}")


class InternalError(GatewayError):
    """Wraps an unexpected exception raised by a handler or middleware."""

    status_code = 500

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(str(cause))
