"""Origin gate — decides whether a request's declared origin may call the gateway.

allows() holds the only matching rule. The gate middleware calls it through
evaluate(), which also logs the decision; the error responder calls it
directly when deciding whether a 500 gets CORS headers.

Matching rules:
  - Absent or empty origin → ALLOW (curl, mobile apps, server-to-server).
  - Origin equal to an allow-list entry, ignoring one trailing slash on
    either side → ALLOW.
  - Policy "loopback-any-port" only: an origin also matches a loopback entry
    (host localhost, 127.0.0.1 or [::1], no explicit port) when it is the
    entry followed by ":<digits>". ``http://localhost.evil.com`` never
    matches ``http://localhost``.
  - Anything else → DENY.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit

from hansei.config import CorsConfig
from hansei.constants import CORS_ALLOWED_HEADERS, CORS_ALLOWED_METHODS
from hansei.errors import OriginDenied
from hansei.utils.logger import get_logger

logger = get_logger(__name__)

_LOOPBACK_HOSTS: frozenset[str] = frozenset({"localhost", "127.0.0.1", "::1"})

_ALLOW_METHODS_VALUE = ", ".join(CORS_ALLOWED_METHODS)
_ALLOW_HEADERS_VALUE = ", ".join(CORS_ALLOWED_HEADERS)


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


def _strip_trailing_slash(value: str) -> str:
    return value[:-1] if value.endswith("/") else value


def _is_portless_loopback(entry: str) -> bool:
    try:
        parts = urlsplit(entry)
        port = parts.port
    except ValueError:
        return False
    return parts.hostname in _LOOPBACK_HOSTS and port is None


@dataclass(frozen=True)
class OriginGate:
    """Immutable allow-list plus the matching policy applied to it."""

    allowed_origins: tuple[str, ...]
    policy: str = "exact"
    _normalized: frozenset[str] = field(init=False, repr=False)
    _loopback_entries: tuple[str, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        normalized = tuple(_strip_trailing_slash(o) for o in self.allowed_origins)
        object.__setattr__(self, "_normalized", frozenset(normalized))
        object.__setattr__(
            self,
            "_loopback_entries",
            tuple(o for o in normalized if _is_portless_loopback(o)),
        )

    @classmethod
    def from_config(cls, cors: CorsConfig) -> "OriginGate":
        return cls(allowed_origins=tuple(cors.allowed_origins), policy=cors.policy)

    def _matches(self, origin: str) -> bool:
        candidate = _strip_trailing_slash(origin)
        if candidate in self._normalized:
            return True
        if self.policy != "loopback-any-port":
            return False
        for entry in self._loopback_entries:
            prefix = entry + ":"
            if candidate.startswith(prefix) and candidate[len(prefix):].isdigit():
                return True
        return False

    def allows(self, origin: Optional[str]) -> bool:
        """Silent variant of evaluate() for callers that already logged."""
        return not origin or self._matches(origin)

    def evaluate(self, origin: Optional[str]) -> Decision:
        """Return ALLOW or DENY for a declared origin. Every call is logged."""
        decision = Decision.ALLOW if self.allows(origin) else Decision.DENY

        if decision is Decision.ALLOW:
            logger.info("CORS check: origin allowed", origin=origin, policy=self.policy)
        else:
            logger.warning("CORS check: origin NOT allowed", origin=origin, policy=self.policy)
        return decision

    def check(self, origin: Optional[str]) -> None:
        """Raise OriginDenied unless evaluate() allows the origin."""
        if self.evaluate(origin) is Decision.DENY:
            raise OriginDenied(origin or "", self.allowed_origins)

    def cors_headers(self, origin: Optional[str]) -> dict[str, str]:
        """Headers attached to every allowed response and preflight.

        Access-Control-Allow-Origin echoes the request origin (credentials
        forbid the "*" wildcard) and is omitted when no origin was declared.
        """
        headers = {
            "Access-Control-Allow-Credentials": "true",
            "Access-Control-Allow-Methods": _ALLOW_METHODS_VALUE,
            "Access-Control-Allow-Headers": _ALLOW_HEADERS_VALUE,
        }
        if origin:
            headers["Access-Control-Allow-Origin"] = origin
            headers["Vary"] = "Origin"
        return headers
