"""Shared constants for the Hansei gateway.

All size limits, CORS header sets and route prefixes used across modules are
defined here. No magic values in other modules — import from here.
"""

# ─── Request Size Limits ─────────────────────────────────────────────────────

# Maximum allowed request body size (JSON and urlencoded bodies alike).
# HTTP 413 is returned for bodies exceeding this limit, before any route
# group sees the request.
MAX_REQUEST_BODY_BYTES: int = 10_485_760  # 10 MB = 10,485,760 bytes

# ─── Server Defaults ─────────────────────────────────────────────────────────

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 3000

# ─── CORS ────────────────────────────────────────────────────────────────────

# Frontends allowed to call the gateway. "null" covers pages opened straight
# from the filesystem (file:// origin).
DEFAULT_ALLOWED_ORIGINS: tuple[str, ...] = (
    "http://localhost",
    "http://127.0.0.1",
    "null",
    "https://chennai-fe.vercel.app",
    "https://chennai-frontend.vercel.app",
    "https://daikin-n9wy.onrender.com",
)

CORS_ALLOWED_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "OPTIONS")

CORS_ALLOWED_HEADERS: tuple[str, ...] = (
    "Origin",
    "X-Requested-With",
    "Content-Type",
    "Accept",
    "Authorization",
)

# Status code for a successful preflight. Some legacy browsers choke on 204.
PREFLIGHT_STATUS_CODE: int = 200

# ─── Routing ─────────────────────────────────────────────────────────────────

HEALTH_PATH: str = "/api/health"

# Service name → mount prefix, in mount order.
SERVICE_PREFIXES: dict[str, str] = {
    "auth": "/api/auth",
    "sales": "/api/sales",
    "analytics": "/api/analytics",
    "upload": "/api/upload",
    "chatbot": "/api/chatbot",
}

# Endpoints advertised by the 404 responder.
AVAILABLE_ENDPOINTS: tuple[str, ...] = (HEALTH_PATH, *SERVICE_PREFIXES.values())

# ─── Request Tracing ─────────────────────────────────────────────────────────

REQUEST_ID_HEADER: str = "X-Request-ID"
