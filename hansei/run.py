"""Programmatic uvicorn entry point for the Hansei gateway.

Reads host and port from the loaded config (0.0.0.0:3000 by default), binds
the listening socket itself and hands it to uvicorn with the hardened
defaults below.

The socket is bound here rather than by uvicorn so bind failures can be
told apart:
  EACCES      → log, exit 1 (privileged port without privileges)
  EADDRINUSE  → log with a remediation hint, exit 1
  anything else → propagates

Shutdown: on SIGTERM/SIGINT uvicorn closes the listening socket (no new
connections), waits for in-flight requests for up to
UVICORN_TIMEOUT_GRACEFUL_SHUTDOWN seconds, runs the lifespan shutdown and
returns; the process then exits 0.

Usage:
    python -m hansei.run
    hansei-gateway              # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import errno
import signal
import socket
from types import FrameType
from typing import Optional

import uvicorn

from hansei.config import load_config
from hansei.main import LOG_LEVEL, create_app
from hansei.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Uvicorn hardened defaults ───────────────────────────────────────────────

# Maximum number of concurrent connections accepted by uvicorn.
# New connections receive HTTP 503 when this limit is exceeded.
UVICORN_LIMIT_CONCURRENCY: int = 100

# OS-level TCP connection backlog queue size.
UVICORN_BACKLOG: int = 50

# HTTP keep-alive timeout in seconds. Low value reduces the Slow Loris window.
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5

# Upper bound on the drain after a termination signal, in seconds.
UVICORN_TIMEOUT_GRACEFUL_SHUTDOWN: int = 30

# uvicorn's own exit code when the application fails to start.
STARTUP_FAILURE_EXIT_CODE: int = 3


def bind_socket(host: str, port: int) -> socket.socket:
    """Create and bind the listening TCP socket.

    uvicorn calls listen() on it when serving starts.

    Raises:
        SystemExit(1): Permission denied or address already in use.
        OSError: Any other bind failure.
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError as exc:
        sock.close()
        if exc.errno == errno.EACCES:
            logger.error(
                "Port requires elevated privileges",
                host=host,
                port=port,
                error=str(exc),
            )
            raise SystemExit(1) from exc
        if exc.errno == errno.EADDRINUSE:
            logger.error(
                "Port is already in use",
                host=host,
                port=port,
                hint=f"Stop the process holding it (kill $(lsof -ti:{port})) "
                "or set HANSEI_PORT / PORT to a free port",
            )
            raise SystemExit(1) from exc
        logger.error("Server socket error", host=host, port=port, error=str(exc))
        raise
    sock.set_inheritable(True)
    return sock


def _log_termination(signum: int, frame: Optional[FrameType]) -> None:
    """Runs once uvicorn has finished draining and re-delivers the signal.

    Logging instead of dying keeps the exit status at 0 after a graceful
    shutdown.
    """
    logger.info("Termination signal handled", signal=signal.Signals(signum).name)


def main() -> None:
    """Start the Hansei gateway with hardened uvicorn defaults.

    Raises:
        SystemExit: From load_config() on config errors, from bind_socket()
            on bind errors, or with STARTUP_FAILURE_EXIT_CODE when the
            application never finished starting.
    """
    config = load_config()
    application = create_app(config)

    host = config.server.host
    port = config.server.port
    sock = bind_socket(host, port)

    server = uvicorn.Server(
        uvicorn.Config(
            application,
            host=host,
            port=port,
            log_level=LOG_LEVEL.lower(),
            limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
            backlog=UVICORN_BACKLOG,
            timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
            timeout_graceful_shutdown=UVICORN_TIMEOUT_GRACEFUL_SHUTDOWN,
        )
    )

    signal.signal(signal.SIGTERM, _log_termination)
    signal.signal(signal.SIGINT, _log_termination)

    logger.info("Starting Hansei gateway", host=host, port=port)
    server.run(sockets=[sock])

    if not server.started:
        logger.error("Hansei gateway failed to start")
        raise SystemExit(STARTUP_FAILURE_EXIT_CODE)
    logger.info("Server closed")


if __name__ == "__main__":
    main()
