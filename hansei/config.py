"""Config loading for the Hansei gateway.

Reads `.hansei/config.yaml` (or `~/.hansei/config.yaml`).
Raises SystemExit on parse errors, a missing `version` field or invalid enum
values. If no config file is found, returns default values (safe to run
without config).

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. HANSEI_CONFIG environment variable (if set)
  3. `.hansei/config.yaml` (working directory — for development)
  4. `~/.hansei/config.yaml` (home directory — for production deployments)

Environment variable overrides (applied after the file, so they always win):
  HANSEI_PORT            — overrides server.port
  PORT                   — overrides server.port when HANSEI_PORT is unset
                           (the variable hosting platforms inject)
  HANSEI_HOST            — overrides server.host
  HANSEI_ALLOWED_ORIGINS — comma-separated list replacing cors.allowed_origins

A `.env` file in the working directory is loaded before the environment is
read; variables already present in the process environment are not replaced.

Example config file::

    version: 1
    server:
      port: 8080
    cors:
      policy: loopback-any-port
      allowed_origins:
        - http://localhost
        - https://chennai-fe.vercel.app
    collaborators:
      fallback: independent
      modules:
        auth: backend.routes.auth
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import NoReturn, Optional

import yaml
from dotenv import find_dotenv, load_dotenv

from hansei.constants import (
    DEFAULT_ALLOWED_ORIGINS,
    DEFAULT_HOST,
    DEFAULT_PORT,
    MAX_REQUEST_BODY_BYTES,
    SERVICE_PREFIXES,
)
from hansei.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# ─── Validation sets ─────────────────────────────────────────────────────────

# "exact": origin must equal an allow-list entry.
# "loopback-any-port": exact, plus loopback entries accept any ":<port>" suffix.
VALID_CORS_POLICIES: frozenset[str] = frozenset({"exact", "loopback-any-port"})

# "atomic": one failing collaborator stubs all five route groups.
# "independent": only the failing collaborator is stubbed.
VALID_FALLBACK_MODES: frozenset[str] = frozenset({"atomic", "independent"})

DEFAULT_CONFIG_PATHS = [
    ".hansei/config.yaml",
    os.path.expanduser("~/.hansei/config.yaml"),
]


def _default_collaborator_modules() -> dict[str, str]:
    """Default import path per service: ``routes.<name>`` exporting ``router``."""
    return {name: f"routes.{name}" for name in SERVICE_PREFIXES}


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ServerConfig:
    """Listening socket configuration."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


@dataclass
class CorsConfig:
    """Origin gate configuration."""

    allowed_origins: list[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    policy: str = "exact"  # "exact" | "loopback-any-port"


@dataclass
class CollaboratorsConfig:
    """Route group loading configuration.

    modules: service name → importable module path. The module must export
             ``router`` (a FastAPI APIRouter).
    fallback: "atomic" | "independent"
    """

    modules: dict[str, str] = field(default_factory=_default_collaborator_modules)
    fallback: str = "atomic"


@dataclass
class LimitsConfig:
    """Request size limits."""

    max_body_bytes: int = MAX_REQUEST_BODY_BYTES


@dataclass
class Config:
    """Root configuration object populated from .hansei/config.yaml.

    All fields have safe defaults — the gateway can start without any config
    file. Built once at startup and passed to ``create_app()``; nothing reads
    the environment after that.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    server: ServerConfig = field(default_factory=ServerConfig)
    cors: CorsConfig = field(default_factory=CorsConfig)
    collaborators: CollaboratorsConfig = field(default_factory=CollaboratorsConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    path: Optional[str] = None  # Path to the loaded config file, if any

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently
        ignored. Collaborator modules are merged per service, so a file may
        override just one of them.

        Raises:
            SystemExit(1): On an invalid cors.policy or collaborators.fallback.
        """
        # ── Server ────────────────────────────────────────────────────────────
        server_raw = raw.get("server") or {}
        server = ServerConfig(
            host=server_raw.get("host", DEFAULT_HOST),
            port=server_raw.get("port", DEFAULT_PORT),
        )

        # ── CORS ──────────────────────────────────────────────────────────────
        cors_raw = raw.get("cors") or {}
        policy = cors_raw.get("policy", "exact")
        if policy not in VALID_CORS_POLICIES:
            _fail(
                f"CONFIG ERROR: Invalid cors.policy: '{policy}'. "
                f"Supported values: {sorted(VALID_CORS_POLICIES)}."
            )
        allowed_origins = cors_raw.get("allowed_origins", DEFAULT_ALLOWED_ORIGINS)
        if not isinstance(allowed_origins, (list, tuple)) or not all(
            isinstance(origin, str) for origin in allowed_origins
        ):
            _fail(
                "CONFIG ERROR: cors.allowed_origins must be a list of origin strings, "
                f"got: {allowed_origins!r}."
            )
        cors = CorsConfig(allowed_origins=list(allowed_origins), policy=policy)

        # ── Collaborators ─────────────────────────────────────────────────────
        collab_raw = raw.get("collaborators") or {}
        fallback = collab_raw.get("fallback", "atomic")
        if fallback not in VALID_FALLBACK_MODES:
            _fail(
                f"CONFIG ERROR: Invalid collaborators.fallback: '{fallback}'. "
                f"Supported values: {sorted(VALID_FALLBACK_MODES)}."
            )
        modules = _default_collaborator_modules()
        for name, module_path in (collab_raw.get("modules") or {}).items():
            if name not in SERVICE_PREFIXES:
                logger.warning("Unknown collaborator in config — ignored", service=name)
                continue
            modules[name] = module_path
        collaborators = CollaboratorsConfig(modules=modules, fallback=fallback)

        # ── Limits ────────────────────────────────────────────────────────────
        limits_raw = raw.get("limits") or {}
        limits = LimitsConfig(
            max_body_bytes=limits_raw.get("max_body_bytes", MAX_REQUEST_BODY_BYTES),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            server=server,
            cors=cors,
            collaborators=collaborators,
            limits=limits,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate gateway configuration.

    If no file is found at any search path, returns default Config (not an
    error). If a file is found but invalid, writes the error to stderr and
    raises SystemExit(1). Environment overrides are applied in both cases.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field,
                       unsupported version, invalid enum values, or an
                       invalid port override.
    """
    load_dotenv(find_dotenv(usecwd=True), override=False)

    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("HANSEI_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "The gateway refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _fail(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _fail(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _fail(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        _fail(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        cors_policy=config.cors.policy,
        fallback=config.collaborators.fallback,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If the port override is not a valid integer.
    """
    port_var = "HANSEI_PORT" if os.environ.get("HANSEI_PORT") is not None else "PORT"
    env_port = os.environ.get(port_var)
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            _fail(
                f"CONFIG ERROR: {port_var} environment variable is not a valid "
                f"integer: '{env_port}'"
            )

    env_host = os.environ.get("HANSEI_HOST")
    if env_host:
        config.server.host = env_host

    env_origins = os.environ.get("HANSEI_ALLOWED_ORIGINS")
    if env_origins:
        config.cors.allowed_origins = [
            origin.strip() for origin in env_origins.split(",") if origin.strip()
        ]


def _fail(msg: str) -> NoReturn:
    print(msg, file=sys.stderr)
    raise SystemExit(1)
