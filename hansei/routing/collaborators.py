"""Route group loading for the five gateway services.

Each service (auth, sales, analytics, upload, chatbot) is an external
collaborator: a module exporting ``router`` (a FastAPI APIRouter), reached
through a zero-argument factory. The gateway mounts whatever the factory
returns under the service's fixed prefix and never looks inside.

Fallback modes:
  atomic       All five factories form one unit. The first failure discards
               every router already loaded and all five prefixes get stubs.
  independent  Each factory is tried on its own; only failures get stubs.

A stub answers every method and sub-path of its prefix with HTTP 503 and
``{"error": "<Service> service temporarily unavailable"}``.

Load failures are logged here and never reach a client.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from hansei.config import CollaboratorsConfig
from hansei.constants import SERVICE_PREFIXES
from hansei.utils.logger import get_logger

logger = get_logger(__name__)

CollaboratorFactory = Callable[[], APIRouter]

# OPTIONS is absent on purpose: the origin gate answers every preflight.
_STUB_METHODS: list[str] = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


class CollaboratorLoadError(Exception):
    """A collaborator module was importable but did not export a usable router."""


@dataclass(frozen=True)
class CollaboratorSpec:
    """One service: where it mounts and how to obtain its router."""

    name: str
    prefix: str
    factory: CollaboratorFactory

    @property
    def unavailable_message(self) -> str:
        return f"{self.name.capitalize()} service temporarily unavailable"


@dataclass(frozen=True)
class MountedGroup:
    """The router actually mounted for a service, real or stub."""

    spec: CollaboratorSpec
    router: APIRouter
    available: bool
    error: Optional[str] = None


def module_factory(module_path: str, attr: str = "router") -> CollaboratorFactory:
    """Factory importing ``module_path`` and returning its ``router`` attribute."""

    def _load() -> APIRouter:
        module = importlib.import_module(module_path)
        router = getattr(module, attr, None)
        if router is None:
            raise CollaboratorLoadError(f"{module_path} has no '{attr}'")
        if not isinstance(router, APIRouter):
            raise CollaboratorLoadError(
                f"{module_path}.{attr} is {type(router).__name__}, expected APIRouter"
            )
        return router

    return _load


def build_specs(
    config: CollaboratorsConfig,
    factories: Optional[Mapping[str, CollaboratorFactory]] = None,
) -> list[CollaboratorSpec]:
    """One spec per service, in mount order.

    An explicit factory wins over the module path from config.
    """
    factories = factories or {}
    specs: list[CollaboratorSpec] = []
    for name, prefix in SERVICE_PREFIXES.items():
        factory = factories.get(name) or module_factory(config.modules[name])
        specs.append(CollaboratorSpec(name=name, prefix=prefix, factory=factory))
    return specs


def build_stub_router(spec: CollaboratorSpec) -> APIRouter:
    """Router answering 503 for the bare prefix and every path below it."""
    router = APIRouter(tags=[spec.name])
    message = spec.unavailable_message

    async def service_unavailable() -> JSONResponse:
        return JSONResponse(status_code=503, content={"error": message})

    router.add_api_route(
        "", service_unavailable, methods=_STUB_METHODS, include_in_schema=False
    )
    router.add_api_route(
        "/{path:path}", service_unavailable, methods=_STUB_METHODS, include_in_schema=False
    )
    return router


def load_collaborators(
    specs: list[CollaboratorSpec],
    fallback: str = "atomic",
) -> list[MountedGroup]:
    """Run every factory and decide what gets mounted per service.

    Returns one MountedGroup per spec, in the same order.
    """
    loaded: dict[str, APIRouter] = {}
    failures: dict[str, str] = {}

    for spec in specs:
        try:
            loaded[spec.name] = spec.factory()
        except Exception as exc:  # noqa: BLE001
            failures[spec.name] = f"{type(exc).__name__}: {exc}"
            logger.warning(
                "Route group failed to load",
                service=spec.name,
                prefix=spec.prefix,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            if fallback == "atomic":
                break

    if fallback == "atomic" and failures:
        failed_service, error = next(iter(failures.items()))
        logger.warning(
            "Some routes failed to load — all route groups replaced with stubs. "
            "Health endpoints still work.",
            failed_service=failed_service,
            error=error,
        )
        return [
            MountedGroup(spec=spec, router=build_stub_router(spec), available=False, error=error)
            for spec in specs
        ]

    groups: list[MountedGroup] = []
    for spec in specs:
        if spec.name in loaded:
            groups.append(MountedGroup(spec=spec, router=loaded[spec.name], available=True))
        else:
            groups.append(
                MountedGroup(
                    spec=spec,
                    router=build_stub_router(spec),
                    available=False,
                    error=failures.get(spec.name),
                )
            )

    if failures:
        logger.warning("Some routes failed to load", failed=sorted(failures))
    else:
        logger.info("All routes loaded successfully", services=[s.name for s in specs])
    return groups
