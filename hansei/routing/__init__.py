"""Hansei route groups — collaborator loading and degraded-mode stubs.

Public API:
    CollaboratorSpec  — service name, prefix and router factory
    MountedGroup      — router actually mounted for a service
    build_specs       — specs for the five services from config
    load_collaborators — run factories, apply the fallback mode
"""
from hansei.routing.collaborators import (
    CollaboratorFactory,
    CollaboratorLoadError,
    CollaboratorSpec,
    MountedGroup,
    build_specs,
    build_stub_router,
    load_collaborators,
    module_factory,
)

__all__ = [
    "CollaboratorFactory",
    "CollaboratorLoadError",
    "CollaboratorSpec",
    "MountedGroup",
    "build_specs",
    "build_stub_router",
    "load_collaborators",
    "module_factory",
]
