"""Hansei origin gate — CORS allow-list enforcement.

Public API:
    Decision             — ALLOW / DENY
    OriginGate           — immutable allow-list + matching policy
    OriginGateMiddleware — Starlette middleware enforcing the gate
    apply_cors_headers   — merge the gate's headers into a response
"""
from hansei.cors.gate import Decision, OriginGate
from hansei.cors.middleware import OriginGateMiddleware, apply_cors_headers

__all__ = ["Decision", "OriginGate", "OriginGateMiddleware", "apply_cors_headers"]
