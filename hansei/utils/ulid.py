"""Request id generation for the Hansei gateway.

Every inbound request gets a ULID (26 chars, Crockford Base32, sortable by
creation time). It is bound into the log context and echoed back to the
client in the ``X-Request-ID`` response header so a frontend report can be
matched against the gateway logs.

Uses the `python-ulid` library — do NOT hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_request_id() -> str:
    """Return a new ULID string for tracing one request.

    Example::

        request_id = generate_request_id()
        # "01KJ0JRVHYA7KX32VPN5ZSCTMV"
        assert len(request_id) == 26
    """
    return str(ULID())
