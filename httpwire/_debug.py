"""Debug logging infrastructure for wire diagnostics.

Provides logger instances under the ``httpwire.wire.*`` hierarchy and
formatting helpers for message heads.  Enabling
``logging.getLogger("httpwire.wire").setLevel(logging.DEBUG)`` shows every
start line and header block that crosses the wire.

All formatting helpers return ``str`` and never log directly.
They are designed to be called inside ``isEnabledFor`` guards so
there is zero overhead when debug logging is disabled.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

# ---------------------------------------------------------------------------
# Logger hierarchy: httpwire.wire.*
# ---------------------------------------------------------------------------

wire_request_logger = logging.getLogger("httpwire.wire.request")
"""Request serialization / parsing."""

wire_response_logger = logging.getLogger("httpwire.wire.response")
"""Response serialization / parsing."""

wire_transport_logger = logging.getLogger("httpwire.wire.transport")
"""Transport lifecycle (connect, listen, accept, close)."""

# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

_MAX_VALUE_LEN = 80
"""Maximum repr length for individual header values in fmt_headers."""


def fmt_line(line: bytes | str) -> str:
    """Format a raw wire line with its terminator made visible.

    Returns:
        ``"'GET / HTTP/1.1\\r\\n'"``

    """
    if isinstance(line, bytes):
        line = line.decode("iso-8859-1")
    return repr(line)


def fmt_headers(headers: Iterable[tuple[str, str]]) -> str:
    """Format a header sequence compactly.

    Returns:
        ``"{Host='example.com', Accept='*/*'}"`` or ``"{}"`` when empty.

    """
    parts: list[str] = []
    for key, value in headers:
        if len(value) > _MAX_VALUE_LEN:
            value = value[:_MAX_VALUE_LEN] + "..."
        parts.append(f"{key}={value!r}")
    return "{" + ", ".join(parts) + "}"


def fmt_peer(address: object) -> str:
    """Format a socket address as ``host:port`` (or ``repr`` for anything else)."""
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return repr(address)
