"""Constants, errors, and limits shared by the client and server."""

from __future__ import annotations

import errno as _errno
import logging
from dataclasses import dataclass
from typing import Final

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

HTTP_VERSION: Final[str] = "HTTP/1.1"
CRLF: Final[bytes] = b"\r\n"
CHUNK_SIZE: Final[int] = 1024
"""Fixed size of each body chunk copied onto the wire."""

WIRE_ENCODING: Final[str] = "iso-8859-1"
"""Start lines and header fields are latin-1 on the wire."""

_logger = logging.getLogger("httpwire")
_access_logger = logging.getLogger("httpwire.access")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class HttpWireError(Exception):
    """Base class for every failure raised by the message layer."""


class TransportError(HttpWireError):
    """An underlying socket or file call failed.

    Attributes:
        errno: The platform error number, or ``None`` when the failure did
            not come from a system call.
        strerror: The platform's description of the failure.

    """

    def __init__(self, message: str, *, errno: int | None = None, strerror: str | None = None) -> None:
        """Initialize with a context message and the optional system error details."""
        self.errno = errno
        self.strerror = strerror
        super().__init__(f"{message}: {strerror}" if strerror else message)

    @classmethod
    def from_os_error(cls, message: str, exc: OSError) -> TransportError:
        """Build from an ``OSError``, keeping its errno and description."""
        return cls(message, errno=exc.errno, strerror=exc.strerror or str(exc) or type(exc).__name__)

    @property
    def interrupted(self) -> bool:
        """Whether the call was cut short by a signal (EINTR)."""
        return self.errno == _errno.EINTR


class ResolutionError(TransportError):
    """Name resolution failed; carries the resolver's message instead of an errno."""


class AcceptInterrupted(HttpWireError):
    """``accept()`` returned without a connection (poll timeout or signal).

    Not a failure: the accept loop checks its shutdown flag and tries again.
    """


class ProtocolError(HttpWireError):
    """The peer sent a malformed start line or header block."""


class ConnectionClosedError(HttpWireError):
    """The stream ended cleanly where more of the message head was expected."""


class ResourceExhaustedError(HttpWireError):
    """Allocation failed, or a configured parser limit was exceeded."""


# ---------------------------------------------------------------------------
# Parser limits
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParserLimits:
    """Bounds applied while reading a message head.

    Attributes:
        max_line_bytes: Longest accepted start or header line, terminator
            included.
        max_headers: Largest accepted number of header lines.

    Raises:
        ValueError: If either bound is < 1.

    """

    max_line_bytes: int = 64 * 1024
    max_headers: int = 1024

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_line_bytes < 1:
            raise ValueError(f"max_line_bytes must be >= 1, got {self.max_line_bytes}")
        if self.max_headers < 1:
            raise ValueError(f"max_headers must be >= 1, got {self.max_headers}")


DEFAULT_LIMITS: Final[ParserLimits] = ParserLimits()
