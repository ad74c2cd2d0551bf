"""Duplex byte stream protocol and its socket-backed implementation."""

from __future__ import annotations

import contextlib
import logging
import socket
from io import IOBase
from types import TracebackType
from typing import BinaryIO, Protocol, runtime_checkable

from httpwire._common import TransportError
from httpwire._debug import fmt_peer, wire_transport_logger

# ---------------------------------------------------------------------------
# ByteStream protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ByteStream(Protocol):
    """Buffered, line-capable duplex byte stream."""

    def read_line(self, limit: int = -1) -> bytes:
        """Read up to and including the next ``\\n`` (``b""`` at end-of-stream)."""
        ...

    def read_chunk(self, size: int) -> bytes:
        """Read up to *size* bytes (``b""`` at end-of-stream)."""
        ...

    def write(self, data: bytes) -> None:
        """Write all of *data*."""
        ...

    def flush(self) -> None:
        """Push buffered writes to the peer."""
        ...

    def close(self) -> None:
        """Close the stream."""
        ...


# ---------------------------------------------------------------------------
# DuplexStream
# ---------------------------------------------------------------------------


class DuplexStream:
    """Stream backed by a reader and a writer, optionally owning a socket.

    Built from a connected socket via :meth:`from_socket`, or directly from
    any pair of binary file objects (e.g. ``BytesIO``) for in-memory use.
    ``OSError`` from the underlying objects surfaces as
    :class:`~httpwire.TransportError`.
    """

    __slots__ = ("_closed", "_peer", "_reader", "_sock", "_writer")

    def __init__(
        self,
        reader: IOBase | BinaryIO,
        writer: IOBase | BinaryIO,
        *,
        sock: socket.socket | None = None,
        peer: object = None,
    ) -> None:
        """Initialize with reader and writer streams and the socket they wrap, if any."""
        self._reader = reader
        self._writer = writer
        self._sock = sock
        self._peer = peer
        self._closed = False

    @classmethod
    def from_socket(cls, sock: socket.socket, peer: object = None) -> DuplexStream:
        """Wrap a connected socket in buffered read and write files."""
        return cls(sock.makefile("rb"), sock.makefile("wb"), sock=sock, peer=peer)

    @property
    def reader(self) -> IOBase | BinaryIO:
        """Readable binary stream."""
        return self._reader

    @property
    def writer(self) -> IOBase | BinaryIO:
        """Writable binary stream."""
        return self._writer

    @property
    def peer(self) -> object:
        """Remote address of the underlying socket, if known."""
        return self._peer

    @property
    def closed(self) -> bool:
        """Whether :meth:`close` has been called."""
        return self._closed

    def read_line(self, limit: int = -1) -> bytes:
        """Read up to and including the next ``\\n``.

        Args:
            limit: Stop after this many bytes even without a newline
                (``-1`` for no limit).

        Returns:
            The line with its terminator, a partial line at end-of-stream,
            or ``b""`` when the stream is exhausted.

        """
        try:
            return self._reader.readline(limit)
        except OSError as exc:
            raise TransportError.from_os_error("Failed to read from stream", exc) from exc

    def read_chunk(self, size: int) -> bytes:
        """Read up to *size* bytes; fewer only at end-of-stream."""
        try:
            return self._reader.read(size) or b""
        except OSError as exc:
            raise TransportError.from_os_error("Failed to read from stream", exc) from exc

    def write(self, data: bytes) -> None:
        """Write all of *data* into the write buffer."""
        try:
            self._writer.write(data)
        except OSError as exc:
            raise TransportError.from_os_error("Failed to write to stream", exc) from exc

    def flush(self) -> None:
        """Push buffered writes to the peer."""
        try:
            self._writer.flush()
        except OSError as exc:
            raise TransportError.from_os_error("Failed to flush stream", exc) from exc

    def close(self) -> None:
        """Close both directions and the socket.  Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        if wire_transport_logger.isEnabledFor(logging.DEBUG):
            wire_transport_logger.debug("DuplexStream closing: peer=%s", fmt_peer(self._peer))
        # A peer that already hung up makes the final flush fail; the stream is going away regardless.
        with contextlib.suppress(OSError, ValueError):
            self._writer.close()
        with contextlib.suppress(OSError, ValueError):
            self._reader.close()
        if self._sock is not None:
            self._sock.close()

    def __enter__(self) -> DuplexStream:
        """Enter context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Close on exit."""
        self.close()


def make_stream_pair() -> tuple[DuplexStream, DuplexStream]:
    """Create two connected streams over ``socket.socketpair()``.

    Returns (client_stream, server_stream).
    """
    a, b = socket.socketpair()
    if wire_transport_logger.isEnabledFor(logging.DEBUG):
        wire_transport_logger.debug("make_stream_pair: fds=(%d,%d)", a.fileno(), b.fileno())
    return DuplexStream.from_socket(a, peer="socketpair"), DuplexStream.from_socket(b, peer="socketpair")
