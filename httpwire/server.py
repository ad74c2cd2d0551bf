# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Iterative static-file server.

Connections are served strictly one at a time: accept, read the request,
respond, close, repeat.  A slow peer holds up every other client for the
duration of its connection.

Shutdown is cooperative.  :class:`ShutdownFlag` is set from a signal
handler (see :func:`install_signal_handlers`) and checked only at the top
of the accept loop, so an exchange that has started always runs to
completion.

Loggers: ``httpwire.server`` for lifecycle and per-connection failures,
``httpwire.access`` for one record per served connection.
"""

from __future__ import annotations

import contextlib
import logging
import os
import signal
import socket
import time
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from types import FrameType
from typing import Any, Final

from httpwire._common import (
    CHUNK_SIZE,
    AcceptInterrupted,
    ConnectionClosedError,
    ParserLimits,
    ProtocolError,
    ResourceExhaustedError,
    TransportError,
    _access_logger,
)
from httpwire._connection import accept_connection, open_listener
from httpwire._debug import fmt_peer
from httpwire._stream import DuplexStream
from httpwire._types import Method, Request, Response, StatusLine
from httpwire._wire import drain_head, receive_request, send_response

_logger = logging.getLogger("httpwire.server")

_MIME_TYPES: Final[dict[str, str]] = {
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
}

BAD_REQUEST: Final = StatusLine(400, "Bad Request")
FORBIDDEN: Final = StatusLine(403, "Forbidden")
NOT_FOUND: Final = StatusLine(404, "Not Found")
HEADERS_TOO_LARGE: Final = StatusLine(431, "Request Header Fields Too Large")
INTERNAL_ERROR: Final = StatusLine(500, "Internal Server Error")
NOT_IMPLEMENTED: Final = StatusLine(501, "Not implemented")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServerConfig:
    """Configuration for :class:`FileServer` and :func:`run_server`.

    Attributes:
        doc_root: Directory files are served from.
        port: TCP port to listen on (``0`` for an ephemeral port).
        index: File served for paths ending in ``/``.
        host: Address to bind; ``""`` is the IPv4 wildcard.
        backlog: Listen queue length.
        poll_interval: Seconds between shutdown-flag checks while idle.
        io_timeout: Per-connection read/write timeout; ``None`` blocks.
        chunk_size: Bytes per body chunk written to the wire.
        limits: Bounds applied to incoming request heads.

    Raises:
        ValueError: If a numeric field is out of range or *index* is empty.

    """

    doc_root: str
    port: int = 8080
    index: str = "index.html"
    host: str = ""
    backlog: int = 1
    poll_interval: float = 0.5
    io_timeout: float | None = None
    chunk_size: int = CHUNK_SIZE
    limits: ParserLimits = field(default_factory=ParserLimits)

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port must be in 0..65535, got {self.port}")
        if not self.index:
            raise ValueError("index must not be empty")
        if self.backlog < 1:
            raise ValueError(f"backlog must be >= 1, got {self.backlog}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {self.poll_interval}")
        if self.io_timeout is not None and self.io_timeout <= 0:
            raise ValueError(f"io_timeout must be > 0, got {self.io_timeout}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")


# ---------------------------------------------------------------------------
# Shutdown flag
# ---------------------------------------------------------------------------


class ShutdownFlag:
    """Process-wide stop request, safe to set from a signal handler.

    Setting it is a single attribute store.  The accept loop reads it only
    between connections.
    """

    __slots__ = ("_signum",)

    def __init__(self) -> None:
        """Initialize unset."""
        self._signum: int | None = None

    def set(self, signum: int = 0) -> None:
        """Request shutdown, remembering the signal that caused it (0 if none)."""
        self._signum = signum

    def is_set(self) -> bool:
        """Whether shutdown has been requested."""
        return self._signum is not None

    @property
    def signum(self) -> int | None:
        """Signal number that requested shutdown, ``0`` if set directly, ``None`` if unset."""
        return self._signum

    def handle_signal(self, signum: int, frame: FrameType | None) -> None:
        """Signal handler entry point."""
        self._signum = signum


def install_signal_handlers(
    flag: ShutdownFlag,
    signals: Iterable[signal.Signals] = (signal.SIGINT, signal.SIGTERM),
) -> dict[signal.Signals, Any]:
    """Route *signals* to ``flag.handle_signal``.

    Must be called from the main thread.

    Returns:
        The previous handlers, keyed by signal, for restoring later.

    """
    previous: dict[signal.Signals, Any] = {}
    for sig in signals:
        previous[sig] = signal.signal(sig, flag.handle_signal)
    return previous


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def content_type_for(path: str) -> str | None:
    """Infer a ``Content-Type`` from the file extension, or ``None`` if unknown."""
    return _MIME_TYPES.get(os.path.splitext(path)[1])


def _status_only(status: StatusLine) -> Response:
    """A body-less response carrying a copy of *status*."""
    return Response(replace(status))


def _emit_access_log(
    request: Request | None,
    status: int,
    body_bytes: int,
    peer: object,
    duration_ms: float,
) -> None:
    """Emit a structured access log record for a completed connection."""
    if not _access_logger.isEnabledFor(logging.INFO):
        return
    method = request.method.value if request is not None else "-"
    path = request.path if request is not None else "-"
    _access_logger.info(
        "%s %s %d",
        method,
        path,
        status,
        extra={
            "method": method,
            "path": path,
            "status": status,
            "bytes": body_bytes,
            "remote_addr": fmt_peer(peer),
            "duration_ms": round(duration_ms, 2),
        },
    )


# ---------------------------------------------------------------------------
# FileServer
# ---------------------------------------------------------------------------


class FileServer:
    """Serves files below ``config.doc_root`` to one connection at a time."""

    __slots__ = ("_config", "_real_root")

    def __init__(self, config: ServerConfig) -> None:
        """Initialize with a server configuration."""
        self._config = config
        self._real_root = os.path.realpath(config.doc_root)

    @property
    def config(self) -> ServerConfig:
        """The server configuration."""
        return self._config

    def resolve_path(self, request_path: str) -> str | None:
        """Map a request path to a file path below the document root.

        An empty path maps to the index file at the root, a path ending in
        ``/`` to the index file of that directory.  Any query string is
        ignored.

        Returns:
            The file path, or ``None`` if it would escape the document root.

        Raises:
            ValueError: If the path cannot name a file (for example, it
                contains a NUL byte).

        """
        target = request_path.split("?", 1)[0]
        if "\x00" in target:
            raise ValueError("embedded null byte in request path")
        root = self._config.doc_root
        if not target:
            candidate = os.path.join(root, self._config.index)
        elif target.endswith("/"):
            candidate = root + target + self._config.index
        else:
            candidate = root + target
        real = os.path.realpath(candidate)
        if os.path.commonpath([real, self._real_root]) != self._real_root:
            return None
        return candidate

    def serve(self, listener: socket.socket, shutdown: ShutdownFlag) -> None:
        """Accept and serve connections until *shutdown* is set."""
        while not shutdown.is_set():
            try:
                stream = accept_connection(listener, timeout=self._config.io_timeout)
            except AcceptInterrupted:
                continue
            except TransportError as exc:
                if not exc.interrupted:
                    _logger.error("Failed to accept client connection: %s", exc)
                continue
            with stream:
                try:
                    self.serve_connection(stream)
                except Exception:
                    _logger.exception("Unhandled error while serving %s", fmt_peer(stream.peer))
        _logger.info("Accept loop stopped (signal=%s)", shutdown.signum)

    def serve_connection(self, stream: DuplexStream) -> int | None:
        """Run one receive -> respond exchange on *stream*.

        The stream is not closed here.

        Returns:
            The status code sent, or ``None`` if nothing could be sent.

        """
        started = time.monotonic()
        try:
            request = receive_request(stream, limits=self._config.limits)
        except ProtocolError as exc:
            _logger.warning("Received malformed request from %s: %s", fmt_peer(stream.peer), exc)
            return self._reject(stream, BAD_REQUEST, started)
        except ResourceExhaustedError as exc:
            _logger.warning("Rejected oversized request from %s: %s", fmt_peer(stream.peer), exc)
            return self._reject(stream, HEADERS_TOO_LARGE, started)
        except ConnectionClosedError as exc:
            _logger.info("Connection from %s closed early: %s", fmt_peer(stream.peer), exc)
            return None
        except TransportError as exc:
            _logger.error("Error while reading request from %s: %s", fmt_peer(stream.peer), exc)
            return None

        try:
            response = self._handle(request)
            return self._send(stream, request, response, started)
        finally:
            request.release()

    def _reject(self, stream: DuplexStream, status: StatusLine, started: float) -> int | None:
        try:
            drain_head(stream, limits=self._config.limits)
        except TransportError as exc:
            _logger.debug("Failed to drain rejected request: %s", exc)
        return self._send(stream, None, _status_only(status), started)

    def _send(self, stream: DuplexStream, request: Request | None, response: Response, started: float) -> int | None:
        try:
            sent = send_response(stream, response, chunk_size=self._config.chunk_size)
        except TransportError as exc:
            _logger.error("Failed to send response to %s: %s", fmt_peer(stream.peer), exc)
            return None
        finally:
            # The message layer never closes a body; the server opened it, so it closes it
            if response.body is not None:
                response.body.close()
        _emit_access_log(request, response.status.code, sent, stream.peer, (time.monotonic() - started) * 1000)
        return response.status.code

    def _handle(self, request: Request) -> Response:
        if request.method is not Method.GET:
            return _status_only(NOT_IMPLEMENTED)
        try:
            path = self.resolve_path(request.path)
        except ValueError as exc:
            _logger.warning("Refused unusable path %r: %s", request.path, exc)
            return _status_only(BAD_REQUEST)
        if path is None:
            _logger.warning("Refused path outside document root: %r", request.path)
            return _status_only(FORBIDDEN)
        try:
            body = open(path, "rb")  # noqa: SIM115
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
            return _status_only(NOT_FOUND)
        except PermissionError:
            return _status_only(FORBIDDEN)
        except OSError as exc:
            _logger.error("Failed to access file %s: %s", path, exc)
            return _status_only(INTERNAL_ERROR)
        content_type = content_type_for(path)
        headers = [("Content-Type", content_type)] if content_type else []
        return Response(StatusLine(200, "OK"), headers, body)


def run_server(config: ServerConfig, shutdown: ShutdownFlag) -> None:
    """Open a listener from *config* and serve until *shutdown* is set.

    Raises:
        TransportError: If the listening socket cannot be opened.

    """
    listener = open_listener(
        config.port,
        host=config.host,
        backlog=config.backlog,
        poll_interval=config.poll_interval,
    )
    with contextlib.closing(listener):
        _logger.info("Serving %s on %s", config.doc_root, fmt_peer(listener.getsockname()))
        FileServer(config).serve(listener, shutdown)
