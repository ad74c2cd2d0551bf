"""Opening client connections, listening sockets, and accepting clients.

Transport is TCP over IPv4 only.  Every function returns (or wraps into) a
:class:`~httpwire._stream.DuplexStream`; failures are raised as
:class:`~httpwire.TransportError` (system call failed),
:class:`~httpwire.ResolutionError` (name lookup failed) or
:class:`~httpwire.AcceptInterrupted` (accept gave up early, try again).
"""

from __future__ import annotations

import logging
import socket

from httpwire._common import AcceptInterrupted, ResolutionError, TransportError
from httpwire._debug import fmt_peer, wire_transport_logger
from httpwire._stream import DuplexStream


def _resolve(host: str | None, port: int | str, *, passive: bool = False) -> tuple[int, int, int, tuple[str, int]]:
    """Resolve to the first IPv4 stream address for *host*:*port*."""
    try:
        infos = socket.getaddrinfo(
            host,
            port,
            family=socket.AF_INET,
            type=socket.SOCK_STREAM,
            flags=socket.AI_PASSIVE if passive else 0,
        )
    except socket.gaierror as exc:
        # EAI_SYSTEM means the resolver hit an OS error; report it like one
        if exc.errno == getattr(socket, "EAI_SYSTEM", None):
            raise TransportError.from_os_error(f"Failed to resolve {host}:{port}", exc) from exc
        raise ResolutionError(f"Failed to resolve {host}:{port}", strerror=exc.strerror or str(exc)) from exc
    if not infos:
        raise ResolutionError(f"Failed to resolve {host}:{port}", strerror="no IPv4 address found")
    family, socktype, proto, _canonname, sockaddr = infos[0]
    return family, socktype, proto, sockaddr  # type: ignore[return-value]


def connect_client(host: str, port: int | str, *, timeout: float | None = None) -> DuplexStream:
    """Open a TCP connection to *host*:*port* and wrap it in a stream.

    Args:
        host: Host name or dotted IPv4 address.
        port: Port number or service name.
        timeout: Optional timeout (seconds) for connect and later I/O.
            ``None`` blocks indefinitely.

    Raises:
        ResolutionError: If *host* cannot be resolved.
        TransportError: If the socket cannot be created or connected.

    """
    family, socktype, proto, sockaddr = _resolve(host, port)
    try:
        sock = socket.socket(family, socktype, proto)
    except OSError as exc:
        raise TransportError.from_os_error("Failed to create socket", exc) from exc
    try:
        sock.settimeout(timeout)
        sock.connect(sockaddr)
    except OSError as exc:
        sock.close()
        raise TransportError.from_os_error(f"Failed to connect to {fmt_peer(sockaddr)}", exc) from exc
    if wire_transport_logger.isEnabledFor(logging.DEBUG):
        wire_transport_logger.debug("connect_client: connected to %s, fd=%d", fmt_peer(sockaddr), sock.fileno())
    return DuplexStream.from_socket(sock, peer=sockaddr)


def open_listener(
    port: int | str,
    *,
    host: str = "",
    backlog: int = 1,
    poll_interval: float | None = 0.5,
) -> socket.socket:
    """Create, bind and listen an IPv4 TCP socket.

    Args:
        port: Port to bind; ``0`` picks an ephemeral port.
        host: Address to bind; ``""`` is the wildcard address.
        backlog: Listen queue length.
        poll_interval: Timeout for each ``accept()`` so the caller can check
            for shutdown between waits.  ``None`` blocks indefinitely.

    Raises:
        ResolutionError: If *port* is not a valid service.
        TransportError: If any socket call fails.

    """
    family, socktype, proto, sockaddr = _resolve(host or None, port, passive=True)
    try:
        sock = socket.socket(family, socktype, proto)
    except OSError as exc:
        raise TransportError.from_os_error("Failed to open socket", exc) from exc
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(sockaddr)
        sock.listen(backlog)
        sock.settimeout(poll_interval)
    except OSError as exc:
        sock.close()
        raise TransportError.from_os_error(f"Failed to listen on {fmt_peer(sockaddr)}", exc) from exc
    if wire_transport_logger.isEnabledFor(logging.DEBUG):
        wire_transport_logger.debug(
            "open_listener: listening on %s, backlog=%d, fd=%d",
            fmt_peer(sock.getsockname()),
            backlog,
            sock.fileno(),
        )
    return sock


def accept_connection(listener: socket.socket, *, timeout: float | None = None) -> DuplexStream:
    """Block until a client connects and wrap the accepted socket.

    Args:
        listener: Socket returned by :func:`open_listener`.
        timeout: I/O timeout for the accepted connection; ``None`` blocks.

    Raises:
        AcceptInterrupted: If the wait ended on the poll timeout or a signal.
        TransportError: If ``accept()`` failed.

    """
    try:
        conn, addr = listener.accept()
    except (TimeoutError, InterruptedError) as exc:
        raise AcceptInterrupted(str(exc) or type(exc).__name__) from exc
    except OSError as exc:
        raise TransportError.from_os_error("Failed to accept client connection", exc) from exc
    conn.settimeout(timeout)
    if wire_transport_logger.isEnabledFor(logging.DEBUG):
        wire_transport_logger.debug("accept_connection: peer=%s, fd=%d", fmt_peer(addr), conn.fileno())
    return DuplexStream.from_socket(conn, peer=addr)
