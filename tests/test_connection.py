# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Tests for socket setup: listeners, client connections and accept."""

from __future__ import annotations

import contextlib
import socket
import threading

import pytest

from httpwire import (
    AcceptInterrupted,
    DuplexStream,
    Method,
    Request,
    ResolutionError,
    Response,
    StatusLine,
    TransportError,
    accept_connection,
    connect_client,
    make_stream_pair,
    open_listener,
    receive_request,
    receive_response,
    send_request,
    send_response,
)


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


# ---------------------------------------------------------------------------
# Listener and accept
# ---------------------------------------------------------------------------


class TestListener:
    """open_listener and accept_connection."""

    def test_ephemeral_port_is_ipv4(self) -> None:
        """Binding port 0 yields an IPv4 listener with a real port."""
        listener = open_listener(0, host="127.0.0.1")
        with contextlib.closing(listener):
            assert listener.family == socket.AF_INET
            assert listener.getsockname()[1] > 0
            assert listener.getsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR) != 0

    def test_accept_times_out_as_interrupted(self) -> None:
        """With no client, the poll timeout ends accept without a failure."""
        listener = open_listener(0, host="127.0.0.1", poll_interval=0.05)
        with contextlib.closing(listener), pytest.raises(AcceptInterrupted):
            accept_connection(listener)

    def test_accept_interrupted_is_not_transport_error(self) -> None:
        """Callers can retry on AcceptInterrupted without catching real failures."""
        assert not issubclass(AcceptInterrupted, TransportError)

    def test_accept_on_closed_listener(self) -> None:
        """Accepting on a closed socket is a transport failure."""
        listener = open_listener(0, host="127.0.0.1")
        listener.close()
        with pytest.raises(TransportError):
            accept_connection(listener)

    def test_port_in_use(self) -> None:
        """A second non-reusable bind of a listening port fails."""
        first = open_listener(0, host="127.0.0.1")
        with contextlib.closing(first):
            port = first.getsockname()[1]
            with pytest.raises(TransportError) as exc_info:
                open_listener(port, host="127.0.0.1")
            assert exc_info.value.errno is not None

    def test_round_trip_over_tcp(self) -> None:
        """A request written by the client is parsed by the accepted side, and back."""
        listener = open_listener(0, host="127.0.0.1", poll_interval=5)
        port = listener.getsockname()[1]
        received: list[Request] = []

        def serve() -> None:
            with accept_connection(listener, timeout=5) as stream:
                received.append(receive_request(stream))
                send_response(stream, Response(StatusLine(200, "OK"), [("X-Echo", "yes")]))

        thread = threading.Thread(target=serve, daemon=True)
        thread.start()
        try:
            with connect_client("127.0.0.1", port, timeout=5) as client:
                assert isinstance(client, DuplexStream)
                send_request(client, Request(Method.GET, "/hello", [("Host", "localhost")]))
                res = receive_response(client)
            thread.join(timeout=5)
        finally:
            listener.close()

        assert received[0].method is Method.GET
        assert received[0].path == "/hello"
        assert received[0].headers.get("Host") == "localhost"
        assert res.status.code == 200
        assert res.headers.get("X-Echo") == "yes"
        assert res.headers.get("Content-Length") == "0"
        assert res.headers.get("Connection") == "close"


# ---------------------------------------------------------------------------
# Client connections
# ---------------------------------------------------------------------------


class TestConnectClient:
    """Name resolution and connect failures."""

    def test_unresolvable_host(self) -> None:
        """A name the resolver rejects raises ResolutionError with a message."""
        with pytest.raises(ResolutionError) as exc_info:
            connect_client("nonexistent.invalid", 80, timeout=5)
        assert exc_info.value.strerror

    def test_resolution_error_is_transport_error(self) -> None:
        """Resolution failures can be handled as transport failures."""
        assert issubclass(ResolutionError, TransportError)

    def test_connection_refused(self) -> None:
        """Nothing listening on the port is a transport failure with errno."""
        with pytest.raises(TransportError) as exc_info:
            connect_client("127.0.0.1", _unused_port(), timeout=5)
        assert not isinstance(exc_info.value, ResolutionError)
        assert exc_info.value.errno is not None


# ---------------------------------------------------------------------------
# Stream pair and stream lifecycle
# ---------------------------------------------------------------------------


class TestStreams:
    """Socket-backed stream behaviour."""

    def test_stream_pair_exchange(self) -> None:
        """Bytes written on one end are read line-by-line on the other."""
        left, right = make_stream_pair()
        with left, right:
            left.write(b"first\r\nsecond\r\n")
            left.flush()
            assert right.read_line() == b"first\r\n"
            assert right.read_line() == b"second\r\n"

    def test_end_of_stream_after_peer_close(self) -> None:
        """Once the peer closes, reads return empty bytes."""
        left, right = make_stream_pair()
        with right:
            left.close()
            assert right.read_line() == b""
            assert right.read_chunk(10) == b""

    def test_close_is_idempotent(self) -> None:
        """Closing twice is harmless and marks the stream closed."""
        left, right = make_stream_pair()
        right.close()
        left.close()
        left.close()
        assert left.closed

    def test_peer_recorded(self) -> None:
        """Streams from a pair carry a descriptive peer."""
        left, right = make_stream_pair()
        with left, right:
            assert left.peer == "socketpair"
