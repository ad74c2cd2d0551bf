"""Shared test fixtures for httpwire tests."""

from __future__ import annotations

import contextlib
import socket
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

import pytest

from httpwire import DuplexStream, open_listener
from httpwire.server import FileServer, ServerConfig, ShutdownFlag

StreamFactory = Callable[[bytes], DuplexStream]
"""Type alias for the ``make_stream`` fixture return type."""

# ---------------------------------------------------------------------------
# In-memory streams
# ---------------------------------------------------------------------------


@pytest.fixture
def make_stream() -> StreamFactory:
    """Return a factory building a stream that reads *data* and writes into a ``BytesIO``."""

    def factory(data: bytes) -> DuplexStream:
        return DuplexStream(BytesIO(data), BytesIO())

    return factory


def written(stream: DuplexStream) -> bytes:
    """Return everything written to an in-memory stream from ``make_stream``."""
    writer = stream.writer
    assert isinstance(writer, BytesIO)
    return writer.getvalue()


@pytest.fixture
def output_of() -> Callable[[DuplexStream], bytes]:
    """Return the helper reading back what was written to an in-memory stream."""
    return written


# ---------------------------------------------------------------------------
# Document root
# ---------------------------------------------------------------------------


@pytest.fixture
def doc_root(tmp_path: Path) -> Path:
    """A small document tree to serve."""
    root = tmp_path / "www"
    root.mkdir()
    (root / "index.html").write_bytes(b"<html><body>home</body></html>")
    (root / "style.css").write_bytes(b"body { color: red; }")
    (root / "app.js").write_bytes(b"console.log('hi');")
    (root / "notes.txt").write_bytes(b"plain notes")
    (root / "blob.bin").write_bytes(bytes(range(256)) * 12)
    sub = root / "docs"
    sub.mkdir()
    (sub / "index.html").write_bytes(b"<p>docs</p>")
    (sub / "page.htm").write_bytes(b"<p>page</p>")
    (tmp_path / "secret.txt").write_bytes(b"outside the root")
    return root


# ---------------------------------------------------------------------------
# In-process server
# ---------------------------------------------------------------------------


@dataclass
class RunningServer:
    """Handle for a :class:`FileServer` running on a background thread."""

    port: int
    shutdown: ShutdownFlag
    thread: threading.Thread
    doc_root: Path

    @property
    def base_url(self) -> str:
        """``http://127.0.0.1:<port>``."""
        return f"http://127.0.0.1:{self.port}"


@contextlib.contextmanager
def running_server(config: ServerConfig) -> Iterator[RunningServer]:
    """Run ``FileServer.serve`` on a daemon thread until the block exits."""
    listener = open_listener(0, host="127.0.0.1", poll_interval=0.05)
    shutdown = ShutdownFlag()
    server = FileServer(config)
    thread = threading.Thread(target=server.serve, args=(listener, shutdown), daemon=True)
    thread.start()
    try:
        yield RunningServer(
            port=listener.getsockname()[1],
            shutdown=shutdown,
            thread=thread,
            doc_root=Path(config.doc_root),
        )
    finally:
        shutdown.set()
        thread.join(timeout=5)
        listener.close()


@pytest.fixture
def file_server(doc_root: Path) -> Iterator[RunningServer]:
    """A running server for *doc_root* on an ephemeral port."""
    with running_server(ServerConfig(doc_root=str(doc_root), port=0, poll_interval=0.05, io_timeout=5.0)) as srv:
        yield srv


def raw_exchange(port: int, payload: bytes, *, timeout: float = 5.0) -> bytes:
    """Send *payload* on a fresh connection and return everything the server sends back."""
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as sock:
        sock.sendall(payload)
        sock.shutdown(socket.SHUT_WR)
        chunks: list[bytes] = []
        while True:
            data = sock.recv(4096)
            if not data:
                break
            chunks.append(data)
    return b"".join(chunks)


@pytest.fixture
def exchange() -> Callable[..., bytes]:
    """Return the raw socket exchange helper."""
    return raw_exchange


@contextlib.contextmanager
def one_shot_server(reply: bytes) -> Iterator[int]:
    """Serve *reply* verbatim to a single connection, after reading its request head."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    listener.settimeout(5)

    def run() -> None:
        with contextlib.suppress(OSError):
            conn, _ = listener.accept()
            with conn:
                buf = b""
                while b"\r\n\r\n" not in buf:
                    data = conn.recv(4096)
                    if not data:
                        break
                    buf += data
                conn.sendall(reply)

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    try:
        yield listener.getsockname()[1]
    finally:
        thread.join(timeout=5)
        listener.close()


@pytest.fixture
def canned_server() -> Callable[[bytes], contextlib.AbstractContextManager[int]]:
    """Return a factory for a one-connection server that replies with fixed bytes."""
    return one_shot_server
