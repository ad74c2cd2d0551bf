# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""One-shot HTTP client: fetch a URL with ``GET`` and deliver the body.

Usage::

    from httpwire.client import fetch

    with open("page.html", "wb") as sink:
        response = fetch("http://example.com/page.html", sink)

Any failure raised by the message layer ends the fetch; a non-200 status
raises :class:`StatusError` before any body bytes are delivered.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import BinaryIO, Final

from httpwire._common import CHUNK_SIZE, HttpWireError
from httpwire._connection import connect_client
from httpwire._types import Method, Request, Response, StatusLine
from httpwire._wire import copy_body, receive_response, send_request

_logger = logging.getLogger("httpwire.client")

_SCHEME: Final[str] = "http://"
_HOST_DELIMITERS: Final[str] = ";/?:@=&"
_DEFAULT_FILENAME: Final[str] = "index.html"


class UrlError(ValueError):
    """The URL is not an ``http://`` URL."""


class StatusError(HttpWireError):
    """The server answered with a status other than 200.

    Attributes:
        status: The status line received.

    """

    def __init__(self, status: StatusLine) -> None:
        """Initialize with the received status line."""
        self.status = status
        super().__init__(f"{status.code} {status.description}")


@dataclass(frozen=True)
class Url:
    """An ``http://`` URL split into host and path.

    Attributes:
        host: Everything after the scheme up to the first of ``;/?:@=&``.
        path: The rest of the URL, verbatim (may be empty).

    """

    host: str
    path: str


@dataclass(frozen=True)
class ClientConfig:
    """Configuration for :func:`fetch`.

    Attributes:
        port: Server port.
        timeout: Connect and I/O timeout in seconds; ``None`` blocks.
        chunk_size: Bytes per body chunk copied to the sink.

    Raises:
        ValueError: If *port* is out of range, *timeout* <= 0 or
            *chunk_size* < 1.

    """

    port: int = 80
    timeout: float | None = None
    chunk_size: int = CHUNK_SIZE

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not 0 < self.port <= 65535:
            raise ValueError(f"port must be in 1..65535, got {self.port}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")


def parse_url(url: str) -> Url:
    """Split an ``http://`` URL into host and path.

    Raises:
        UrlError: If *url* does not start with ``http://``.

    """
    if not url.startswith(_SCHEME):
        raise UrlError(f"Not an http:// URL: {url!r}")
    rest = url[len(_SCHEME) :]
    end = len(rest)
    for delimiter in _HOST_DELIMITERS:
        pos = rest.find(delimiter)
        if pos != -1:
            end = min(end, pos)
    return Url(host=rest[:end], path=rest[end:])


def output_path(
    url: Url,
    *,
    file: str | os.PathLike[str] | None = None,
    directory: str | os.PathLike[str] | None = None,
) -> str | None:
    """Choose where a response body is written.

    Args:
        url: The fetched URL.
        file: Explicit output file.
        directory: Directory to write into, named after the last path
            segment of *url* (``index.html`` when the path names no file).

    Returns:
        The output path, or ``None`` for standard output.

    Raises:
        ValueError: If both *file* and *directory* are given.

    """
    if file is not None and directory is not None:
        raise ValueError("file and directory are mutually exclusive")
    if file is not None:
        return os.fspath(file)
    if directory is None:
        return None
    slash = url.path.rfind("/")
    name = url.path[slash + 1 :] if slash != -1 else ""
    name = name.split("?", 1)[0]
    return os.path.join(os.fspath(directory), name or _DEFAULT_FILENAME)


def fetch(url: str | Url, sink: BinaryIO, *, config: ClientConfig | None = None) -> Response:
    """Send ``GET`` for *url* and copy a 200 response body into *sink*.

    The body is read until the server closes the connection.

    Returns:
        The parsed response head.

    Raises:
        UrlError: If *url* is not an ``http://`` URL.
        StatusError: If the status code is not 200.
        ProtocolError: If the response head is malformed.
        ConnectionClosedError: If the server hung up inside the head.
        ResolutionError: If the host cannot be resolved.
        TransportError: If any socket or sink operation fails.

    """
    if config is None:
        config = ClientConfig()
    target = url if isinstance(url, Url) else parse_url(url)
    with connect_client(target.host, config.port, timeout=config.timeout) as stream:
        send_request(stream, Request(Method.GET, target.path, [("Host", target.host)]), chunk_size=config.chunk_size)
        response = receive_response(stream)
        _logger.debug("Response from %s: %d %s", target.host, response.status.code, response.status.description)
        if response.status.code != 200:
            status = StatusLine(response.status.code, response.status.description)
            response.release()
            raise StatusError(status)
        received = copy_body(stream, sink, chunk_size=config.chunk_size)
        _logger.debug("Received %d body bytes from %s", received, target.host)
    return response
