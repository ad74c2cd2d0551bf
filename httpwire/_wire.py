"""Message serialization and parsing on a duplex byte stream.

Serializer: :func:`send_request`, :func:`send_response`.
Parser: :func:`receive_request`, :func:`receive_response`.

The parser reads only the message head.  On success the stream is left
positioned at the first body byte; consuming the body (for example with
:func:`copy_body`) is the caller's job.
"""

from __future__ import annotations

import logging
import os
import re
from email.utils import formatdate
from typing import BinaryIO, Final

from httpwire._common import (
    CHUNK_SIZE,
    CRLF,
    DEFAULT_LIMITS,
    HTTP_VERSION,
    WIRE_ENCODING,
    ConnectionClosedError,
    ParserLimits,
    ProtocolError,
    ResourceExhaustedError,
    TransportError,
)
from httpwire._debug import fmt_headers, fmt_line, wire_request_logger, wire_response_logger
from httpwire._stream import ByteStream
from httpwire._types import HeaderBlock, Method, Request, Response, StatusLine

_STATUS_CODE_RE: Final[re.Pattern[str]] = re.compile(r"[+-]?[0-9]+")
_EOL_RE: Final[re.Pattern[str]] = re.compile(r"[\r\n]")

# The version token of a request line is compared together with its line
# terminator, so bare-LF request lines are rejected.
_REQUEST_VERSION_TOKEN: Final[str] = HTTP_VERSION + "\r\n"


# ---------------------------------------------------------------------------
# Tokenizing helpers
# ---------------------------------------------------------------------------


def _next_token(line: str, pos: int = 0) -> tuple[str | None, int]:
    """Return the next space-delimited token at or after *pos*.

    Runs of spaces are skipped.  The returned position is just past the
    single space that ended the token (or the end of *line*).
    """
    end = len(line)
    while pos < end and line[pos] == " ":
        pos += 1
    if pos >= end:
        return None, end
    stop = line.find(" ", pos)
    if stop == -1:
        return line[pos:], end
    return line[pos:stop], stop + 1


def _cut_eol(text: str) -> str:
    """Return *text* up to (not including) its first CR or LF."""
    match = _EOL_RE.search(text)
    return text[: match.start()] if match else text


def _read_line(stream: ByteStream, limits: ParserLimits) -> bytes:
    line = stream.read_line(limits.max_line_bytes + 1)
    if len(line) > limits.max_line_bytes:
        raise ResourceExhaustedError(f"Line exceeds {limits.max_line_bytes} bytes")
    return line


def _read_start_line(stream: ByteStream, limits: ParserLimits) -> str:
    raw = _read_line(stream, limits)
    if not raw:
        raise ConnectionClosedError("Connection closed before start line")
    return raw.decode(WIRE_ENCODING)


def _read_header_block(stream: ByteStream, limits: ParserLimits) -> HeaderBlock:
    """Read ``key: value`` lines up to the blank ``\\r\\n`` line."""
    headers = HeaderBlock()
    while True:
        raw = _read_line(stream, limits)
        if raw == CRLF:
            return headers
        if not raw:
            raise ConnectionClosedError("Connection closed before end of header block")
        if len(headers) >= limits.max_headers:
            raise ResourceExhaustedError(f"More than {limits.max_headers} header lines")
        line = raw.decode(WIRE_ENCODING)
        key, colon, rest = line.partition(":")
        if not colon:
            raise ProtocolError(f"Header line without colon: {line!r}")
        headers.append(key, _cut_eol(rest.lstrip(" ")))


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def receive_response(stream: ByteStream, *, limits: ParserLimits = DEFAULT_LIMITS) -> Response:
    """Read a status line and header block.

    Raises:
        ProtocolError: Wrong version token, non-numeric status code, or a
            header line without a colon.
        ConnectionClosedError: The stream ended before the blank line.
        TransportError: Reading from the stream failed.
        ResourceExhaustedError: Out of memory or *limits* exceeded.

    """
    try:
        line = _read_start_line(stream, limits)
        version, pos = _next_token(line)
        if version != HTTP_VERSION:
            raise ProtocolError(f"Expected {HTTP_VERSION} status line, got {line!r}")
        code_token, pos = _next_token(line, pos)
        if code_token is None or not _STATUS_CODE_RE.fullmatch(code_token):
            raise ProtocolError(f"Invalid status code in {line!r}")
        status = StatusLine(int(code_token), _cut_eol(line[pos:]))
        headers = _read_header_block(stream, limits)
    except MemoryError as exc:
        raise ResourceExhaustedError("Out of memory while parsing response head") from exc
    if wire_response_logger.isEnabledFor(logging.DEBUG):
        wire_response_logger.debug(
            "receive_response: %s, headers=%s",
            fmt_line(line),
            fmt_headers(headers),
        )
    return Response(status, headers)


def receive_request(stream: ByteStream, *, limits: ParserLimits = DEFAULT_LIMITS) -> Request:
    """Read a request line and header block.

    The request line must be ``METHOD SP /path SP HTTP/1.1 CRLF`` with the
    version immediately followed by CRLF.

    Raises:
        ProtocolError: Unknown method, path not starting with ``/``, bad
            version token or terminator, or a header line without a colon.
        ConnectionClosedError: The stream ended before the blank line.
        TransportError: Reading from the stream failed.
        ResourceExhaustedError: Out of memory or *limits* exceeded.

    """
    try:
        line = _read_start_line(stream, limits)
        method_token, pos = _next_token(line)
        if method_token is None:
            raise ProtocolError("Empty request line")
        method = Method.from_token(method_token)
        path, pos = _next_token(line, pos)
        if path is None or not path.startswith("/"):
            raise ProtocolError(f"Request path must start with '/': {line!r}")
        version, _ = _next_token(line, pos)
        if version != _REQUEST_VERSION_TOKEN:
            raise ProtocolError(f"Expected {HTTP_VERSION} request line, got {line!r}")
        headers = _read_header_block(stream, limits)
    except MemoryError as exc:
        raise ResourceExhaustedError("Out of memory while parsing request head") from exc
    if wire_request_logger.isEnabledFor(logging.DEBUG):
        wire_request_logger.debug(
            "receive_request: %s, headers=%s",
            fmt_line(line),
            fmt_headers(headers),
        )
    return Request(method, path, headers)


def drain_head(stream: ByteStream, *, limits: ParserLimits = DEFAULT_LIMITS) -> int:
    """Discard lines up to a blank ``\\r\\n`` line or end-of-stream.

    Overlong lines are consumed in pieces rather than rejected.

    Returns:
        The number of reads performed.

    """
    count = 0
    while True:
        line = stream.read_line(limits.max_line_bytes)
        if not line or line == CRLF:
            return count
        count += 1


# ---------------------------------------------------------------------------
# Serializer
# ---------------------------------------------------------------------------


def body_length(body: BinaryIO) -> int:
    """Bytes between the current position of *body* and its end.

    The position is restored afterwards.

    Raises:
        TransportError: If *body* cannot tell or seek.

    """
    try:
        start = body.tell()
        end = body.seek(0, os.SEEK_END)
        body.seek(start, os.SEEK_SET)
    except OSError as exc:
        raise TransportError.from_os_error("Failed to measure body length", exc) from exc
    return max(end - start, 0)


def copy_body(
    source: ByteStream | BinaryIO,
    sink: ByteStream | BinaryIO,
    *,
    chunk_size: int = CHUNK_SIZE,
    limit: int | None = None,
) -> int:
    """Copy bytes from *source* to *sink* in *chunk_size* pieces.

    Args:
        source: A stream (``read_chunk``) or binary file (``read``).
        sink: A stream or binary file; only ``write`` is used.
        chunk_size: Bytes requested per read.
        limit: Stop after this many bytes; ``None`` copies to end-of-stream.

    Returns:
        Number of bytes copied.

    Raises:
        TransportError: If reading or writing fails.

    """
    read = source.read_chunk if isinstance(source, ByteStream) else source.read
    total = 0
    while limit is None or total < limit:
        want = chunk_size if limit is None else min(chunk_size, limit - total)
        try:
            chunk = read(want)
        except OSError as exc:
            raise TransportError.from_os_error("Failed to read body", exc) from exc
        if not chunk:
            break
        try:
            sink.write(chunk)
        except OSError as exc:
            raise TransportError.from_os_error("Failed to write body", exc) from exc
        total += len(chunk)
    return total


def _write_head(stream: ByteStream, lines: list[str]) -> None:
    stream.write("".join(lines).encode(WIRE_ENCODING))


def send_request(stream: ByteStream, request: Request, *, chunk_size: int = CHUNK_SIZE) -> None:
    """Write *request* onto *stream* and flush.

    A body, when present, is measured from its current position to its end,
    declared as ``Content-Length`` and streamed in *chunk_size* pieces.  The
    body file is not closed.

    Raises:
        TransportError: If writing, flushing, or reading the body fails.

    """
    path = request.path[1:] if request.path.startswith("/") else request.path
    start_line = f"{request.method.value} /{path} {HTTP_VERSION}\r\n"
    lines = [start_line]
    lines.extend(f"{key}: {value}\r\n" for key, value in request.headers)
    length: int | None = None
    if request.body is not None:
        length = body_length(request.body)
        lines.append(f"Content-Length: {length}\r\n")
    lines.append("Connection: close\r\n\r\n")
    if wire_request_logger.isEnabledFor(logging.DEBUG):
        wire_request_logger.debug(
            "send_request: %s, headers=%s, content_length=%s",
            fmt_line(start_line),
            fmt_headers(request.headers),
            length,
        )
    _write_head(stream, lines)
    if request.body is not None:
        copy_body(request.body, stream, chunk_size=chunk_size, limit=length)
    stream.flush()


def http_date(timeval: float | None = None) -> str:
    """Format *timeval* (default: now) as an RFC 1123 date in GMT."""
    return formatdate(timeval, usegmt=True)


def send_response(
    stream: ByteStream,
    response: Response,
    *,
    chunk_size: int = CHUNK_SIZE,
    now: float | None = None,
) -> int:
    """Write *response* onto *stream* and flush.

    ``Date``, ``Content-Length`` (0 without a body) and
    ``Connection: close`` follow the caller's headers.

    Returns:
        Number of body bytes written.

    Raises:
        TransportError: If writing, flushing, or reading the body fails.

    """
    status = response.status
    start_line = f"{HTTP_VERSION} {status.code} {status.description}\r\n"
    lines = [start_line]
    lines.extend(f"{key}: {value}\r\n" for key, value in response.headers)
    length = body_length(response.body) if response.body is not None else 0
    lines.append(f"Date: {http_date(now)}\r\nContent-Length: {length}\r\nConnection: close\r\n\r\n")
    if wire_response_logger.isEnabledFor(logging.DEBUG):
        wire_response_logger.debug(
            "send_response: %s, headers=%s, content_length=%d",
            fmt_line(start_line),
            fmt_headers(response.headers),
            length,
        )
    _write_head(stream, lines)
    sent = 0
    if response.body is not None:
        sent = copy_body(response.body, stream, chunk_size=chunk_size, limit=length)
    stream.flush()
    return sent
