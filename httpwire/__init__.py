# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Minimal HTTP/1.1 message framing and transport over IPv4 TCP."""

import logging

from httpwire._common import (
    CHUNK_SIZE,
    DEFAULT_LIMITS,
    HTTP_VERSION,
    AcceptInterrupted,
    ConnectionClosedError,
    HttpWireError,
    ParserLimits,
    ProtocolError,
    ResolutionError,
    ResourceExhaustedError,
    TransportError,
)
from httpwire._connection import accept_connection, connect_client, open_listener
from httpwire._stream import ByteStream, DuplexStream, make_stream_pair
from httpwire._types import (
    Header,
    HeaderBlock,
    Method,
    Request,
    Response,
    StatusLine,
    release_request,
    release_response,
)
from httpwire._wire import (
    body_length,
    copy_body,
    drain_head,
    http_date,
    receive_request,
    receive_response,
    send_request,
    send_response,
)

__all__ = [
    # Data model
    "Header",
    "HeaderBlock",
    "Method",
    "Request",
    "Response",
    "StatusLine",
    "release_request",
    "release_response",
    # Streams and connections
    "ByteStream",
    "DuplexStream",
    "make_stream_pair",
    "connect_client",
    "open_listener",
    "accept_connection",
    # Serializer
    "send_request",
    "send_response",
    "body_length",
    "copy_body",
    "http_date",
    # Parser
    "receive_request",
    "receive_response",
    "drain_head",
    "ParserLimits",
    "DEFAULT_LIMITS",
    # Errors
    "HttpWireError",
    "TransportError",
    "ResolutionError",
    "AcceptInterrupted",
    "ProtocolError",
    "ConnectionClosedError",
    "ResourceExhaustedError",
    # Constants
    "CHUNK_SIZE",
    "HTTP_VERSION",
]

logging.getLogger("httpwire").addHandler(logging.NullHandler())
