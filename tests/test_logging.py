# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Tests for the JSON log formatter and logger wiring."""

from __future__ import annotations

import io
import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path

from httpwire import DuplexStream
from httpwire.logging_utils import HttpJsonFormatter
from httpwire.server import FileServer, ServerConfig

StreamFactory = Callable[[bytes], DuplexStream]


def _record(msg: str = "hello %s", args: tuple[object, ...] = ("world",), **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("httpwire.access", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestHttpJsonFormatter:
    """Single-line JSON output with extras."""

    def test_standard_fields(self) -> None:
        """Timestamp, level, logger and the formatted message are always present."""
        obj = json.loads(HttpJsonFormatter().format(_record()))
        assert obj["level"] == "INFO"
        assert obj["logger"] == "httpwire.access"
        assert obj["message"] == "hello world"
        assert "timestamp" in obj

    def test_extras_included(self) -> None:
        """Access-log extras become top-level keys."""
        record = _record("%s %s %d", ("GET", "/", 200), method="GET", path="/", status=200, bytes=12)
        obj = json.loads(HttpJsonFormatter().format(record))
        assert obj["method"] == "GET"
        assert obj["status"] == 200
        assert obj["bytes"] == 12

    def test_standard_attrs_excluded(self) -> None:
        """LogRecord internals are not dumped."""
        obj = json.loads(HttpJsonFormatter().format(_record()))
        for key in ("args", "msg", "levelno", "pathname", "lineno", "taskName"):
            assert key not in obj

    def test_reserved_keys_not_overwritten(self) -> None:
        """An extra named like a standard field does not replace it."""
        obj = json.loads(HttpJsonFormatter().format(_record(level="FAKE")))
        assert obj["level"] == "INFO"

    def test_non_serializable_coerced(self) -> None:
        """Values json cannot encode are stringified."""
        obj = json.loads(HttpJsonFormatter().format(_record(remote_addr=("127.0.0.1", 80), peer=object())))
        assert obj["remote_addr"] == ["127.0.0.1", 80]
        assert obj["peer"].startswith("<object object")

    def test_exception_included(self) -> None:
        """Exception info is rendered under ``exception``."""
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("httpwire.server", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        obj = json.loads(HttpJsonFormatter().format(record))
        assert "RuntimeError: boom" in obj["exception"]

    def test_single_line(self) -> None:
        """Output never spans lines."""
        assert "\n" not in HttpJsonFormatter().format(_record("multi\nline", ()))


class TestLibraryLogging:
    """The package stays quiet unless configured."""

    def test_null_handler_installed(self) -> None:
        """Importing httpwire attaches a NullHandler to its root logger."""
        import httpwire  # noqa: F401

        handlers = logging.getLogger("httpwire").handlers
        assert any(isinstance(h, logging.NullHandler) for h in handlers)


class TestAccessLogJson:
    """Access records from the server rendered as JSON."""

    def test_served_connection_record(self, doc_root: Path, make_stream: StreamFactory) -> None:
        """A served request yields one JSON line with typed access fields."""
        stream_out = io.StringIO()
        handler = logging.StreamHandler(stream_out)
        handler.setFormatter(HttpJsonFormatter())
        access = logging.getLogger("httpwire.access")
        previous = access.level
        access.addHandler(handler)
        access.setLevel(logging.INFO)
        try:
            FileServer(ServerConfig(doc_root=str(doc_root))).serve_connection(
                make_stream(b"GET /style.css HTTP/1.1\r\n\r\n")
            )
        finally:
            access.removeHandler(handler)
            access.setLevel(previous)
        lines = stream_out.getvalue().splitlines()
        assert len(lines) == 1
        obj = json.loads(lines[0])
        assert obj["logger"] == "httpwire.access"
        assert obj["message"] == "GET /style.css 200"
        assert obj["status"] == 200
        assert obj["bytes"] == len(b"body { color: red; }")
        assert isinstance(obj["duration_ms"], float | int)
