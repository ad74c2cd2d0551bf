# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""JSON formatter for httpwire log records.

:class:`HttpJsonFormatter` renders each record as one JSON object per line,
which suits the ``httpwire.access`` logger: every served connection becomes
a record such as::

    {"timestamp": "...", "level": "INFO", "logger": "httpwire.access",
     "message": "GET /index.html 200", "method": "GET", "path": "/index.html",
     "status": 200, "bytes": 31, "remote_addr": "127.0.0.1:52114",
     "duration_ms": 0.41}

(shown wrapped; the real output is a single line).  Server and client
failures logged with ``exc_info`` carry the traceback under ``exception``.

``httpwire --log-format json serve`` installs it on the CLI's stderr
handler.  It is not imported by ``httpwire`` itself::

    from httpwire.logging_utils import HttpJsonFormatter
"""

from __future__ import annotations

import json
import logging

__all__ = ["HttpJsonFormatter"]

# Attributes every LogRecord has; anything else came in through ``extra``.
_DEFAULT_RECORD_ATTRS: frozenset[str] = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()) | {
    "message",
    "asctime",
    "taskName",
}

_RESERVED_KEYS: frozenset[str] = frozenset({"timestamp", "level", "logger", "message", "exception", "stack_info"})


class HttpJsonFormatter(logging.Formatter):
    """Single-line JSON formatter that lifts ``extra`` fields to the top level.

    ``timestamp``, ``level``, ``logger`` and ``message`` are always present
    and win over extras of the same name.  Access-log fields (``method``,
    ``path``, ``status``, ``bytes``, ``remote_addr``, ``duration_ms``) keep
    their Python types, so ``status`` and ``bytes`` stay numbers.  Values
    json cannot encode, such as a raw peer address object, are written via
    ``str``.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Render *record* as one line of JSON."""
        record.message = record.getMessage()
        obj: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }
        for key, value in record.__dict__.items():
            if key not in _DEFAULT_RECORD_ATTRS and key not in _RESERVED_KEYS:
                obj[key] = value
        if record.exc_info and record.exc_info[1]:
            obj["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            obj["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(obj, default=str)
