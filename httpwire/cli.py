"""Command-line interface for httpwire.

Provides ``get`` (fetch one URL) and ``serve`` (iterative file server).

Usage::

    httpwire get http://localhost/index.html -p 8080
    httpwire get http://localhost/docs/ -p 8080 -d ./downloads
    httpwire serve ./public -p 8080 -i home.html
    httpwire --debug serve ./public

Exit codes for ``get``: 0 success, 1 failure, 2 protocol error, 3 the
server answered with a status other than 200.
"""

from __future__ import annotations

import contextlib
import logging
import signal
import sys
from enum import StrEnum
from pathlib import Path
from typing import Annotated, BinaryIO

import typer

from httpwire._common import HttpWireError, ProtocolError
from httpwire.client import ClientConfig, StatusError, UrlError, fetch, output_path, parse_url
from httpwire.server import ServerConfig, ShutdownFlag, install_signal_handlers, run_server

EXIT_FAILURE = 1
EXIT_PROTOCOL_ERROR = 2
EXIT_STATUS_ERROR = 3

# ---------------------------------------------------------------------------
# Known loggers registry
# ---------------------------------------------------------------------------

_KNOWN_LOGGERS: tuple[tuple[str, str, str], ...] = (
    ("httpwire", "Root logger for all httpwire output", "Enable to see all logging"),
    ("httpwire.access", "One structured record per served connection", "Monitor requests and status codes"),
    ("httpwire.server", "Server lifecycle and per-connection failures", "Debug malformed requests and accept errors"),
    ("httpwire.client", "Client fetch progress", "Debug response status and body size"),
    ("httpwire.wire.request", "Request serialization/parsing", "Inspect request lines and headers"),
    ("httpwire.wire.response", "Response serialization/parsing", "Inspect status lines and headers"),
    ("httpwire.wire.transport", "Connect, listen, accept and close", "Debug connection hangs or fd issues"),
)

_KNOWN_LOGGER_NAMES: frozenset[str] = frozenset(name for name, _, _ in _KNOWN_LOGGERS)


class LogFormat(StrEnum):
    """Log output format."""

    text = "text"
    json = "json"


app = typer.Typer(
    name="httpwire",
    help="Minimal HTTP/1.1 client and iterative file server.",
    add_completion=False,
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------


def _configure_logging(
    level: str | None,
    debug: bool,
    log_format: LogFormat,
    targets: list[str] | None,
) -> None:
    """Attach a stderr handler to the target loggers at the requested level."""
    if debug:
        level = "DEBUG"
    if level is None:
        return

    numeric_level = logging.getLevelNamesMapping().get(level.upper())
    if numeric_level is None:
        raise typer.BadParameter(f"Unknown log level: {level}")

    handler = logging.StreamHandler(sys.stderr)
    if log_format == LogFormat.json:
        from httpwire.logging_utils import HttpJsonFormatter

        handler.setFormatter(HttpJsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(name)-24s %(levelname)-5s %(message)s"))

    for name in targets or ["httpwire"]:
        if name not in _KNOWN_LOGGER_NAMES:
            typer.echo(f"Warning: unknown logger '{name}'", err=True)
        logger = logging.getLogger(name)
        logger.setLevel(numeric_level)
        logger.addHandler(handler)


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def _main(
    log_level: Annotated[str | None, typer.Option("--log-level", help="Log level for httpwire loggers")] = None,
    debug: Annotated[bool, typer.Option("--debug", help="Shorthand for --log-level DEBUG")] = False,
    log_format: Annotated[LogFormat, typer.Option("--log-format", help="Log output format")] = LogFormat.text,
    log_logger: Annotated[
        list[str] | None, typer.Option("--log-logger", help="Logger to configure (repeatable)")
    ] = None,
) -> None:
    """Configure logging."""
    _configure_logging(log_level, debug, log_format, log_logger)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def get(
    url: Annotated[str, typer.Argument(help="http:// URL to fetch")],
    port: Annotated[int, typer.Option("--port", "-p", min=1, max=65535, help="Server port")] = 80,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Write the body to this file")] = None,
    directory: Annotated[
        Path | None, typer.Option("--dir", "-d", help="Write the body into this directory")
    ] = None,
    timeout: Annotated[float | None, typer.Option("--timeout", help="Connect and I/O timeout in seconds")] = None,
) -> None:
    """Fetch URL with GET and write the body to stdout or a file."""
    if output is not None and directory is not None:
        typer.echo("--output and --dir are mutually exclusive", err=True)
        raise typer.Exit(EXIT_FAILURE)
    try:
        target = parse_url(url)
    except UrlError:
        typer.echo("Invalid URL", err=True)
        raise typer.Exit(EXIT_FAILURE) from None

    destination = output_path(target, file=output, directory=directory)
    sink_cm: contextlib.AbstractContextManager[BinaryIO]
    if destination is None:
        sink_cm = contextlib.nullcontext(typer.get_binary_stream("stdout"))
    else:
        try:
            sink_cm = open(destination, "wb")  # noqa: SIM115
        except OSError as e:
            typer.echo(f"Failed to open file: {e}", err=True)
            raise typer.Exit(EXIT_FAILURE) from None

    try:
        with sink_cm as sink:
            fetch(target, sink, config=ClientConfig(port=port, timeout=timeout))
            sink.flush()
    except StatusError as e:
        typer.echo(f"{e.status.code} {e.status.description}", err=True)
        raise typer.Exit(EXIT_STATUS_ERROR) from None
    except ProtocolError as e:
        typer.echo(f"Protocol error! {e}", err=True)
        raise typer.Exit(EXIT_PROTOCOL_ERROR) from None
    except HttpWireError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_FAILURE) from None


@app.command()
def serve(
    doc_root: Annotated[Path, typer.Argument(help="Directory to serve files from")],
    port: Annotated[int, typer.Option("--port", "-p", min=0, max=65535, help="Port to listen on")] = 8080,
    index: Annotated[str, typer.Option("--index", "-i", help="File served for paths ending in /")] = "index.html",
) -> None:
    """Serve files from DOC_ROOT, one connection at a time, until SIGINT or SIGTERM."""
    try:
        config = ServerConfig(doc_root=str(doc_root), port=port, index=index)
    except ValueError as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(EXIT_FAILURE) from None
    shutdown = ShutdownFlag()
    previous = install_signal_handlers(shutdown)
    try:
        run_server(config, shutdown)
    except HttpWireError as e:
        typer.echo(f"Failed to open socket: {e}", err=True)
        raise typer.Exit(EXIT_FAILURE) from None
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
