"""Command-line entry point: ``py-httpd <port>``.

The CLI is the thin I/O wrapper around ``FileServer``: it validates the
port argument, wires the log buffer to standard output, and runs the
accept loop until Ctrl+C.  A bad or missing port prints the usage line
and exits with status 0.
"""

import sys

from py_httpd.config import ConfigError, ServerConfig, parse_port
from py_httpd.logging import LogEntry, Logger
from py_httpd.server import FileServer

USAGE = "Usage: py-httpd <port>"


def echo_entry(entry: LogEntry) -> None:
    """Print a log entry to standard output.

    Characters the console encoding cannot represent are written as
    backslash escapes so a strange request never stops the server.
    """
    text = str(entry)
    try:
        print(text, flush=True)  # noqa: T201
    except UnicodeEncodeError:
        print(text.encode("ascii", "backslashreplace").decode("ascii"), flush=True)  # noqa: T201


def build_server(port: int) -> FileServer:
    """Return a server for *port* that serves the working directory."""
    logger = Logger(sink=echo_entry)
    return FileServer(ServerConfig(port=port), logger=logger)


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and run the server.

    Args:
        argv: Arguments without the program name (defaults to
            ``sys.argv[1:]``).

    """
    args = sys.argv[1:] if argv is None else argv
    try:
        port = parse_port(args[0])
    except (IndexError, ConfigError):
        print(USAGE)  # noqa: T201
        sys.exit(0)

    print(f"Starting server on port {port}")  # noqa: T201
    server = build_server(port)
    try:
        server.bind()
    except OSError as e:
        print(f"Cannot listen on port {port}: {e}")  # noqa: T201
        sys.exit(1)
    server.serve_forever()
