"""py-httpd — a minimal single-threaded HTTP/1.x file server.

One connection at a time, one request line per connection: the server
reads ``METHOD /path PROTOCOL``, looks for ``path`` under its document
root, and answers with the file's bytes or a generated 404 page.

Re-exports public symbols so callers can write::

    from py_httpd import FileServer, ServerConfig
"""

from py_httpd.config import ConfigError, ServerConfig, parse_port
from py_httpd.http import (
    EmptyRequestError,
    HttpError,
    HttpRequest,
    HttpResponse,
    HttpStatus,
    format_response,
    not_found_page,
    parse_request_line,
    read_request,
    status_reason,
)
from py_httpd.logging import LogEntry, Logger, LogLevel
from py_httpd.responder import Responder
from py_httpd.server import ConnectionState, FileServer

__all__ = [
    "ConfigError",
    "ConnectionState",
    "EmptyRequestError",
    "FileServer",
    "HttpError",
    "HttpRequest",
    "HttpResponse",
    "HttpStatus",
    "LogEntry",
    "LogLevel",
    "Logger",
    "Responder",
    "ServerConfig",
    "format_response",
    "not_found_page",
    "parse_port",
    "parse_request_line",
    "read_request",
    "status_reason",
]
