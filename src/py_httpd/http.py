r"""HTTP/1.x request lines and responses.

A file server only needs a sliver of HTTP.  The client sends a
**request line**, and everything after it (headers, body) is ignored:

    GET /index.html HTTP/1.0\r\n

The server answers with a status line, a single ``Content-Length``
header, a blank line, and the body:

    HTTP/1.0 200 OK\r\nContent-Length: 42\r\n\r\n<body>

Key concepts:
    - **Method** — the first token; recorded but never checked.
    - **File path** — the second token with its leading ``/`` removed.
    - **Connection type** — the third token (``HTTP/1.0``, ``HTTP/1.1``),
      echoed back as the first token of the status line.
    - **Status code** — the server's answer (200, 404, ...).

Parsing and formatting are pure functions over bytes and strings, so they
can be tested without opening a single socket.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import BinaryIO


class HttpError(Exception):
    """Raise when a request line cannot be parsed."""


class EmptyRequestError(HttpError):
    """Raise when the peer closed the connection without sending a line."""


class HttpStatus(IntEnum):
    """HTTP response status codes the server can produce."""

    OK = 200
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    INTERNAL_SERVER_ERROR = 500


_REASON_PHRASES: dict[HttpStatus, str] = {
    HttpStatus.OK: "OK",
    HttpStatus.BAD_REQUEST: "Bad Request",
    HttpStatus.FORBIDDEN: "Forbidden",
    HttpStatus.NOT_FOUND: "Not Found",
    HttpStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
}


def status_reason(status: HttpStatus) -> str:
    """Return the standard reason phrase for a status code."""
    return _REASON_PHRASES[status]


# Protocol literal that asks the server to linger before closing.
HTTP_1_1 = "HTTP/1.1"
# Protocol used when the request line is too broken to name one.
DEFAULT_PROTOCOL = "HTTP/1.0"

# Request bytes are decoded with surrogateescape so that arbitrary bytes
# survive the trip to the filesystem and back into an HTML page.
WIRE_ENCODING = "utf-8"
WIRE_ERRORS = "surrogateescape"
# Longest request line accepted, terminator included.
MAX_REQUEST_LINE = 8192


@dataclass(frozen=True)
class HttpRequest:
    """One parsed request line.

    Attributes:
        method: The first token, kept verbatim (e.g. "GET").
        file_path: The requested path without its leading slash.
        connection_type: The protocol token (e.g. "HTTP/1.1").

    """

    method: str
    file_path: str
    connection_type: str

    @property
    def wants_linger(self) -> bool:
        """Return True if the connection should linger before closing."""
        return self.connection_type == HTTP_1_1


@dataclass(frozen=True)
class HttpResponse:
    """A response ready to be put on the wire.

    Attributes:
        protocol: The protocol token echoed from the request.
        status: Status code (200, 404, etc.).
        body: Payload bytes (default empty).

    """

    protocol: str
    status: HttpStatus
    body: bytes = b""

    @property
    def status_line(self) -> str:
        """Return the status line without its CRLF terminator."""
        return f"{self.protocol} {self.status} {status_reason(self.status)}"


# ---------------------------------------------------------------------------
# Parsing — wire bytes → HttpRequest
# ---------------------------------------------------------------------------

_CRLF = b"\r\n"
_MIN_REQUEST_LINE_PARTS = 3


def parse_request_line(line: str) -> HttpRequest:
    """Parse a request line such as ``GET /index.html HTTP/1.0``.

    Tokens are split on any run of whitespace and anything after the
    third token is ignored.  The method is not validated, the path is
    not URL-decoded, and query strings are left in place.

    Raises:
        HttpError: If the line has fewer than three tokens.

    """
    parts = line.split()
    if len(parts) < _MIN_REQUEST_LINE_PARTS:
        msg = f"Malformed request line: {line.rstrip()!r}"
        raise HttpError(msg)

    method, target, protocol = parts[:_MIN_REQUEST_LINE_PARTS]
    return HttpRequest(
        method=method,
        file_path=target.removeprefix("/"),
        connection_type=protocol,
    )


def read_request(stream: BinaryIO) -> HttpRequest:
    """Read exactly one line from *stream* and parse it.

    Raises:
        EmptyRequestError: If the stream is already at end-of-file.
        HttpError: If the line is malformed or too long.

    """
    raw = stream.readline(MAX_REQUEST_LINE)
    if not raw:
        msg = "Connection closed before a request line was received"
        raise EmptyRequestError(msg)
    if len(raw) >= MAX_REQUEST_LINE and not raw.endswith(b"\n"):
        msg = f"Request line longer than {MAX_REQUEST_LINE} bytes"
        raise HttpError(msg)
    return parse_request_line(raw.decode(WIRE_ENCODING, WIRE_ERRORS))


# ---------------------------------------------------------------------------
# Serialization — HttpResponse → wire bytes
# ---------------------------------------------------------------------------


def format_response(response: HttpResponse) -> bytes:
    r"""Serialize an HttpResponse to wire-format bytes.

    Wire format::

        HTTP/1.0 200 OK\r\n
        Content-Length: N\r\n
        \r\n
        [body]
    """
    header = f"{response.status_line}\r\nContent-Length: {len(response.body)}\r\n"
    return header.encode(WIRE_ENCODING, WIRE_ERRORS) + _CRLF + response.body


# ---------------------------------------------------------------------------
# Generated pages
# ---------------------------------------------------------------------------


def error_page(status: HttpStatus, detail: str) -> bytes:
    """Return a small HTML page for an error status.

    *detail* is inserted verbatim, markup included.
    """
    title = f"{status} {status_reason(status)}"
    page = (
        "<html>"
        f"<head><title>{title}</title></head>"
        f"<body><h1>{title}</h1> <p>{detail}</p></body>"
        "</html>"
    )
    return page.encode(WIRE_ENCODING, WIRE_ERRORS)


def not_found_page(file_path: str) -> bytes:
    """Return the HTML body announcing that *file_path* was not found."""
    detail = f"The requested URL <i>{file_path}</i> was not found on this server"
    return error_page(HttpStatus.NOT_FOUND, detail)


# ---------------------------------------------------------------------------
# Log-safe text
# ---------------------------------------------------------------------------


def printable(text: str) -> str:
    """Return *text* with undecodable request bytes shown as escapes.

    Paths decoded with surrogateescape cannot be written to a strict
    UTF-8 stream; ``\\udcff`` is rendered as the six characters ``\\udcff``.
    """
    return text.encode(WIRE_ENCODING, "backslashreplace").decode(WIRE_ENCODING)
