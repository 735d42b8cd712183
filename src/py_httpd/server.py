"""File server — the listening socket and the accept loop.

The server follows the classic blocking socket lifecycle::

    socket() → bind(host, port) → listen() → accept() → recv/send → close

and handles exactly one connection at a time.  While a connection is
being served, the next client waits in the kernel's accept backlog.

Each accepted connection walks a short, one-way state machine::

    IDLE → PARSING → RESPONDING → TIMEOUT_SET | CLOSED

- **PARSING** — read one line and build an ``HttpRequest``.
- **RESPONDING** — build the response and write it with one ``sendall``.
- **TIMEOUT_SET** — the client spoke HTTP/1.1: the client socket gets a
  read timeout, the server half-closes its side and lingers until the
  peer hangs up or the timeout expires.
- **CLOSED** — the connection is closed straight away.

No connection ever goes back to PARSING: one request per connection.
A failure on one connection is logged and the loop carries on with the
next one.
"""

from __future__ import annotations

import socket
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Self

from py_httpd.http import (
    EmptyRequestError,
    HttpError,
    HttpRequest,
    HttpResponse,
    format_response,
    printable,
    read_request,
)
from py_httpd.logging import Logger, LogLevel
from py_httpd.responder import Responder

if TYPE_CHECKING:
    from types import TracebackType

    from py_httpd.config import ServerConfig

_SOURCE = "server"
_LINGER_CHUNK = 4096


class ConnectionState(StrEnum):
    """Phases of a single client connection."""

    IDLE = "idle"
    PARSING = "parsing"
    RESPONDING = "responding"
    TIMEOUT_SET = "timeout_set"
    CLOSED = "closed"


def format_address(address: Any) -> str:
    """Render a peer address as ``host:port`` when it is an IP pair."""
    if isinstance(address, tuple) and len(address) >= 2:  # noqa: PLR2004
        return f"{address[0]}:{address[1]}"
    return str(address) if address else "local"


class FileServer:
    """Serve files from a document root, one connection at a time.

    Usage::

        with FileServer(ServerConfig(port=8080)) as server:
            server.serve_forever()

    """

    def __init__(
        self,
        config: ServerConfig,
        *,
        logger: Logger | None = None,
        responder: Responder | None = None,
    ) -> None:
        """Create a server; no socket is opened until ``bind()``.

        Args:
            config: Port, document root and connection settings.
            logger: Log buffer (a fresh one is created if omitted).
            responder: Response builder (defaults to one over
                ``config.root``).

        """
        self._config = config
        self._logger = logger if logger is not None else Logger()
        self._responder = (
            responder
            if responder is not None
            else Responder(
                root=config.root,
                confine_to_root=config.confine_to_root,
                logger=self._logger,
            )
        )
        self._listener: socket.socket | None = None
        self._state = ConnectionState.IDLE

    @property
    def config(self) -> ServerConfig:
        """Return the server configuration."""
        return self._config

    @property
    def logger(self) -> Logger:
        """Return the server's log buffer."""
        return self._logger

    @property
    def state(self) -> ConnectionState:
        """Return the phase of the current (or last) connection."""
        return self._state

    @property
    def address(self) -> tuple[str, int]:
        """Return the bound ``(host, port)`` of the listening socket.

        Raises:
            RuntimeError: If the server is not bound.

        """
        if self._listener is None:
            msg = "Server is not bound"
            raise RuntimeError(msg)
        host, port = self._listener.getsockname()[:2]
        return host, port

    # -- Listening socket ---------------------------------------------------

    def bind(self) -> tuple[str, int]:
        """Open, bind and listen on the configured port.

        Returns:
            The bound ``(host, port)``; useful when ``port`` is 0.

        Raises:
            RuntimeError: If the server is already bound.
            OSError: If the port cannot be bound.

        """
        if self._listener is not None:
            msg = "Server is already bound"
            raise RuntimeError(msg)
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind((self._config.host, self._config.port))
            listener.listen(self._config.backlog)
        except OSError:
            listener.close()
            raise
        self._listener = listener
        host, port = self.address
        self._log(LogLevel.INFO, f"Listening on {host}:{port}, root {self._config.root}")
        return host, port

    def close(self) -> None:
        """Close the listening socket (safe to call more than once)."""
        if self._listener is not None:
            self._listener.close()
            self._listener = None

    def __enter__(self) -> Self:
        """Bind on entry if not bound yet."""
        if self._listener is None:
            self.bind()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Close the listening socket on exit."""
        self.close()

    # -- Accept loop ----------------------------------------------------------

    def serve_one(self) -> ConnectionState:
        """Accept one connection and serve it.

        Returns:
            The state the connection finished in.

        """
        if self._listener is None:
            self.bind()
        assert self._listener is not None  # noqa: S101
        self._state = ConnectionState.IDLE
        client, address = self._listener.accept()
        return self.handle_connection(client, address)

    def serve_forever(self) -> None:
        """Serve connections until interrupted with Ctrl+C."""
        try:
            while True:
                self.serve_one()
        except KeyboardInterrupt:
            self._log(LogLevel.INFO, "Interrupted, shutting down")
        finally:
            self.close()

    # -- One connection -------------------------------------------------------

    def handle_connection(self, client: socket.socket, address: Any = None) -> ConnectionState:
        """Run one request/response cycle on an accepted socket.

        The client socket is always closed before this returns.

        Returns:
            ``TIMEOUT_SET`` for HTTP/1.1 requests, ``CLOSED`` otherwise.

        """
        peer = format_address(address)
        self._log(LogLevel.DEBUG, f"Connection from {peer}")
        try:
            state = self._serve(client, peer)
        except OSError as e:
            self._log(LogLevel.ERROR, f"{peer}: connection failed: {e}")
            state = ConnectionState.CLOSED
        finally:
            client.close()
        self._state = state
        return state

    def _serve(self, client: socket.socket, peer: str) -> ConnectionState:
        self._state = ConnectionState.PARSING
        request: HttpRequest | None = None
        try:
            with client.makefile("rb") as stream:
                request = read_request(stream)
        except EmptyRequestError:
            self._log(LogLevel.DEBUG, f"{peer}: closed without a request")
            return ConnectionState.CLOSED
        except HttpError as e:
            self._log(LogLevel.WARNING, f"{peer}: {e}")
            response = self._responder.bad_request("The request line could not be parsed.")
        else:
            response = self._responder.respond(request)

        self._state = ConnectionState.RESPONDING
        client.sendall(format_response(response))
        self._log(LogLevel.INFO, _access_line(peer, request, response))

        if request is not None and request.wants_linger:
            self._linger(client, peer)
            return ConnectionState.TIMEOUT_SET
        return ConnectionState.CLOSED

    def _linger(self, client: socket.socket, peer: str) -> None:
        """Wait for an HTTP/1.1 peer to hang up, at most ``client_timeout``.

        Anything the peer sends meanwhile is discarded; no second request
        is served.
        """
        client.settimeout(self._config.client_timeout)
        try:
            client.shutdown(socket.SHUT_WR)
            while client.recv(_LINGER_CHUNK):
                pass
        except TimeoutError:
            self._log(LogLevel.DEBUG, f"{peer}: linger timed out")
        except OSError as e:
            # peer already gone
            self._log(LogLevel.DEBUG, f"{peer}: {e}")

    def _log(self, level: LogLevel, message: str) -> None:
        self._logger.log(level, message, source=_SOURCE)


def _access_line(peer: str, request: HttpRequest | None, response: HttpResponse) -> str:
    """Format one access-log line: peer, request line, status and size."""
    if request is None:
        line = "-"
    else:
        line = printable(f'"{request.method} /{request.file_path} {request.connection_type}"')
    return f"{peer} {line} {int(response.status)} {len(response.body)}"
