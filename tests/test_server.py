"""Tests for the file server's connection handling and accept loop.

Connection tests use ``socket.socketpair()``: one end plays the accepted
client socket, the other end plays the browser.  End-to-end tests bind a
real listener on an ephemeral loopback port and drive it from a thread.
"""

from __future__ import annotations

import socket
import threading
from typing import TYPE_CHECKING

import pytest

from py_httpd.config import ServerConfig
from py_httpd.logging import Logger, LogLevel
from py_httpd.server import ConnectionState, FileServer, format_address

if TYPE_CHECKING:
    from pathlib import Path

LOOPBACK = "127.0.0.1"
SHORT_TIMEOUT = 0.05
JOIN_TIMEOUT = 5.0
HELLO_RESPONSE = b"HTTP/1.0 200 OK\r\nContent-Length: 2\r\n\r\nhi"


def _recv_all(sock: socket.socket) -> bytes:
    """Read from *sock* until the peer closes."""
    chunks: list[bytes] = []
    while chunk := sock.recv(4096):
        chunks.append(chunk)
    return b"".join(chunks)


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """Return a document root containing ``hello.txt`` with ``hi``."""
    (tmp_path / "hello.txt").write_bytes(b"hi")
    return tmp_path


def _server(root: Path, **overrides: float) -> FileServer:
    """Create an unbound server over *root*."""
    timeout = overrides.get("client_timeout", SHORT_TIMEOUT)
    return FileServer(ServerConfig(port=0, host=LOOPBACK, root=root, client_timeout=timeout))


def _exchange(server: FileServer, request: bytes, *, hang_up: bool = True) -> tuple[ConnectionState, bytes]:
    """Send *request* over a socket pair and return the state and reply."""
    server_end, client_end = socket.socketpair()
    with client_end:
        client_end.sendall(request)
        if hang_up:
            client_end.shutdown(socket.SHUT_WR)
        state = server.handle_connection(server_end, (LOOPBACK, 50000))
        return state, _recv_all(client_end)


# ---------------------------------------------------------------------------
# Cycle 1: one connection
# ---------------------------------------------------------------------------


class TestHandleConnection:
    """Verify a single request/response cycle."""

    def test_serves_existing_file(self, root: Path) -> None:
        """hello.txt comes back byte-for-byte over the socket."""
        state, reply = _exchange(_server(root), b"GET /hello.txt HTTP/1.0\r\n\r\n")
        assert reply == HELLO_RESPONSE
        assert state is ConnectionState.CLOSED

    def test_missing_file_is_404(self, root: Path) -> None:
        """A missing file yields a 404 page echoing the protocol."""
        _, reply = _exchange(_server(root), b"GET /missing.html HTTP/1.0\r\n")
        assert reply.startswith(b"HTTP/1.0 404 Not Found\r\n")
        assert b"<i>missing.html</i>" in reply

    def test_headers_are_ignored(self, root: Path) -> None:
        """Header lines after the request line do not change the reply."""
        request = b"GET /hello.txt HTTP/1.0\r\nHost: example\r\nConnection: keep-alive\r\n\r\n"
        _, reply = _exchange(_server(root), request)
        assert reply == HELLO_RESPONSE

    def test_malformed_line_is_400(self, root: Path) -> None:
        """Too few tokens yields a 400 and a warning, not a crash."""
        server = _server(root)
        state, reply = _exchange(server, b"GET\r\n")
        assert reply.startswith(b"HTTP/1.0 400 Bad Request\r\n")
        assert state is ConnectionState.CLOSED
        assert server.logger.filter(min_level=LogLevel.WARNING, source="server")

    def test_empty_connection_gets_no_reply(self, root: Path) -> None:
        """A peer that hangs up without a line gets nothing back."""
        state, reply = _exchange(_server(root), b"")
        assert reply == b""
        assert state is ConnectionState.CLOSED

    def test_access_is_logged(self, root: Path) -> None:
        """Each served request leaves one INFO access line."""
        server = _server(root)
        _exchange(server, b"GET /hello.txt HTTP/1.0\r\n")
        served = server.logger.filter(min_level=LogLevel.INFO, source="server")
        assert served[-1].message == f'{LOOPBACK}:50000 "GET /hello.txt HTTP/1.0" 200 2'

    def test_non_utf8_path_is_logged_escaped(self, root: Path) -> None:
        """Undecodable path bytes appear as escapes in the access line."""
        server = _server(root)
        _, reply = _exchange(server, b"GET /\xff HTTP/1.0\r\n")
        assert reply.startswith(b"HTTP/1.0 404 Not Found\r\n")
        served = server.logger.filter(min_level=LogLevel.INFO, source="server")
        assert '"GET /\\udcff HTTP/1.0" 404' in served[-1].message
        assert served[-1].message.isascii()

    def test_overlong_name_gets_a_reply(self, root: Path) -> None:
        """A path longer than any filename still receives a 404."""
        _, reply = _exchange(_server(root), b"GET /" + b"a" * 300 + b" HTTP/1.0\r\n")
        assert reply.startswith(b"HTTP/1.0 404 Not Found\r\n")

    def test_state_is_recorded(self, root: Path) -> None:
        """The server remembers the state the last connection ended in."""
        server = _server(root)
        assert server.state is ConnectionState.IDLE
        _exchange(server, b"GET /hello.txt HTTP/1.0\r\n")
        assert server.state is ConnectionState.CLOSED

    def test_broken_peer_is_logged(self, root: Path) -> None:
        """A client that vanishes before the reply is an ERROR, not a crash."""
        server = _server(root)
        server_end, client_end = socket.socketpair()
        client_end.sendall(b"GET /hello.txt HTTP/1.0\r\n")
        client_end.close()
        state = server.handle_connection(server_end)
        assert state is ConnectionState.CLOSED
        errors = server.logger.filter(min_level=LogLevel.ERROR)
        assert any("connection failed" in e.message for e in errors)


# ---------------------------------------------------------------------------
# Cycle 2: HTTP/1.1 linger
# ---------------------------------------------------------------------------


class TestLinger:
    """Verify the HTTP/1.1 close-after-timeout behaviour."""

    def test_http_1_1_sets_timeout_state(self, root: Path) -> None:
        """HTTP/1.1 connections finish in TIMEOUT_SET."""
        state, reply = _exchange(_server(root), b"GET /hello.txt HTTP/1.1\r\n")
        assert reply == b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\n\r\nhi"
        assert state is ConnectionState.TIMEOUT_SET

    def test_linger_times_out_when_peer_stays(self, root: Path) -> None:
        """A peer that keeps the connection open is cut off after the timeout."""
        server = _server(root)
        state, reply = _exchange(server, b"GET /missing.html HTTP/1.1\r\n", hang_up=False)
        assert reply.startswith(b"HTTP/1.1 404 Not Found\r\n")
        assert state is ConnectionState.TIMEOUT_SET
        assert any("timed out" in e.message for e in server.logger.entries)

    def test_second_request_is_not_served(self, root: Path) -> None:
        """Only the first request on a connection is answered."""
        request = b"GET /hello.txt HTTP/1.1\r\n\r\nGET /hello.txt HTTP/1.1\r\n\r\n"
        _, reply = _exchange(_server(root), request)
        assert reply.count(b"200 OK") == 1

    def test_http_1_0_does_not_linger(self, root: Path) -> None:
        """HTTP/1.0 closes even if the peer keeps its end open."""
        server = _server(root, client_timeout=JOIN_TIMEOUT)
        state, _ = _exchange(server, b"GET /hello.txt HTTP/1.0\r\n", hang_up=False)
        assert state is ConnectionState.CLOSED


# ---------------------------------------------------------------------------
# Cycle 3: listening socket and accept loop
# ---------------------------------------------------------------------------


def _fetch(address: tuple[str, int], request: bytes) -> bytes:
    """Connect to *address*, send *request*, and read the whole reply."""
    with socket.create_connection(address, timeout=JOIN_TIMEOUT) as sock:
        sock.sendall(request)
        sock.shutdown(socket.SHUT_WR)
        return _recv_all(sock)


class TestAcceptLoop:
    """Verify bind, serve_one and serve_forever over loopback TCP."""

    def test_bind_reports_ephemeral_port(self, root: Path) -> None:
        """Binding port 0 picks a free port."""
        with _server(root) as server:
            host, port = server.address
            assert host == LOOPBACK
            assert port > 0

    def test_address_requires_bind(self, root: Path) -> None:
        """address raises before bind()."""
        with pytest.raises(RuntimeError, match="not bound"):
            _ = _server(root).address

    def test_double_bind_rejected(self, root: Path) -> None:
        """A server binds only once."""
        with _server(root) as server, pytest.raises(RuntimeError, match="already bound"):
            server.bind()

    def test_close_is_idempotent(self, root: Path) -> None:
        """Closing twice is harmless."""
        server = _server(root)
        server.bind()
        server.close()
        server.close()

    def test_serves_sequential_clients(self, root: Path) -> None:
        """A bad request does not stop the next client being served."""
        with _server(root) as server:
            worker = threading.Thread(target=lambda: [server.serve_one() for _ in range(2)])
            worker.start()
            bad = _fetch(server.address, b"NONSENSE\r\n")
            good = _fetch(server.address, b"GET /hello.txt HTTP/1.0\r\n\r\n")
            worker.join(JOIN_TIMEOUT)
        assert bad.startswith(b"HTTP/1.0 400 Bad Request")
        assert good == HELLO_RESPONSE

    def test_serve_forever_stops_on_interrupt(self, root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Ctrl+C ends the loop, logs it, and closes the listener."""
        server = _server(root)
        server.bind()

        def interrupt() -> ConnectionState:
            raise KeyboardInterrupt

        monkeypatch.setattr(server, "serve_one", interrupt)
        server.serve_forever()
        assert any("shutting down" in e.message for e in server.logger.entries)
        with pytest.raises(RuntimeError):
            _ = server.address

    def test_custom_logger_is_used(self, root: Path) -> None:
        """A supplied logger receives the listening message."""
        logger = Logger()
        server = FileServer(ServerConfig(port=0, host=LOOPBACK, root=root), logger=logger)
        with server:
            assert any("Listening on" in e.message for e in logger.entries)


class TestFormatAddress:
    """Verify peer address rendering."""

    def test_ip_pair(self) -> None:
        """IPv4 pairs render as host:port."""
        assert format_address(("10.0.0.1", 8080)) == "10.0.0.1:8080"

    def test_missing_address(self) -> None:
        """Unnamed peers (socket pairs) render as 'local'."""
        assert format_address(None) == "local"
        assert format_address("") == "local"
