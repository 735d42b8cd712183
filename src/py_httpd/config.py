"""Server configuration.

Everything the server needs to know before it opens a socket lives in
one frozen ``ServerConfig``.  It is passed around explicitly; there are
no module-level settings to patch.
"""

from dataclasses import dataclass
from pathlib import Path

DEFAULT_CLIENT_TIMEOUT = 2.0
DEFAULT_BACKLOG = 5
_MAX_PORT = 65535


class ConfigError(ValueError):
    """Raise when a configuration value is invalid."""


@dataclass(frozen=True)
class ServerConfig:
    """Settings for one file server.

    Attributes:
        port: TCP port to listen on (0 lets the OS pick one).
        host: Interface to bind; empty means all interfaces.
        root: Document root that request paths are resolved against.
        client_timeout: Seconds an HTTP/1.1 connection may linger after
            its response before it is closed.
        backlog: Pending-connection queue length for ``listen()``.
        confine_to_root: Refuse paths that resolve outside ``root``.

    """

    port: int
    host: str = ""
    root: Path = Path()
    client_timeout: float = DEFAULT_CLIENT_TIMEOUT
    backlog: int = DEFAULT_BACKLOG
    confine_to_root: bool = False


def parse_port(text: str) -> int:
    """Convert a command-line port argument to an int.

    Raises:
        ConfigError: If *text* is not an integer in 1..65535.

    """
    try:
        port = int(text)
    except ValueError as e:
        msg = f"Port must be a number, got {text!r}"
        raise ConfigError(msg) from e
    if not 0 < port <= _MAX_PORT:
        msg = f"Port must be between 1 and {_MAX_PORT}, got {port}"
        raise ConfigError(msg)
    return port
