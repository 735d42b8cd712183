"""Flask application factory for the py-httpd web front end.

The ``create_app`` function builds a responder over the configured
document root and returns a Flask app with one catch-all route:

- ``GET /<path>`` — serve the file at ``path`` or the generated 404 page.
"""

from __future__ import annotations

import sys

from flask import Flask, Response, request

from py_httpd.config import ConfigError, ServerConfig, parse_port
from py_httpd.http import HttpRequest, HttpStatus
from py_httpd.logging import Logger, LogLevel
from py_httpd.responder import Responder

DEFAULT_PORT = 8080
LOGGER_KEY = "py_httpd.logger"

_SOURCE = "web"
_FILE_MIMETYPE = "application/octet-stream"
_PAGE_MIMETYPE = "text/html"


def create_app(config: ServerConfig | None = None, *, logger: Logger | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Server settings; only ``root`` and ``confine_to_root``
            are used.  Defaults to the working directory.
        logger: Log buffer, stored in ``app.extensions``.

    Returns:
        A configured Flask application ready to serve.

    """
    config = config if config is not None else ServerConfig(port=DEFAULT_PORT)
    logger = logger if logger is not None else Logger()
    responder = Responder(
        root=config.root,
        confine_to_root=config.confine_to_root,
        logger=logger,
    )

    app = Flask(__name__)
    app.extensions[LOGGER_KEY] = logger

    @app.route("/", defaults={"path": ""})
    @app.route("/<path:path>")
    def serve(path: str) -> Response:  # pyright: ignore[reportUnusedFunction]
        """Serve *path* from the document root."""
        http_request = HttpRequest(
            method=request.method,
            file_path=path,
            connection_type=request.environ.get("SERVER_PROTOCOL", "HTTP/1.0"),
        )
        result = responder.respond(http_request)
        logger.log(
            LogLevel.INFO,
            f'{request.remote_addr} "{request.method} /{path}" {int(result.status)} {len(result.body)}',
            source=_SOURCE,
        )
        mimetype = _FILE_MIMETYPE if result.status is HttpStatus.OK else _PAGE_MIMETYPE
        return Response(result.body, status=int(result.status), mimetype=mimetype)

    return app


def main() -> None:
    """Run the web front end on the Flask development server.

    This is the ``py-httpd-web`` console entry point; it takes an
    optional port argument (default 8080).
    """
    port = DEFAULT_PORT
    if len(sys.argv) > 1:
        try:
            port = parse_port(sys.argv[1])
        except ConfigError as e:
            print(f"Usage: py-httpd-web [port] ({e})")  # noqa: T201
            sys.exit(0)
    app = create_app(ServerConfig(port=port))
    app.run(port=port)
