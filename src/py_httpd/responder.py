"""Responder — turn a parsed request into a response.

The responder is the whole "application" of a file server:

1. Look for the requested path under the document root.
2. If something is there, read **all** of it into memory and answer
   ``200 OK`` with the bytes as the body.
3. If nothing is there, answer ``404 Not Found`` with a generated
   HTML page naming the missing path.

Two extra answers exist for things the happy path cannot cover:
``500 Internal Server Error`` when an entry exists but cannot be read
(no permission, or it is a directory), and ``403 Forbidden`` when root
confinement is switched on and the path escapes the document root.

Paths are used exactly as the client sent them.  Without confinement,
``../secret`` or an absolute path such as ``/etc/passwd`` (sent as
``//etc/passwd``) are served if they exist.
"""

from pathlib import Path

from py_httpd.http import (
    DEFAULT_PROTOCOL,
    HttpRequest,
    HttpResponse,
    HttpStatus,
    error_page,
    not_found_page,
)
from py_httpd.logging import Logger, LogLevel

_SOURCE = "responder"


class Responder:
    """Build responses for requests against one document root."""

    def __init__(
        self,
        *,
        root: Path = Path(),
        confine_to_root: bool = False,
        logger: Logger | None = None,
    ) -> None:
        """Create a responder.

        Args:
            root: Directory request paths are resolved against.
            confine_to_root: Answer 403 for paths outside ``root``.
            logger: Where read failures are recorded.

        """
        self._root = root
        self._confine = confine_to_root
        self._logger = logger

    @property
    def root(self) -> Path:
        """Return the document root."""
        return self._root

    def locate(self, file_path: str) -> Path | None:
        """Return the filesystem path for *file_path*, or None if absent."""
        if not file_path:
            return None
        target = self._root / file_path
        try:
            found = target.exists()
        except OSError as e:
            # name too long, or a parent directory that cannot be searched
            self._log(LogLevel.WARNING, f"Cannot stat {file_path!r}: {e}")
            return None
        return target if found else None

    def is_confined(self, file_path: str) -> bool:
        """Return True if *file_path* resolves inside the document root."""
        if "\x00" in file_path:
            return False
        root = self._root.resolve()
        return (root / file_path).resolve().is_relative_to(root)

    def respond(self, request: HttpRequest) -> HttpResponse:
        """Return the response for *request*.

        The file is read in one go; nothing is streamed.
        """
        protocol = request.connection_type

        if self._confine and not self.is_confined(request.file_path):
            body = error_page(HttpStatus.FORBIDDEN, "Access denied.")
            return HttpResponse(protocol=protocol, status=HttpStatus.FORBIDDEN, body=body)

        target = self.locate(request.file_path)
        if target is None:
            return HttpResponse(
                protocol=protocol,
                status=HttpStatus.NOT_FOUND,
                body=not_found_page(request.file_path),
            )

        try:
            content = target.read_bytes()
        except OSError as e:
            self._log(LogLevel.ERROR, f"Cannot read {request.file_path!r}: {e}")
            body = error_page(HttpStatus.INTERNAL_SERVER_ERROR, "The requested file could not be read.")
            return HttpResponse(protocol=protocol, status=HttpStatus.INTERNAL_SERVER_ERROR, body=body)

        return HttpResponse(protocol=protocol, status=HttpStatus.OK, body=content)

    def bad_request(self, detail: str, *, protocol: str = DEFAULT_PROTOCOL) -> HttpResponse:
        """Return the 400 response sent for an unparseable request line."""
        body = error_page(HttpStatus.BAD_REQUEST, detail)
        return HttpResponse(protocol=protocol, status=HttpStatus.BAD_REQUEST, body=body)

    def _log(self, level: LogLevel, message: str) -> None:
        if self._logger is not None:
            self._logger.log(level, message, source=_SOURCE)
