"""Server log buffer.

The server records a structured entry for everything that happens to a
connection: when it was accepted, what was served, and what went wrong.

Like a kernel ring buffer (``dmesg`` on Linux), the log is an in-memory
sequence of records with a fixed capacity, so a server that runs for
days never grows without bound:

- **LogLevel** — severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry** — a single structured record (level, message, source).
- **Logger** — a bounded append-only log with filtering and an optional
  *sink* that mirrors new entries somewhere else (e.g. the console).
"""

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum

DEFAULT_CAPACITY = 1024


class LogLevel(IntEnum):
    """Severity levels for log entries.

    Levels compare with ``<`` / ``>``, which makes minimum-level
    filtering trivial.
    """

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The component that generated the event (e.g. "server").

    """

    level: LogLevel
    message: str
    source: str

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message``."""
        return f"[{self.level.name}] {self.source}: {self.message}"


LogSink = Callable[[LogEntry], None]


class Logger:
    """Bounded append-only log buffer with filtering.

    Once ``capacity`` entries are stored, each new entry evicts the
    oldest one.  If a ``sink`` is given, every entry at or above
    ``echo_level`` is also handed to it as it is logged.
    """

    def __init__(
        self,
        *,
        capacity: int = DEFAULT_CAPACITY,
        sink: LogSink | None = None,
        echo_level: LogLevel = LogLevel.INFO,
    ) -> None:
        """Create an empty logger.

        Args:
            capacity: Maximum number of entries kept in memory.
            sink: Optional callback receiving each echoed entry.
            echo_level: Minimum level passed to the sink.

        Raises:
            ValueError: If capacity is not positive.

        """
        if capacity <= 0:
            msg = f"Log capacity must be positive, got {capacity}"
            raise ValueError(msg)
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._sink = sink
        self._echo_level = echo_level

    @property
    def entries(self) -> list[LogEntry]:
        """Return all retained entries in chronological order."""
        return list(self._entries)

    @property
    def capacity(self) -> int:
        """Return the maximum number of retained entries."""
        return self._entries.maxlen or 0

    def log(self, level: LogLevel, message: str, *, source: str) -> None:
        """Append a new entry to the log.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Component that generated the event.

        """
        entry = LogEntry(level=level, message=message, source=source)
        self._entries.append(entry)
        if self._sink is not None and level >= self._echo_level:
            self._sink(entry)

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.

        Returns:
            A filtered list of log entries.

        """
        result = list(self._entries)
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        return result

    def clear(self) -> None:
        """Remove all log entries."""
        self._entries.clear()
