"""Audit log for environment-variable collection changes.

Every contribution that changes the merged environment leaves a trace:
which extension registered or withdrew a collection, when the merged
view was rebuilt, and which mutators lost out to a replace.  The log is
a small in-memory buffer rather than a handler chain:

- **LogLevel**: severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry**: a single structured record (level, message, source,
  extension).
- **Logger**: an append-only log with filtering and clearing.

Design choices:
    - **IntEnum for levels** so they compare naturally with ``<``.
    - **Frozen dataclass for entries**: log records should be immutable.
    - **Filter returns a list, not a generator**: the log is typically
      small and callers usually want to iterate multiple times.
"""

from dataclasses import dataclass
from enum import IntEnum


class LogLevel(IntEnum):
    """Severity levels for log entries."""

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
        source: The component that generated the event (e.g. "registry").
        extension: The extension the event concerns, if any.

    """

    level: LogLevel
    message: str
    source: str
    extension: str | None = None

    def __str__(self) -> str:
        """Format as ``[LEVEL] source(extension): message``."""
        origin = self.source if self.extension is None else f"{self.source}({self.extension})"
        return f"[{self.level.name}] {origin}: {self.message}"


class Logger:
    """Append-only log buffer with filtering.

    The logger collects ``LogEntry`` records and provides simple
    querying by level, source and extension.
    """

    def __init__(self) -> None:
        """Create an empty logger."""
        self._entries: list[LogEntry] = []

    @property
    def entries(self) -> list[LogEntry]:
        """Return all log entries in chronological order."""
        return list(self._entries)

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        extension: str | None = None,
    ) -> None:
        """Append a new entry to the log.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Component that generated the event.
            extension: Extension identifier associated with the event.

        """
        self._entries.append(
            LogEntry(level=level, message=message, source=source, extension=extension)
        )

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
        extension: str | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.
            extension: If set, only return entries about this extension.

        Returns:
            A filtered list of log entries.

        """
        result = list(self._entries)
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        if extension is not None:
            result = [e for e in result if e.extension == extension]
        return result

    def clear(self) -> None:
        """Remove all log entries."""
        self._entries.clear()

    def __len__(self) -> int:
        """Return the number of entries."""
        return len(self._entries)
