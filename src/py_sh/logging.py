"""Engine event log.

The executor records what it did to the operating system — which
programs it launched, which pids exited with which status, which
redirections failed — as structured log entries.  Each entry can carry
the pid it concerns, so the full history of one child (launch, exit,
reaping) can be pulled out with ``for_pid()``.

Design choices:
    - **Parent process only.**  A forked child gets a copy of the logger,
      and anything it appends dies with it, so the engine only logs on
      the parent side of a fork.
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
        source: The component that generated the event (e.g. "executor").
        pid: The child process the event concerns (0 = none).

    """

    level: LogLevel
    message: str
    source: str
    pid: int = 0

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message``."""
        return f"[{self.level.name}] {self.source}: {self.message}"


class Logger:
    """Append-only log buffer with filtering."""

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
        pid: int = 0,
    ) -> None:
        """Append a new entry to the log.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Component that generated the event.
            pid: Child process associated with the event.

        """
        self._entries.append(LogEntry(level=level, message=message, source=source, pid=pid))

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
        pid: int | None = None,
    ) -> list[LogEntry]:
        """Return entries matching every given criterion.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.
            pid: If set, only return entries about this child process.

        """
        return [
            e
            for e in self._entries
            if (min_level is None or e.level >= min_level)
            and (source is None or e.source == source)
            and (pid is None or e.pid == pid)
        ]

    def for_pid(self, pid: int) -> list[str]:
        """Return the messages logged about one child, oldest first."""
        return [e.message for e in self._entries if e.pid == pid]

    def clear(self) -> None:
        """Remove all log entries."""
        self._entries.clear()
