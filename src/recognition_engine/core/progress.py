"""Bounded processing log and error history entries."""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple

PROCESSING_LOG_LIMIT = 100


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class LogEntry:
    """One processing log line."""
    timestamp: datetime
    stage: str
    message: str
    level: LogLevel = LogLevel.INFO
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "stage": self.stage,
            "message": self.message,
            "level": self.level.value,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LogEntry":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            stage=data["stage"],
            message=data["message"],
            level=LogLevel(data.get("level", "info")),
            data=data.get("data"),
        )


@dataclass(frozen=True)
class ErrorEntry:
    """One failed attempt, kept for audit."""
    attempt: int
    timestamp: datetime
    message: str
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> dict:
        return {
            "attempt": self.attempt,
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ErrorEntry":
        return cls(
            attempt=data["attempt"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            message=data["message"],
            context=data.get("context"),
        )


@dataclass(frozen=True)
class ProgressLog:
    """Append-only log holding the most recent ``limit`` entries.

    Appending returns a new log; on overflow the oldest entries are
    dropped and the order of the rest is kept.
    """
    entries: Tuple[LogEntry, ...] = ()
    limit: int = field(default=PROCESSING_LOG_LIMIT, compare=False)

    def __post_init__(self):
        if len(self.entries) > self.limit:
            object.__setattr__(self, "entries", tuple(self.entries[-self.limit:]))

    def append(self, entry: LogEntry) -> "ProgressLog":
        buffer = deque(self.entries, maxlen=self.limit)
        buffer.append(entry)
        return ProgressLog(tuple(buffer), self.limit)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(self.entries)

    def latest(self) -> Optional[LogEntry]:
        return self.entries[-1] if self.entries else None

    def to_list(self) -> list:
        return [entry.to_dict() for entry in self.entries]

    @classmethod
    def from_list(cls, items: Optional[list]) -> "ProgressLog":
        return cls(tuple(LogEntry.from_dict(item) for item in items or []))
