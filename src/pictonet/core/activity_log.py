"""Logging setup and the in-memory activity log.

The activity log is the observable trail of pipeline transitions: an
append-only, capped sequence of ``(timestamp, severity, message)`` entries.
It is a :class:`logging.Handler`, so anything the pipeline logs through the
standard ``logging`` module shows up in it. Nothing reads it for control
flow.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

__all__ = ['LogEntry', 'ActivityLog', 'setup_logging', 'LOG_FORMAT', 'DATE_FORMAT']

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    severity: str
    message: str
    source: str = ""


class ActivityLog(logging.Handler):
    """Capped, append-only list of log entries.

    Parameters
    ----------
    capacity : int
        Maximum number of entries kept; the oldest are dropped first.
    level : int
        Minimum level recorded. Defaults to INFO.
    """

    def __init__(self, capacity: int = 500, level: int = logging.INFO):
        super().__init__(level=level)
        self.capacity = capacity
        self._entries: deque = deque(maxlen=capacity)
        self._entries_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = LogEntry(
                timestamp=datetime.fromtimestamp(record.created),
                severity=record.levelname.lower(),
                message=record.getMessage(),
                source=record.name,
            )
        except Exception:
            self.handleError(record)
            return
        with self._entries_lock:
            self._entries.append(entry)

    def entries(self, severity: Optional[str] = None) -> list[LogEntry]:
        with self._entries_lock:
            items = list(self._entries)
        if severity is not None:
            items = [e for e in items if e.severity == severity.lower()]
        return items

    def clear(self) -> None:
        with self._entries_lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def setup_logging(level: Union[str, int] = "INFO",
                  log_path: Optional[Union[str, Path]] = None,
                  activity_log: Optional[ActivityLog] = None) -> None:
    """Configure the root logger for a studio session.

    Replaces existing root handlers with a console handler, an optional
    file handler and the optional activity log.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    # Clear existing handlers and add new ones
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if log_path is not None:
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_path)
        fh.setLevel(level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(formatter)
    root.addHandler(ch)

    if activity_log is not None:
        root.addHandler(activity_log)
