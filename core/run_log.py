from collections import deque
from typing import List

from core.logging_utils import log_json
from core.types import LogEntry, utc_timestamp

_LEVELS = {"info": "INFO", "success": "INFO", "warning": "WARN", "error": "ERROR"}


class RunLog:
    """Append-only activity log owned by one orchestrator.

    Retention is a ring buffer of ``max_entries``; the oldest entries drop off
    first. Every append is mirrored to the structured process log.
    """

    def __init__(self, max_entries: int = 1000):
        self._entries = deque(maxlen=max_entries)

    def append(self, message: str, type: str = "info", agent: str = "Orchestrator") -> LogEntry:
        if type not in _LEVELS:
            raise ValueError(f"Unknown log entry type: {type!r}")
        entry = LogEntry(timestamp=utc_timestamp(), agent=agent, type=type, message=message)
        self._entries.append(entry)
        log_json(_LEVELS[type], "run_log", details={"agent": agent, "type": type, "message": message})
        return entry

    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def as_string(self) -> str:
        return "\n".join(f"[{e.timestamp}] [{e.agent}] {e.message}" for e in self._entries)

    def clear(self) -> None:
        self._entries.clear()

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen

    def __len__(self) -> int:
        return len(self._entries)
