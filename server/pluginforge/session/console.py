import logging
from datetime import datetime
from typing import List, Tuple

from pluginforge.models import BuildLogEntry

logger = logging.getLogger(__name__)

_LEVELS = {"info": logging.INFO, "success": logging.INFO, "error": logging.ERROR}


class BuildConsoleLog:
    """Append-only build console. Entries are never edited or removed."""

    def __init__(self):
        self._entries: List[BuildLogEntry] = []

    def append(self, message: str, type: str = "info") -> BuildLogEntry:
        entry = BuildLogEntry(time=datetime.now().strftime("%H:%M:%S"), message=message, type=type)
        self._entries.append(entry)
        logger.log(_LEVELS.get(type, logging.INFO), "[console] %s", message)
        return entry

    def info(self, message: str) -> BuildLogEntry:
        return self.append(message, "info")

    def success(self, message: str) -> BuildLogEntry:
        return self.append(message, "success")

    def error(self, message: str) -> BuildLogEntry:
        return self.append(message, "error")

    @property
    def entries(self) -> Tuple[BuildLogEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def messages(self) -> List[str]:
        return [e.message for e in self._entries]

    def as_text(self) -> str:
        """Payload for auto-fix: one "[time] message" line per entry."""
        return "\n".join(f"[{e.time}] {e.message}" for e in self._entries)
