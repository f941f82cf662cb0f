"""Session logger: persists each request/response exchange as a JSON file."""

from __future__ import annotations

import itertools
import json
import logging
import threading
from pathlib import Path

from promptline.core.fileutil import atomic_write, ensure_dir
from promptline.core.models import LogEntry

log = logging.getLogger(__name__)

# Shared across loggers so two instances writing to one directory still
# produce distinct names within the same second.
_counter = itertools.count(1)
_counter_lock = threading.Lock()


def _next_sequence() -> int:
    with _counter_lock:
        return next(_counter)


class SessionLogger:
    """Best-effort, append-only exchange log.

    Disabled when no directory is configured. Write failures are logged
    and swallowed so they never abort a completed response.
    """

    def __init__(self, log_dir: Path | None) -> None:
        self._log_dir = Path(log_dir).expanduser() if log_dir else None

    @property
    def enabled(self) -> bool:
        return self._log_dir is not None

    @property
    def log_dir(self) -> Path | None:
        return self._log_dir

    def entry_path(self, entry: LogEntry) -> Path:
        """Pick a file name that does not collide with an existing entry."""
        assert self._log_dir is not None
        stamp = entry.timestamp.strftime("%Y%m%dT%H%M%S")
        while True:
            path = self._log_dir / f"{stamp}-{_next_sequence():06d}.json"
            if not path.exists():
                return path

    def log(self, entry: LogEntry) -> Path | None:
        """Persist one entry. Returns the written path, or None."""
        if self._log_dir is None:
            return None
        try:
            ensure_dir(self._log_dir)
            path = self.entry_path(entry)
            atomic_write(path, json.dumps(entry.to_dict(), indent=2, ensure_ascii=False))
        except OSError as e:
            log.warning("Failed to write session log to %s: %s", self._log_dir, e)
            return None
        log.debug("Logged exchange to %s", path)
        return path

    def entries(self) -> list[Path]:
        """Return logged entry files, oldest first."""
        if self._log_dir is None or not self._log_dir.is_dir():
            return []
        return sorted(self._log_dir.glob("*.json"))
