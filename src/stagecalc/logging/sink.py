"""Filesystem NDJSON event sink with concurrency-safe appends.

Events are appended as one JSON line per event to ``logs/events.ndjson``
inside the project directory.  Writes use ``json.dumps(sort_keys=True)``
for deterministic output.

Each append acquires an exclusive ``fcntl.flock`` on the log file and
reads acquire a shared lock.  On platforms without ``fcntl`` (Windows),
locking is skipped.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from stagecalc.logging.events import StageCalcEvent

try:
    import fcntl

    _HAS_FCNTL = True
except ImportError:
    _HAS_FCNTL = False

# Default tail-read size (2 MB)
_DEFAULT_TAIL_BYTES = 2 * 1024 * 1024


class EventSink:
    """Append-only NDJSON log writer with file locking."""

    def __init__(self, project_dir: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        self.logs_dir = project_dir / "logs"
        self._fsync = fsync
        self._tail_bytes = tail_bytes if tail_bytes is not None else _DEFAULT_TAIL_BYTES
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.logs_dir / "events.ndjson"

    def write(self, event: StageCalcEvent) -> None:
        """Append *event* to the project log."""
        line = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str) + "\n"
        self._append(self.path, line)

    def read_events(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Read events most-recent-first, optionally filtered.

        Only the tail of the log is read to bound memory usage.
        """
        events = self._read_ndjson(self.path)
        if level:
            events = [e for e in events if e.get("level") == level]
        if event_type:
            events = [e for e in events if e.get("event_type") == event_type]
        events.reverse()
        return events[:limit]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _append(self, path: Path, line: str) -> None:
        """Append a single line to *path* under exclusive file lock."""
        path.parent.mkdir(parents=True, exist_ok=True)

        if _HAS_FCNTL:
            fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_APPEND)
            try:
                fcntl.flock(fd, fcntl.LOCK_EX)
                os.write(fd, line.encode("utf-8"))
                if self._fsync:
                    os.fsync(fd)
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
                os.close(fd)
        else:
            with open(path, "a", encoding="utf-8") as f:
                f.write(line)
                if self._fsync:
                    f.flush()
                    os.fsync(f.fileno())

    def _read_ndjson(self, path: Path) -> list[dict[str, Any]]:
        if not path.exists():
            return []
        events: list[dict[str, Any]] = []
        for line in self._read_tail(path).splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return events

    def _read_tail(self, path: Path) -> str:
        """Read up to the last ``self._tail_bytes`` of a file under shared lock."""
        fd = os.open(str(path), os.O_RDONLY)
        try:
            if _HAS_FCNTL:
                fcntl.flock(fd, fcntl.LOCK_SH)
            file_size = os.fstat(fd).st_size
            if file_size <= self._tail_bytes:
                data = os.read(fd, file_size)
            else:
                os.lseek(fd, file_size - self._tail_bytes, os.SEEK_SET)
                data = os.read(fd, self._tail_bytes)
                # Drop the first (likely partial) line
                idx = data.find(b"\n")
                if idx >= 0:
                    data = data[idx + 1:]
            return data.decode("utf-8", errors="replace")
        finally:
            if _HAS_FCNTL:
                fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)
