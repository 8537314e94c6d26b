"""Durable key/value slot for the song history blob."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

log = logging.getLogger(__name__)

HISTORY_KEY = "song_history"
DEFAULT_HISTORY_DIR = Path.home() / ".songsmith"


@runtime_checkable
class HistoryStorage(Protocol):
    """Whole-blob persistence. No partial reads or writes."""

    def load(self, key: str) -> Any | None: ...

    def save(self, key: str, payload: Any) -> None: ...


class JsonFileStorage:
    """Stores each key as ``<directory>/<key>.json``.

    Writes go to a temporary file first and are moved into place, so a crash
    mid-write never leaves a truncated blob behind.
    """

    def __init__(self, directory: str | Path | None = None):
        self.directory = Path(
            directory or os.environ.get("SONGSMITH_HISTORY_DIR") or DEFAULT_HISTORY_DIR
        ).expanduser()

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Any | None:
        path = self._path(key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def save(self, key: str, payload: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            tmp_path.replace(path)
        finally:
            tmp_path.unlink(missing_ok=True)
        log.debug("Wrote %s (%d bytes)", path, path.stat().st_size)


class MemoryStorage:
    """Process-local storage, for tests and throwaway sessions."""

    def __init__(self):
        self.slots: dict[str, str] = {}

    def load(self, key: str) -> Any | None:
        raw = self.slots.get(key)
        return json.loads(raw) if raw is not None else None

    def save(self, key: str, payload: Any) -> None:
        self.slots[key] = json.dumps(payload)
