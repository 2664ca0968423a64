"""Persistence utilities for the expense store document."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import StoreReadError, StoreWriteError

_LOCKS: Dict[Path, threading.RLock] = {}
_LOCKS_GUARD = threading.Lock()


def lock_for(path: Path) -> threading.RLock:
    """Return the process-wide lock serialising writers of ``path``."""
    key = path.expanduser().resolve()
    with _LOCKS_GUARD:
        lock = _LOCKS.get(key)
        if lock is None:
            lock = _LOCKS[key] = threading.RLock()
        return lock


class JSONFile:
    """A single UTF-8 JSON file with crash-safe writes."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def read(self) -> Any:
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except json.JSONDecodeError as exc:
            raise StoreReadError(f"Corrupted JSON data in {self._path}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise StoreReadError(f"Unable to read from {self._path}") from exc

    def write(self, payload: Any, *, indent: Optional[int] = None) -> None:
        path = self._path
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=indent, ensure_ascii=False)
                handle.flush()
            # Atomic move on POSIX.
            temp_path.replace(path)
        except (OSError, TypeError, ValueError) as exc:
            raise StoreWriteError(f"Unable to write to {path}") from exc
