"""
Key-value stores used to persist queues and analytics snapshots across
process restarts.
"""

import copy
import json
import logging
import os
import re
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ui_resilience.exceptions import StorageError

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class MemoryStore:
    """In-process store. Values are deep-copied in and out."""

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self):
        with self._lock:
            return list(self._data.keys())


class JsonFileStore:
    """One JSON file per key under a directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise StorageError("resolve", key, "key contains unsupported characters")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return None
            try:
                with path.open("r", encoding="utf-8") as fh:
                    return json.load(fh)
            except (OSError, json.JSONDecodeError) as e:
                raise StorageError("read", key, str(e)) from e

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        with self._lock:
            try:
                with tmp_path.open("w", encoding="utf-8") as fh:
                    json.dump(value, fh)
                os.replace(tmp_path, path)
            except (OSError, TypeError, ValueError) as e:
                raise StorageError("write", key, str(e)) from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise StorageError("delete", key, str(e)) from e
