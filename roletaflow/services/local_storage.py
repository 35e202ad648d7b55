"""
Local durable key-value storage.

Holds the offline queue and the last selected operation day. The whole file
is rewritten atomically on every change, so a crash mid-write leaves the
previous contents in place.
"""

from __future__ import annotations

import copy
import datetime
import logging
import threading
from pathlib import Path
from typing import Any, Optional

from ..core.errors import StoreError, safe_json_dump_atomic, safe_json_load

_MISSING = object()


class LocalStorage:
    def __init__(self, path: str | Path, *, logger: Optional[logging.Logger] = None) -> None:
        self.path = Path(path).expanduser()
        self.logger = logger or logging.getLogger("LocalStorage")
        self._lock = threading.RLock()

    def _quarantine(self) -> None:
        stamp = datetime.datetime.now(datetime.timezone.utc).strftime("%Y%m%dT%H%M%S")
        target = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        try:
            self.path.replace(target)
            self.logger.error("Local storage unreadable; moved aside to %s", target)
        except OSError as exc:
            raise StoreError(f"Local storage {self.path} is unreadable") from exc

    def _read(self) -> dict:
        data = safe_json_load(self.path, _MISSING, logger=self.logger)
        if data is _MISSING:
            if self.path.exists():
                self._quarantine()
            return {}
        if not isinstance(data, dict):
            self._quarantine()
            return {}
        return data

    def _write(self, data: dict) -> None:
        if not safe_json_dump_atomic(self.path, data, logger=self.logger):
            raise StoreError(f"Local storage write failed: {self.path}")

    def get_item(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return copy.deepcopy(self._read().get(key, default))

    def set_item(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key not in data:
                return
            del data[key]
            self._write(data)
