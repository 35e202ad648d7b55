"""
Write-behind queue for readings submitted while offline.

Entries are appended to an ordered list in local storage and only leave it
through `drain_all`, which replays every entry and then replaces the stored
list in one write. A failed replay leaves the stored list untouched.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from ..core.errors import StoreError, SyncError, log_exception
from .local_storage import LocalStorage

OFFLINE_QUEUE_KEY = "turnstile_offline_queue"

# handler(payload, local_id); must raise on failure
ReplayHandler = Callable[[dict, str], None]


@dataclass
class DrainResult:
    drained: int = 0
    remaining: int = 0
    skipped: bool = False


def _new_local_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}"


class OfflineQueue:
    def __init__(
        self,
        storage: LocalStorage,
        *,
        key: str = OFFLINE_QUEUE_KEY,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.storage = storage
        self.key = key
        self.logger = logger or logging.getLogger("OfflineQueue")
        self._drain_lock = threading.Lock()
        self._write_lock = threading.Lock()

    def peek_all(self) -> list[dict]:
        raw = self.storage.get_item(self.key, [])
        if not isinstance(raw, list):
            self.logger.warning("Offline queue has unexpected type %s; treating as empty", type(raw).__name__)
            return []
        return [entry for entry in raw if isinstance(entry, dict)]

    def __len__(self) -> int:
        return len(self.peek_all())

    @property
    def draining(self) -> bool:
        return self._drain_lock.locked()

    def enqueue(self, payload: dict) -> str:
        local_id = _new_local_id()
        with self._write_lock:
            queue = self.peek_all()
            queue.append({"payload": payload, "_localId": local_id})
            self.storage.set_item(self.key, queue)
        self.logger.info(
            "Queued offline reading local_id=%s vehicle=%s pending=%s",
            local_id,
            payload.get("vehicle_id"),
            len(queue),
        )
        return local_id

    def drain_all(self, handler: ReplayHandler) -> DrainResult:
        if not self._drain_lock.acquire(blocking=False):
            self.logger.info("Offline drain already running; skipping")
            return DrainResult(remaining=len(self), skipped=True)
        try:
            entries = self.peek_all()
            if not entries:
                return DrainResult()
            total = len(entries)
            self.logger.info("Draining offline queue entries=%s", total)
            for index, entry in enumerate(entries, start=1):
                local_id = entry.get("_localId") or ""
                try:
                    handler(entry["payload"], local_id)
                except Exception as exc:
                    log_exception(
                        self.logger,
                        "Offline replay failed",
                        extra={"local_id": local_id, "position": f"{index}/{total}"},
                        exc=exc,
                    )
                    raise SyncError(
                        f"Offline sync failed at entry {index} of {total}; queue kept",
                        failed_local_id=local_id,
                        pending=total,
                    ) from exc

            drained_ids = {entry.get("_localId") for entry in entries}
            try:
                with self._write_lock:
                    # Entries queued while the drain ran stay queued.
                    remaining = [e for e in self.peek_all() if e.get("_localId") not in drained_ids]
                    self.storage.set_item(self.key, remaining)
            except StoreError as exc:
                raise SyncError("Offline entries replayed but the queue could not be cleared", pending=total) from exc
            self.logger.info("Offline queue drained entries=%s remaining=%s", total, len(remaining))
            return DrainResult(drained=total, remaining=len(remaining))
        finally:
            self._drain_lock.release()
