"""
Operator console: owns the operation day, the merged item view, filter
state, connectivity reactions and operator notifications.

Everything the browser page used to keep in component state lives here as
plain attributes so the HTTP layer (or a test) can drive the workflow.
"""

from __future__ import annotations

import collections
import datetime
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from sqlalchemy.orm import Session

from ..core.auth import OperatorContext
from ..core.dates import format_operation_day, parse_operation_day, utcnow
from ..core.errors import OperationDayRequired, RoletaFlowError, StoreError, SyncError, ValidationError
from ..schemas.operator import ConsoleState, NotificationOut
from ..schemas.turnstile import ReadingForm, ReconciliationResult, SubmissionResult
from .connectivity import ConnectivityMonitor
from .csv_export import operator_export, operator_export_filename
from .document_store import DocumentStore, SqlDocumentStore
from .filtering import FilterAction, FilteredPage, FilterState, SetPage, apply_filters, reduce_filters
from .local_storage import LocalStorage
from .offline_queue import DrainResult, OfflineQueue
from .reconciliation import ReconciliationEngine
from .submission import SubmissionWorkflow

OPERATION_DAY_KEY = "operationDate"
MAX_NOTIFICATIONS = 50


@dataclass
class Notification:
    level: str
    message: str
    created_at: datetime.datetime = field(default_factory=utcnow)


class OperatorConsole:
    def __init__(
        self,
        store: DocumentStore,
        storage: LocalStorage,
        *,
        tz_name: str,
        monitor: Optional[ConnectivityMonitor] = None,
        csv_delimiter: str = ";",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.storage = storage
        self.tz_name = tz_name
        self.csv_delimiter = csv_delimiter
        self.logger = logger or logging.getLogger("OperatorConsole")
        self.monitor = monitor or ConnectivityMonitor()
        self.queue = OfflineQueue(storage)
        self.engine = ReconciliationEngine(store, tz_name=tz_name)
        self.submissions = SubmissionWorkflow(
            store,
            self.queue,
            self.monitor,
            self.engine,
            tz_name=tz_name,
            on_reload_error=self._on_reload_error,
        )
        self.filters = FilterState()
        self.notifications: collections.deque[Notification] = collections.deque(maxlen=MAX_NOTIFICATIONS)
        self.monitor.on_online(self._handle_online)
        self.monitor.on_offline(self._handle_offline)

    @property
    def operation_day(self) -> Optional[datetime.date]:
        return self.engine.operation_day

    def notify(self, level: str, message: str) -> Notification:
        note = Notification(level=level, message=message)
        self.notifications.append(note)
        log_level = {"error": logging.ERROR, "warning": logging.WARNING}.get(level, logging.INFO)
        self.logger.log(log_level, "Notify [%s] %s", level, message)
        return note

    def _on_reload_error(self, exc: Exception) -> None:
        self.notify("error", f"Could not refresh the vehicle list: {exc}")

    def restore(self) -> Optional[datetime.date]:
        """Reselect the operation day persisted by a previous session."""
        raw = self.storage.get_item(OPERATION_DAY_KEY)
        if not raw:
            return None
        try:
            day = parse_operation_day(raw)
        except ValidationError:
            self.logger.warning("Discarding invalid stored operation day %r", raw)
            self.storage.remove_item(OPERATION_DAY_KEY)
            return None
        try:
            self.engine.load(day)
        except StoreError as exc:
            self.notify("error", f"Could not load readings for {raw}: {exc}")
        return day

    def select_operation_day(self, value: Union[str, datetime.date, None]) -> Optional[ReconciliationResult]:
        if isinstance(value, datetime.date):
            day = value
        else:
            day = parse_operation_day(value)
        self.storage.set_item(OPERATION_DAY_KEY, format_operation_day(day))
        self.filters = reduce_filters(self.filters, SetPage(1))
        try:
            return self.engine.load(day)
        except StoreError as exc:
            self.notify("error", f"Could not load readings for {format_operation_day(day)}: {exc}")
            raise

    def refresh(self) -> Optional[ReconciliationResult]:
        if self.engine.requested_day is None:
            raise OperationDayRequired()
        return self.engine.reload()

    def dispatch(self, action: FilterAction) -> FilterState:
        self.filters = reduce_filters(self.filters, action)
        return self.filters

    def current_page(self) -> FilteredPage:
        return apply_filters(self.engine.items, self.filters)

    def submit_reading(
        self,
        form: ReadingForm,
        operator: OperatorContext,
        *,
        record_id: Optional[str] = None,
    ) -> SubmissionResult:
        try:
            if record_id:
                result = self.submissions.update(record_id, form, operator, operation_day=self.operation_day)
            else:
                result = self.submissions.create(form, operator, operation_day=self.operation_day)
        except RoletaFlowError as exc:
            self.notify("error", f"Could not save the reading: {exc}")
            raise
        messages = {
            "created": "Reading added",
            "queued": "Reading saved offline",
            "updated": "Reading updated",
        }
        self.notify("success", messages[result.status])
        return result

    def sync_offline_queue(self) -> DrainResult:
        try:
            result = self.submissions.sync()
        except SyncError as exc:
            self.notify("error", f"Offline sync failed; {exc.pending} reading(s) kept for retry")
            raise
        if result.drained:
            self.notify("success", f"{result.drained} offline reading(s) synced")
        return result

    def _handle_online(self) -> None:
        self.notify("info", "Connection restored")
        try:
            self.sync_offline_queue()
        except SyncError:
            # Already reported; the queue stays for the next reconnect or manual sync.
            return

    def _handle_offline(self) -> None:
        self.notify("warning", "Offline: new readings will be queued on this device")

    def set_online(self, online: bool) -> bool:
        return self.monitor.signal(online)

    def export_csv(self) -> tuple[str, str]:
        """Return ``(filename, content)`` for the loaded day's readings."""
        day = self.engine.loaded_day
        if day is None:
            raise OperationDayRequired("Select the operation day before exporting")
        content = operator_export(self.engine.items, tz_name=self.tz_name, delimiter=self.csv_delimiter)
        return operator_export_filename(day), content

    def snapshot(self) -> ConsoleState:
        day = self.engine.operation_day
        requested = self.engine.requested_day
        return ConsoleState(
            operation_day=format_operation_day(day) if day else None,
            requested_day=format_operation_day(requested) if requested else None,
            loaded_at=self.engine.loaded_at,
            connectivity=self.monitor.state.value,
            queue_size=len(self.queue),
            draining=self.queue.draining,
            progress=self.engine.progress,
            filters=self.filters.model_dump(),
            last_error=self.engine.last_error,
            notifications=[
                NotificationOut(level=n.level, message=n.message, created_at=n.created_at) for n in self.notifications
            ],
        )


def build_console(
    session_factory: Optional[Callable[[], Session]] = None,
    storage_path: Optional[str] = None,
    *,
    online: bool = True,
) -> OperatorConsole:
    from ..core.config import settings

    if session_factory is None:
        from ..core.db import SessionLocal

        session_factory = SessionLocal
    return OperatorConsole(
        SqlDocumentStore(session_factory),
        LocalStorage(storage_path or settings.local_storage_path),
        tz_name=settings.timezone_name,
        monitor=ConnectivityMonitor(online=online),
        csv_delimiter=settings.operator_csv_delimiter,
    )
