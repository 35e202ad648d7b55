"""
Record submission workflow: validation gate, create/queue, edit and replay.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from ..core.auth import OperatorContext
from ..core.dates import local_midnight, utcnow
from ..core.errors import (
    MissingReferenceError,
    OperationDayRequired,
    RoletaFlowError,
    StoreError,
    ValidationError,
    log_exception,
)
from ..schemas.turnstile import ReadingForm, ReadingPayload, SubmissionResult, has_mismatch
from .connectivity import ConnectivityMonitor
from .document_store import RECORD_LOGS, RECORDS, DocumentStore
from .offline_queue import DrainResult, OfflineQueue
from .reconciliation import ReconciliationEngine

OFFLINE_SYNC_ACTION = "create_offline_sync"


@dataclass(frozen=True)
class Counted:
    value: int


@dataclass(frozen=True)
class Defect:
    reason: str


Channel = Union[Counted, Defect]


def parse_channel(raw: Any, defective: bool, *, field: str, reason: str, missing_message: str) -> Channel:
    """Turn one counter input plus its defect flag into a channel value."""
    if defective:
        return Defect(reason)
    text = "" if raw is None else str(raw).strip()
    if not text:
        raise ValidationError(field, missing_message)
    # bool is an int subclass; a checkbox value is not a counter reading.
    if isinstance(raw, bool):
        raise ValidationError(field, "Reading must be a whole number")
    if text.startswith("-") and text[1:].isascii() and text[1:].isdigit():
        raise ValidationError(field, "Reading cannot be negative")
    # Plain ASCII digits only.
    if not (text.isascii() and text.isdigit()):
        raise ValidationError(field, "Reading must be a whole number")
    return Counted(int(text))


def channel_value(channel: Channel) -> Optional[int]:
    if isinstance(channel, Counted):
        return channel.value
    return None


def _difference(physical: Optional[int], electronic: Optional[int]) -> Optional[int]:
    if physical is None or electronic is None:
        return None
    return physical - electronic


ReloadErrorHandler = Callable[[Exception], None]


class SubmissionWorkflow:
    def __init__(
        self,
        store: DocumentStore,
        queue: OfflineQueue,
        monitor: ConnectivityMonitor,
        engine: ReconciliationEngine,
        *,
        tz_name: str,
        on_reload_error: Optional[ReloadErrorHandler] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.queue = queue
        self.monitor = monitor
        self.engine = engine
        self.tz_name = tz_name
        self.on_reload_error = on_reload_error
        self.logger = logger or logging.getLogger("SubmissionWorkflow")

    def validate(self, form: ReadingForm) -> tuple[Channel, Channel]:
        physical = parse_channel(
            form.physical_reading,
            form.physical_unreadable,
            field="physical_reading",
            reason="unreadable",
            missing_message='Enter the physical reading or mark it as "unreadable"',
        )
        electronic = parse_channel(
            form.electronic_reading,
            form.validator_broken,
            field="electronic_reading",
            reason="validator broken",
            missing_message='Enter the electronic reading or mark the validator as broken',
        )
        return physical, electronic

    def _reload(self) -> None:
        try:
            self.engine.reload()
        except RoletaFlowError as exc:
            log_exception(self.logger, "Reload after submission failed", exc=exc)
            if self.on_reload_error:
                self.on_reload_error(exc)

    def create(
        self,
        form: ReadingForm,
        operator: OperatorContext,
        *,
        operation_day: Optional[datetime.date],
        now: Optional[datetime.datetime] = None,
    ) -> SubmissionResult:
        if operation_day is None:
            raise OperationDayRequired()
        if not form.vehicle_id:
            raise ValidationError("vehicle_id", "Select a vehicle")
        work = self.engine.find_work_item(form.vehicle_id)
        if work is None:
            raise MissingReferenceError("vehicles", form.vehicle_id)
        physical, electronic = self.validate(form)

        payload = ReadingPayload(
            vehicle_id=work.vehicle_id,
            vehicle_number=work.vehicle_number,
            physical_reading=channel_value(physical),
            electronic_reading=channel_value(electronic),
            physical_unreadable=isinstance(physical, Defect),
            validator_broken=isinstance(electronic, Defect),
            observation=form.observation or "",
            journey_closed=form.journey_closed,
            operator_id=operator.operator_id,
            operator_name=operator.operator_name,
            created_at=now or utcnow(),
            operation_date=local_midnight(operation_day, self.tz_name),
        )
        result = SubmissionResult(
            status="created",
            vehicle_id=payload.vehicle_id,
            mismatch=has_mismatch(payload.physical_reading, payload.electronic_reading),
            difference=_difference(payload.physical_reading, payload.electronic_reading),
        )

        if not self.monitor.is_online:
            result.local_id = self.queue.enqueue(payload.model_dump(mode="json"))
            result.status = "queued"
        else:
            result.record_id = self.store.create(RECORDS, payload.to_document())
            self.logger.info(
                "Reading created id=%s vehicle=%s operator=%s",
                result.record_id,
                payload.vehicle_id,
                payload.operator_id,
            )
        self._reload()
        return result

    def update(
        self,
        record_id: str,
        form: ReadingForm,
        operator: OperatorContext,
        *,
        operation_day: Optional[datetime.date],
        now: Optional[datetime.datetime] = None,
    ) -> SubmissionResult:
        if operation_day is None:
            raise OperationDayRequired()
        if not self.monitor.is_online:
            raise StoreError("Editing a reading requires connectivity")
        physical, electronic = self.validate(form)
        existing = self.store.get(RECORDS, record_id)
        if existing is None:
            raise MissingReferenceError(RECORDS, record_id)
        if form.vehicle_id and form.vehicle_id != existing.get("vehicle_id"):
            raise ValidationError("vehicle_id", "Vehicle does not match the reading being edited")

        fields = {
            "physical_reading": channel_value(physical),
            "electronic_reading": channel_value(electronic),
            "physical_unreadable": isinstance(physical, Defect),
            "validator_broken": isinstance(electronic, Defect),
            "observation": form.observation or "",
            "journey_closed": form.journey_closed,
            "updated_at": now or utcnow(),
        }
        self.store.update(RECORDS, record_id, fields)
        self.logger.info("Reading updated id=%s operator=%s", record_id, operator.operator_id)
        self._reload()
        return SubmissionResult(
            status="updated",
            vehicle_id=str(existing.get("vehicle_id")),
            record_id=record_id,
            mismatch=has_mismatch(fields["physical_reading"], fields["electronic_reading"]),
            difference=_difference(fields["physical_reading"], fields["electronic_reading"]),
        )

    def replay(self, payload: dict, local_id: str) -> str:
        """Write one queued reading plus its audit-log entry."""
        reading = ReadingPayload.model_validate(payload)
        record_id = self.store.create(RECORDS, reading.to_document())
        self.store.create(
            RECORD_LOGS,
            {
                "action": OFFLINE_SYNC_ACTION,
                "vehicle_id": reading.vehicle_id,
                "operator_id": reading.operator_id,
                "operator_name": reading.operator_name,
                "created_at": utcnow(),
                "payload": {**payload, "local_id": local_id},
            },
        )
        self.logger.info("Replayed offline reading local_id=%s record=%s", local_id, record_id)
        return record_id

    def sync(self) -> DrainResult:
        result = self.queue.drain_all(self.replay)
        if result.drained and self.engine.requested_day is not None:
            self._reload()
        return result
