"""
Reconciliation of the active roster with the readings of one operation day.

Every active vehicle yields exactly one merged item: `done` when a reading
exists for the day, `pending` otherwise. Readings for vehicles that have
since been deactivated still show up as done.
"""

from __future__ import annotations

import datetime
import logging
import threading
from typing import Optional

from ..core.dates import local_day_range_to_utc, utcnow
from ..core.errors import OperationDayRequired, StoreError, log_exception
from ..schemas.turnstile import MergedItem, Progress, ReconciliationResult, WorkItem
from .document_store import COMPANIES, RECORDS, VEHICLES, DocumentStore, ReferenceResolver


def load_work_items(store: DocumentStore, resolver: Optional[ReferenceResolver] = None) -> list[WorkItem]:
    vehicles = store.query(VEHICLES, [("is_active", "==", True)], order_by="number")
    companies = store.query(COMPANIES, [("is_active", "==", True)])
    if resolver is not None:
        # Done items of rostered vehicles then resolve without another lookup.
        resolver.prime(VEHICLES, vehicles)
        resolver.prime(COMPANIES, companies)
    company_names = {str(c["id"]): c.get("name") or "" for c in companies}
    items: list[WorkItem] = []
    for v in vehicles:
        company_id = v.get("company_id") or ""
        items.append(
            WorkItem(
                vehicle_id=str(v["id"]),
                vehicle_number=v.get("number") or "",
                vehicle_plate=v.get("plate") or "",
                company_id=company_id,
                company_name=company_names.get(company_id, ""),
            )
        )
    return items


def _done_item(record: dict, resolver: ReferenceResolver) -> MergedItem:
    vehicle = resolver.get(VEHICLES, record.get("vehicle_id")) or {}
    company = resolver.get(COMPANIES, vehicle.get("company_id")) or {}
    return MergedItem(
        kind="done",
        vehicle_id=str(record["vehicle_id"]),
        vehicle_number=vehicle.get("number") or "",
        vehicle_plate=vehicle.get("plate") or "",
        company_id=vehicle.get("company_id") or "",
        company_name=company.get("name") or "",
        record_id=str(record["id"]),
        physical_reading=record.get("physical_reading"),
        electronic_reading=record.get("electronic_reading"),
        physical_unreadable=bool(record.get("physical_unreadable")),
        validator_broken=bool(record.get("validator_broken")),
        observation=record.get("observation") or "",
        journey_closed=bool(record.get("journey_closed")),
        operator_id=record.get("operator_id") or "",
        operator_name=record.get("operator_name") or "",
        created_at=record.get("created_at"),
        updated_at=record.get("updated_at"),
        operation_date=record.get("operation_date"),
    )


def fetch_done_items(
    store: DocumentStore,
    day: datetime.date,
    tz_name: str,
    *,
    resolver: Optional[ReferenceResolver] = None,
) -> tuple[list[MergedItem], int]:
    """Return the done items of a day and the number of readings found."""
    start_utc, end_utc = local_day_range_to_utc(day, tz_name)
    records = store.query(
        RECORDS,
        [("operation_date", ">=", start_utc), ("operation_date", "<", end_utc)],
        order_by="created_at",
    )
    resolver = resolver or ReferenceResolver(store)
    by_vehicle: dict[str, MergedItem] = {}
    for record in records:
        if not record.get("vehicle_id"):
            continue
        # Ordered by created_at, so the latest reading of a vehicle wins.
        item = _done_item(record, resolver)
        by_vehicle[item.vehicle_id] = item
    return list(by_vehicle.values()), len(records)


def merge_items(work_items: list[WorkItem], done_items: list[MergedItem]) -> list[MergedItem]:
    done_ids = {item.vehicle_id for item in done_items}
    merged = list(done_items)
    for work in work_items:
        if work.vehicle_id in done_ids:
            continue
        merged.append(MergedItem(kind="pending", **work.model_dump()))
        done_ids.add(work.vehicle_id)
    return merged


class ReconciliationEngine:
    """Holds the merged view of the selected operation day."""

    def __init__(self, store: DocumentStore, *, tz_name: str, logger: Optional[logging.Logger] = None) -> None:
        self.store = store
        self.tz_name = tz_name
        self.logger = logger or logging.getLogger("ReconciliationEngine")
        self._lock = threading.Lock()
        self._generation = 0
        # operation_day only moves once its load succeeds; requested_day is the latest ask.
        self.requested_day: Optional[datetime.date] = None
        self.operation_day: Optional[datetime.date] = None
        self.loaded_day: Optional[datetime.date] = None
        self.loaded_at: Optional[datetime.datetime] = None
        self.work_items: list[WorkItem] = []
        self.items: list[MergedItem] = []
        self.progress = Progress()
        self.last_error: Optional[str] = None

    def find_work_item(self, vehicle_id: str) -> Optional[WorkItem]:
        for work in self.work_items:
            if work.vehicle_id == vehicle_id:
                return work
        return None

    def load(self, operation_day: Optional[datetime.date] = None) -> Optional[ReconciliationResult]:
        """
        Load the merged view for a day.

        Returns None when a newer load started before this one finished; the
        stale result is discarded. On store failure the previous view, and the
        day it belongs to, are kept and StoreError is raised.
        """
        day = operation_day or self.requested_day
        if day is None:
            raise OperationDayRequired()
        with self._lock:
            self._generation += 1
            generation = self._generation
            self.requested_day = day

        try:
            resolver = ReferenceResolver(self.store)
            work_items = load_work_items(self.store, resolver)
            done_items, done_count = fetch_done_items(self.store, day, self.tz_name, resolver=resolver)
        except StoreError as exc:
            with self._lock:
                if generation == self._generation:
                    self.last_error = str(exc)
            log_exception(self.logger, "Reconciliation load failed", extra={"day": day.isoformat()}, exc=exc)
            raise

        result = ReconciliationResult(
            operation_day=day,
            generation=generation,
            items=merge_items(work_items, done_items),
            progress=Progress(done=done_count, total=len(work_items)),
        )
        with self._lock:
            if generation != self._generation or self.requested_day != day:
                self.logger.info("Discarding stale load day=%s generation=%s", day, generation)
                return None
            self.work_items = work_items
            self.items = result.items
            self.progress = result.progress
            self.operation_day = day
            self.loaded_day = day
            self.loaded_at = utcnow()
            self.last_error = None
        self.logger.info(
            "Loaded day=%s done=%s total=%s items=%s",
            day.isoformat(),
            result.progress.done,
            result.progress.total,
            len(result.items),
        )
        return result

    def reload(self) -> Optional[ReconciliationResult]:
        return self.load(self.requested_day)
