"""
Administrator reports over all readings.

Readings are listed newest first and joined with their vehicle; operators
only ever see their own readings, administrators see everything.
"""

from __future__ import annotations

import datetime
import logging
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from ..core.dates import local_day_range_to_utc, local_midnight, utcnow
from ..schemas.report import DashboardRecords, DashboardStats, ReportRecord, ReportStats
from ..schemas.turnstile import has_mismatch
from .csv_export import report_export, report_export_filename
from .document_store import COMPANIES, RECORDS, VEHICLES, DocumentStore, ReferenceResolver

logger = logging.getLogger("Reports")

PLACEHOLDER = "N/A"
DASHBOARD_LATEST_LIMIT = 20
DASHBOARD_MISMATCH_LIMIT = 10
DASHBOARD_OPEN_JOURNEY_LIMIT = 20


def list_report_records(
    store: DocumentStore,
    *,
    tz_name: str,
    operator_id: Optional[str] = None,
    day: Optional[datetime.date] = None,
    search: str = "",
) -> list[ReportRecord]:
    filters = []
    if operator_id:
        filters.append(("operator_id", "==", operator_id))
    if day is not None:
        start_utc, end_utc = local_day_range_to_utc(day, tz_name)
        filters.append(("operation_date", ">=", start_utc))
        filters.append(("operation_date", "<", end_utc))
    docs = store.query(RECORDS, filters, order_by="-created_at")

    resolver = ReferenceResolver(store)
    term = (search or "").strip().lower()
    out: list[ReportRecord] = []
    for doc in docs:
        vehicle = resolver.get(VEHICLES, doc.get("vehicle_id")) or {}
        record = ReportRecord(
            id=str(doc["id"]),
            vehicle_id=str(doc.get("vehicle_id") or ""),
            vehicle_number=vehicle.get("number") or PLACEHOLDER,
            vehicle_plate=vehicle.get("plate") or PLACEHOLDER,
            vehicle_type=vehicle.get("type") or PLACEHOLDER,
            physical_reading=doc.get("physical_reading"),
            electronic_reading=doc.get("electronic_reading"),
            physical_unreadable=bool(doc.get("physical_unreadable")),
            validator_broken=bool(doc.get("validator_broken")),
            observation=doc.get("observation") or "",
            journey_closed=bool(doc.get("journey_closed")),
            operator_id=doc.get("operator_id") or "",
            operator_name=doc.get("operator_name") or "",
            created_at=doc.get("created_at"),
            operation_date=doc.get("operation_date"),
        )
        if term and not any(
            term in value.lower() for value in (record.vehicle_number, record.vehicle_plate, record.operator_name)
        ):
            continue
        out.append(record)
    return out


def report_stats(records: Iterable[ReportRecord]) -> ReportStats:
    stats = ReportStats()
    for r in records:
        stats.total += 1
        if r.mismatch:
            stats.mismatches += 1
        if r.journey_closed:
            stats.journey_closed += 1
        else:
            stats.journey_open += 1
    return stats


def dashboard_stats(
    store: DocumentStore,
    *,
    tz_name: str,
    now: Optional[datetime.datetime] = None,
) -> DashboardStats:
    now = now or utcnow()
    today = now.astimezone(ZoneInfo(tz_name)).date()
    today_start = local_midnight(today, tz_name)

    vehicles = store.query(VEHICLES)
    companies = store.query(COMPANIES)
    records = store.query(RECORDS)

    stats = DashboardStats(
        total_vehicles=len(vehicles),
        active_vehicles=sum(1 for v in vehicles if v.get("is_active")),
        total_companies=len(companies),
    )
    for doc in records:
        created_at = doc.get("created_at")
        if created_at is not None and created_at >= today_start:
            stats.today_records += 1
        if has_mismatch(doc.get("physical_reading"), doc.get("electronic_reading")):
            stats.mismatches += 1
        if not doc.get("journey_closed"):
            stats.open_journeys += 1
    logger.debug("Dashboard stats computed records=%s", len(records))
    return stats


def dashboard_records(
    store: DocumentStore,
    *,
    tz_name: str,
    latest_limit: int = DASHBOARD_LATEST_LIMIT,
    mismatch_limit: int = DASHBOARD_MISMATCH_LIMIT,
    open_limit: int = DASHBOARD_OPEN_JOURNEY_LIMIT,
) -> DashboardRecords:
    records = list_report_records(store, tz_name=tz_name)
    mismatches = [r for r in records if r.mismatch]
    open_journeys = [r for r in records if not r.journey_closed]
    return DashboardRecords(
        latest=records[:latest_limit],
        mismatches=mismatches[:mismatch_limit],
        open_journeys=open_journeys[:open_limit],
    )


def export_report_csv(
    records: Iterable[ReportRecord],
    *,
    tz_name: str,
    today: Optional[datetime.date] = None,
    delimiter: str = ",",
) -> tuple[str, str]:
    """Return ``(filename, content)`` for the report download."""
    today = today or utcnow().astimezone(ZoneInfo(tz_name)).date()
    return report_export_filename(today), report_export(records, tz_name=tz_name, delimiter=delimiter)
