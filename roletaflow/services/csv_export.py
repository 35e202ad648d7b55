"""
CSV exports for the operator console and the reports page.
"""

from __future__ import annotations

import csv
import datetime
import io
from typing import Any, Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

from ..schemas.report import ReportRecord
from ..schemas.turnstile import MergedItem

LOCAL_DATETIME_FORMAT = "%d/%m/%Y %H:%M:%S"
LOCAL_DATE_FORMAT = "%d/%m/%Y"

OPERATOR_HEADERS = [
    "Vehicle",
    "Plate",
    "Company",
    "Physical",
    "Electronic",
    "Unreadable",
    "Validator Broken",
    "Observation",
    "Journey Closed",
    "Operator",
    "Created At",
]

REPORT_HEADERS = [
    "Operation Date",
    "Recorded At",
    "Vehicle",
    "Plate",
    "Physical Turnstile",
    "Electronic Turnstile",
    "Journey",
    "Operator",
]


def _yes_no(value: Any) -> str:
    return "Yes" if value else "No"


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


def _local(dt: Optional[datetime.datetime], tz_name: str, fmt: str) -> str:
    if dt is None:
        return ""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(ZoneInfo(tz_name)).strftime(fmt)


def build_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]], *, delimiter: str) -> str:
    """Every field quoted, embedded quotes doubled, rows joined by ``\\n``."""
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=delimiter, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(list(headers))
    for row in rows:
        writer.writerow([_cell(value) for value in row])
    return buf.getvalue().rstrip("\n")


def operator_export_filename(day: datetime.date) -> str:
    return f"records_{day.strftime('%d-%m-%Y')}.csv"


def report_export_filename(today: datetime.date) -> str:
    return f"turnstile_report_{today.isoformat()}.csv"


def operator_export(items: Iterable[MergedItem], *, tz_name: str, delimiter: str = ";") -> str:
    """Completed readings of the loaded day; pending vehicles are left out."""
    rows = []
    for item in items:
        if item.kind != "done":
            continue
        rows.append(
            [
                item.vehicle_number,
                item.vehicle_plate,
                item.company_name,
                item.physical_reading,
                item.electronic_reading,
                _yes_no(item.physical_unreadable),
                _yes_no(item.validator_broken),
                item.observation,
                _yes_no(item.journey_closed),
                item.operator_name,
                _local(item.created_at, tz_name, LOCAL_DATETIME_FORMAT),
            ]
        )
    return build_csv(OPERATOR_HEADERS, rows, delimiter=delimiter)


def report_export(records: Iterable[ReportRecord], *, tz_name: str, delimiter: str = ",") -> str:
    rows = [
        [
            _local(r.operation_date, tz_name, LOCAL_DATE_FORMAT) or "N/A",
            _local(r.created_at, tz_name, LOCAL_DATETIME_FORMAT) or "N/A",
            r.vehicle_number,
            r.vehicle_plate,
            r.physical_reading,
            r.electronic_reading,
            "Closed" if r.journey_closed else "Open",
            r.operator_name,
        ]
        for r in records
    ]
    return build_csv(REPORT_HEADERS, rows, delimiter=delimiter)
