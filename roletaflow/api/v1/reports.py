"""
Reporting endpoints: reading history, summary counters, CSV download and
the administrator dashboard.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from ...core.auth import OperatorContext, get_operator
from ...core.config import settings
from ...core.dates import parse_operation_day
from ...core.errors import RoletaFlowError
from ...schemas.report import DashboardRecords, DashboardStats, ReportRecord, ReportStats
from ...services.document_store import DocumentStore
from ...services.reports import (
    dashboard_records,
    dashboard_stats,
    export_report_csv,
    list_report_records,
    report_stats,
)
from .operator import http_error


router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


def get_store(request: Request) -> DocumentStore:
    return request.app.state.console.store


def _records(
    store: DocumentStore,
    operator: OperatorContext,
    day: Optional[str],
    search: Optional[str],
) -> list[ReportRecord]:
    try:
        return list_report_records(
            store,
            tz_name=settings.timezone_name,
            # Operators only see their own readings.
            operator_id=None if operator.is_admin else operator.operator_id,
            day=parse_operation_day(day) if day else None,
            search=search or "",
        )
    except RoletaFlowError as exc:
        raise http_error(exc)


@router.get("/records", response_model=list[ReportRecord])
def report_records(
    day: Optional[str] = Query(None, description="Operation day as DD/MM/YYYY."),
    search: Optional[str] = Query(None),
    store: DocumentStore = Depends(get_store),
    operator: OperatorContext = Depends(get_operator),
) -> list[ReportRecord]:
    return _records(store, operator, day, search)


@router.get("/stats", response_model=ReportStats)
def report_summary(
    day: Optional[str] = Query(None, description="Operation day as DD/MM/YYYY."),
    search: Optional[str] = Query(None),
    store: DocumentStore = Depends(get_store),
    operator: OperatorContext = Depends(get_operator),
) -> ReportStats:
    return report_stats(_records(store, operator, day, search))


@router.get("/export.csv")
def report_export_csv(
    day: Optional[str] = Query(None, description="Operation day as DD/MM/YYYY."),
    search: Optional[str] = Query(None),
    store: DocumentStore = Depends(get_store),
    operator: OperatorContext = Depends(get_operator),
) -> StreamingResponse:
    records = _records(store, operator, day, search)
    filename, content = export_report_csv(
        records,
        tz_name=settings.timezone_name,
        delimiter=settings.report_csv_delimiter,
    )
    return StreamingResponse(
        iter([content]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/dashboard", response_model=DashboardStats)
def dashboard(
    store: DocumentStore = Depends(get_store),
    operator: OperatorContext = Depends(get_operator),
) -> DashboardStats:
    if not operator.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    try:
        return dashboard_stats(store, tz_name=settings.timezone_name)
    except RoletaFlowError as exc:
        raise http_error(exc)


@router.get("/dashboard/records", response_model=DashboardRecords)
def dashboard_record_lists(
    store: DocumentStore = Depends(get_store),
    operator: OperatorContext = Depends(get_operator),
) -> DashboardRecords:
    if not operator.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    try:
        return dashboard_records(store, tz_name=settings.timezone_name)
    except RoletaFlowError as exc:
        raise http_error(exc)
