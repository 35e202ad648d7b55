"""
Operator console endpoints.

Thin wrappers over the shared `OperatorConsole` kept on ``app.state``: select
the operation day, browse the merged vehicle list, submit or edit readings,
report connectivity and drain the offline queue.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import StreamingResponse

from ...core.auth import OperatorContext, get_operator
from ...core.dates import format_operation_day
from ...core.errors import MissingReferenceError, RoletaFlowError, SyncError, ValidationError
from ...core.pagination import set_pagination_headers
from ...schemas.operator import (
    ConnectivityIn,
    ConnectivityOut,
    ConsoleState,
    DrainResultOut,
    OperationDayIn,
    QueueEntryOut,
)
from ...schemas.turnstile import MergedItem, ReadingForm, SubmissionResult
from ...services.filtering import (
    FILTER_FIELDS,
    FilterState,
    ResetFilters,
    SetFilter,
    SetPage,
    SetPageSize,
)
from ...services.operator_console import OperatorConsole


router = APIRouter(prefix="/api/v1/operator", tags=["operator"])


def get_console(request: Request) -> OperatorConsole:
    return request.app.state.console


def http_error(exc: RoletaFlowError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail={"field": exc.field, "message": exc.message})
    if isinstance(exc, MissingReferenceError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, SyncError):
        return HTTPException(
            status_code=502,
            detail={"message": str(exc), "failed_local_id": exc.failed_local_id, "pending": exc.pending},
        )
    return HTTPException(status_code=503, detail=str(exc))


@router.get("/state", response_model=ConsoleState)
def console_state(console: OperatorConsole = Depends(get_console)) -> ConsoleState:
    return console.snapshot()


@router.put("/operation-day", response_model=ConsoleState)
def select_operation_day(
    payload: OperationDayIn,
    console: OperatorConsole = Depends(get_console),
) -> ConsoleState:
    try:
        console.select_operation_day(payload.operation_day)
    except RoletaFlowError as exc:
        raise http_error(exc)
    return console.snapshot()


@router.post("/refresh", response_model=ConsoleState)
def refresh(console: OperatorConsole = Depends(get_console)) -> ConsoleState:
    try:
        console.refresh()
    except RoletaFlowError as exc:
        raise http_error(exc)
    return console.snapshot()


@router.get("/items", response_model=list[MergedItem])
def list_items(
    response: Response,
    search: Optional[str] = Query(None),
    discrepancy: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    journey: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    page: Optional[int] = Query(None),
    page_size: Optional[int] = Query(None),
    console: OperatorConsole = Depends(get_console),
) -> list[MergedItem]:
    """
    Page through the merged items of the loaded operation day.

    Query filters are dispatched into the console filter state, so a GET also
    updates the filters the console keeps. There is one console per
    workstation, so the next request sees the same view.
    """
    if console.operation_day is None:
        raise http_error(ValidationError("operation_day", "Operation day must be selected first"))
    requested = {
        "search": search,
        "discrepancy": discrepancy,
        "status": status,
        "journey": journey,
        "sort": sort,
    }
    try:
        for name in FILTER_FIELDS:
            if requested[name] is not None:
                console.dispatch(SetFilter(name, requested[name]))
        if page_size is not None:
            console.dispatch(SetPageSize(page_size))
        if page is not None:
            console.dispatch(SetPage(page))
    except RoletaFlowError as exc:
        raise http_error(exc)
    result = console.current_page()
    set_pagination_headers(response, total=result.total, page=result.page, page_size=result.page_size)
    response.headers["X-Total-Pages"] = str(result.total_pages)
    response.headers["X-Operation-Day"] = format_operation_day(console.operation_day)
    return result.items


@router.get("/filters", response_model=FilterState)
def get_filters(console: OperatorConsole = Depends(get_console)) -> FilterState:
    return console.filters


@router.post("/filters/reset", response_model=FilterState)
def reset_filters(console: OperatorConsole = Depends(get_console)) -> FilterState:
    return console.dispatch(ResetFilters())


@router.post("/records", response_model=SubmissionResult, status_code=201)
def create_record(
    payload: ReadingForm,
    response: Response,
    console: OperatorConsole = Depends(get_console),
    operator: OperatorContext = Depends(get_operator),
) -> SubmissionResult:
    try:
        result = console.submit_reading(payload, operator)
    except RoletaFlowError as exc:
        raise http_error(exc)
    if result.status == "queued":
        response.status_code = 202
    return result


@router.put("/records/{record_id}", response_model=SubmissionResult)
def update_record(
    record_id: str,
    payload: ReadingForm,
    console: OperatorConsole = Depends(get_console),
    operator: OperatorContext = Depends(get_operator),
) -> SubmissionResult:
    try:
        return console.submit_reading(payload, operator, record_id=record_id)
    except RoletaFlowError as exc:
        raise http_error(exc)


@router.post("/connectivity", response_model=ConnectivityOut)
def report_connectivity(
    payload: ConnectivityIn,
    console: OperatorConsole = Depends(get_console),
) -> ConnectivityOut:
    changed = console.set_online(payload.online)
    return ConnectivityOut(state=console.monitor.state.value, changed=changed, queue_size=len(console.queue))


@router.post("/sync", response_model=DrainResultOut)
def sync_offline_queue(console: OperatorConsole = Depends(get_console)) -> DrainResultOut:
    if not console.monitor.is_online:
        raise HTTPException(status_code=409, detail="Offline; the queue drains when connectivity returns")
    try:
        result = console.sync_offline_queue()
    except RoletaFlowError as exc:
        raise http_error(exc)
    return DrainResultOut(drained=result.drained, remaining=result.remaining, skipped=result.skipped)


@router.get("/queue", response_model=list[QueueEntryOut])
def list_offline_queue(console: OperatorConsole = Depends(get_console)) -> list[QueueEntryOut]:
    entries = []
    for entry in console.queue.peek_all():
        payload = entry.get("payload") or {}
        entries.append(
            QueueEntryOut(
                local_id=entry.get("_localId"),
                vehicle_id=payload.get("vehicle_id"),
                operator_name=payload.get("operator_name"),
                created_at=payload.get("created_at"),
            )
        )
    return entries


@router.get("/export.csv")
def export_csv(console: OperatorConsole = Depends(get_console)) -> StreamingResponse:
    try:
        filename, content = console.export_csv()
    except RoletaFlowError as exc:
        raise http_error(exc)
    return StreamingResponse(
        iter([content]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
