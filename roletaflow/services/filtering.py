"""
Filter, sort and paginate the merged item list.

`apply_filters` is a pure function of the items and a `FilterState`;
`reduce_filters` is the only way the console mutates that state.
"""

from __future__ import annotations

import datetime
import unicodedata
from dataclasses import dataclass
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..core.errors import ValidationError
from ..core.pagination import DEFAULT_PAGE_SIZE, PAGE_SIZES, has_next_page, page_window, total_pages
from ..schemas.turnstile import MergedItem


DiscrepancyFilter = Literal["all", "yes", "no"]
StatusFilter = Literal["all", "pending", "done"]
JourneyFilter = Literal["all", "open", "closed"]
SortOrder = Literal["vehicleAsc", "vehicleDesc", "dateAsc", "dateDesc"]

FILTER_FIELDS = ("search", "discrepancy", "status", "journey", "sort")

_EARLIEST = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


class FilterState(BaseModel):
    search: str = ""
    discrepancy: DiscrepancyFilter = "all"
    status: StatusFilter = "pending"
    journey: JourneyFilter = "all"
    sort: SortOrder = "vehicleAsc"
    page: int = Field(default=1, ge=1)
    page_size: int = DEFAULT_PAGE_SIZE

    model_config = ConfigDict(frozen=True)

    @field_validator("page_size")
    @classmethod
    def _check_page_size(cls, value: int) -> int:
        if value not in PAGE_SIZES:
            raise ValueError(f"page_size must be one of {PAGE_SIZES}")
        return value


@dataclass(frozen=True)
class SetFilter:
    field: str
    value: str


@dataclass(frozen=True)
class SetPage:
    page: int


@dataclass(frozen=True)
class SetPageSize:
    page_size: int


@dataclass(frozen=True)
class ResetFilters:
    pass


FilterAction = Union[SetFilter, SetPage, SetPageSize, ResetFilters]


def _with(state: FilterState, **changes) -> FilterState:
    try:
        return FilterState.model_validate({**state.model_dump(), **changes})
    except PydanticValidationError as exc:
        err = exc.errors()[0]
        field = str(err["loc"][0]) if err.get("loc") else "filters"
        raise ValidationError(field, err.get("msg", "invalid value")) from exc


def reduce_filters(state: FilterState, action: FilterAction) -> FilterState:
    if isinstance(action, SetFilter):
        if action.field not in FILTER_FIELDS:
            raise ValidationError(action.field, "Unknown filter")
        if getattr(state, action.field) == action.value:
            return state
        return _with(state, **{action.field: action.value, "page": 1})
    if isinstance(action, SetPage):
        return _with(state, page=action.page)
    if isinstance(action, SetPageSize):
        if action.page_size == state.page_size:
            return state
        return _with(state, page_size=action.page_size, page=1)
    if isinstance(action, ResetFilters):
        return FilterState(page_size=state.page_size)
    raise TypeError(f"Unsupported filter action: {action!r}")


class FilteredPage(BaseModel):
    items: list[MergedItem] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    total_pages: int = 0
    has_next: bool = False
    has_previous: bool = False


def _matches_search(item: MergedItem, term: str) -> bool:
    haystacks = (item.vehicle_plate, item.vehicle_number, item.company_name, item.operator_name)
    return any(term in (value or "").lower() for value in haystacks)


def _matches_discrepancy(item: MergedItem, mode: DiscrepancyFilter) -> bool:
    if mode == "all":
        return True
    if item.kind != "done":
        return False
    if item.physical_reading is None or item.electronic_reading is None:
        return False
    if mode == "yes":
        return item.physical_reading != item.electronic_reading
    return item.physical_reading == item.electronic_reading


def _matches_journey(item: MergedItem, mode: JourneyFilter) -> bool:
    if mode == "all":
        return True
    if item.kind != "done":
        return False
    return bool(item.journey_closed) == (mode == "closed")


def collation_key(text: Optional[str]) -> tuple[str, str]:
    """Accent- and case-insensitive primary key, raw text as tie breaker."""
    raw = text or ""
    decomposed = unicodedata.normalize("NFKD", raw)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    return base, raw


def sort_items(items: list[MergedItem], order: SortOrder) -> list[MergedItem]:
    if order in ("vehicleAsc", "vehicleDesc"):
        return sorted(items, key=lambda i: collation_key(i.vehicle_number), reverse=order == "vehicleDesc")
    # Pending items have no timestamp and sort as earliest.
    return sorted(items, key=lambda i: i.created_at or _EARLIEST, reverse=order == "dateDesc")


def filter_items(items: list[MergedItem], state: FilterState) -> list[MergedItem]:
    term = state.search.strip().lower()
    out: list[MergedItem] = []
    for item in items:
        if term and not _matches_search(item, term):
            continue
        if state.status != "all" and item.kind != state.status:
            continue
        if not _matches_discrepancy(item, state.discrepancy):
            continue
        if not _matches_journey(item, state.journey):
            continue
        out.append(item)
    return sort_items(out, state.sort)


def apply_filters(items: list[MergedItem], state: FilterState) -> FilteredPage:
    filtered = filter_items(items, state)
    total = len(filtered)
    start, end = page_window(state.page, state.page_size)
    return FilteredPage(
        items=filtered[start:end],
        total=total,
        page=state.page,
        page_size=state.page_size,
        total_pages=total_pages(total, state.page_size),
        has_next=has_next_page(state.page, total, state.page_size),
        has_previous=state.page > 1,
    )
