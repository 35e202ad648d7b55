"""
Pydantic schemas for work items, readings and the merged pending/done view.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


ItemKind = Literal["pending", "done"]


def has_mismatch(physical: Optional[int], electronic: Optional[int]) -> bool:
    return physical is not None and electronic is not None and physical != electronic


class WorkItem(BaseModel):
    """Active vehicle expected to produce one reading per operation day."""

    vehicle_id: str
    vehicle_number: str = ""
    vehicle_plate: str = ""
    company_id: str = ""
    company_name: str = ""

    model_config = ConfigDict(frozen=True)


class MergedItem(BaseModel):
    kind: ItemKind
    vehicle_id: str
    vehicle_number: str = ""
    vehicle_plate: str = ""
    company_id: str = ""
    company_name: str = ""

    # Reading fields; empty for pending items
    record_id: Optional[str] = None
    physical_reading: Optional[int] = None
    electronic_reading: Optional[int] = None
    physical_unreadable: bool = False
    validator_broken: bool = False
    observation: str = ""
    journey_closed: Optional[bool] = None
    operator_id: str = ""
    operator_name: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    operation_date: Optional[datetime] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def mismatch(self) -> bool:
        return self.kind == "done" and has_mismatch(self.physical_reading, self.electronic_reading)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def difference(self) -> Optional[int]:
        if self.physical_reading is None or self.electronic_reading is None:
            return None
        return self.physical_reading - self.electronic_reading


class Progress(BaseModel):
    done: int = 0
    total: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return round(self.done / self.total * 100, 1)


class ReconciliationResult(BaseModel):
    operation_day: date
    generation: int
    items: list[MergedItem] = Field(default_factory=list)
    progress: Progress = Field(default_factory=Progress)


class ReadingForm(BaseModel):
    """Raw operator input; counters arrive as typed text."""

    vehicle_id: str = ""
    physical_reading: Optional[Union[int, str]] = ""
    electronic_reading: Optional[Union[int, str]] = ""
    physical_unreadable: bool = False
    validator_broken: bool = False
    observation: str = ""
    journey_closed: bool = False


class ReadingPayload(BaseModel):
    """Validated reading ready to be written or queued offline."""

    vehicle_id: str
    vehicle_number: str = ""
    physical_reading: Optional[int] = None
    electronic_reading: Optional[int] = None
    physical_unreadable: bool = False
    validator_broken: bool = False
    observation: str = ""
    journey_closed: bool = False
    operator_id: str
    operator_name: str = ""
    created_at: datetime
    operation_date: datetime

    def to_document(self) -> dict:
        return self.model_dump()


class SubmissionResult(BaseModel):
    status: Literal["created", "queued", "updated"]
    vehicle_id: str
    record_id: Optional[str] = None
    local_id: Optional[str] = None
    mismatch: bool = False
    difference: Optional[int] = None
