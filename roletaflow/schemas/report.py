"""
Pydantic schemas for administrator reports.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, computed_field

from .turnstile import has_mismatch


class ReportRecord(BaseModel):
    id: str
    vehicle_id: str
    vehicle_number: str = ""
    vehicle_plate: str = ""
    vehicle_type: str = ""
    physical_reading: Optional[int] = None
    electronic_reading: Optional[int] = None
    physical_unreadable: bool = False
    validator_broken: bool = False
    observation: str = ""
    journey_closed: bool = False
    operator_id: str = ""
    operator_name: str = ""
    created_at: Optional[datetime] = None
    operation_date: Optional[datetime] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def mismatch(self) -> bool:
        return has_mismatch(self.physical_reading, self.electronic_reading)


class ReportStats(BaseModel):
    total: int = 0
    mismatches: int = 0
    journey_closed: int = 0
    journey_open: int = 0


class DashboardStats(BaseModel):
    total_vehicles: int = 0
    active_vehicles: int = 0
    total_companies: int = 0
    today_records: int = 0
    mismatches: int = 0
    open_journeys: int = 0


class DashboardRecords(BaseModel):
    """Record lists shown on the administrator dashboard, newest first."""

    latest: list[ReportRecord] = []
    mismatches: list[ReportRecord] = []
    open_journeys: list[ReportRecord] = []
