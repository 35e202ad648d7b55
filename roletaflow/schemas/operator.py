"""
Request/response schemas for the operator console API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .turnstile import Progress


class OperationDayIn(BaseModel):
    operation_day: str = Field(..., description="Operation day as DD/MM/YYYY.")


class ConnectivityIn(BaseModel):
    online: bool


class ConnectivityOut(BaseModel):
    state: str
    changed: bool
    queue_size: int


class DrainResultOut(BaseModel):
    drained: int = 0
    remaining: int = 0
    skipped: bool = False


class QueueEntryOut(BaseModel):
    local_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    operator_name: Optional[str] = None
    created_at: Optional[str] = None


class NotificationOut(BaseModel):
    level: str
    message: str
    created_at: datetime


class ConsoleState(BaseModel):
    # Day the items belong to; requested_day differs while a switch has not loaded yet.
    operation_day: Optional[str] = None
    requested_day: Optional[str] = None
    loaded_at: Optional[datetime] = None
    connectivity: str
    queue_size: int = 0
    draining: bool = False
    progress: Progress = Field(default_factory=Progress)
    filters: dict = Field(default_factory=dict)
    last_error: Optional[str] = None
    notifications: list[NotificationOut] = Field(default_factory=list)
