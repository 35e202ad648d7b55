"""
ORM model for the vehicle roster.

Active vehicles are the work items: each one is expected to produce one
turnstile reading per operation day.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


class Vehicle(Base):
    __tablename__ = "vehicles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    number: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    plate: Mapped[str] = mapped_column(String(16), default="")
    type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    # No FK: a dangling company reference must still load (shown as blank).
    company_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
