"""
ORM model for turnstile readings (one per vehicle per operation day).
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


class TurnstileRecord(Base):
    __tablename__ = "turnstile_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vehicle_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    vehicle_number: Mapped[str] = mapped_column(String(32), default="")

    # None iff the matching defect flag is set
    physical_reading: Mapped[int | None] = mapped_column(Integer, nullable=True)
    electronic_reading: Mapped[int | None] = mapped_column(Integer, nullable=True)
    physical_unreadable: Mapped[bool] = mapped_column(Boolean, default=False)
    validator_broken: Mapped[bool] = mapped_column(Boolean, default=False)

    observation: Mapped[str] = mapped_column(Text, default="")
    journey_closed: Mapped[bool] = mapped_column(Boolean, default=False)
    operator_id: Mapped[str] = mapped_column(String(128), index=True)
    operator_name: Mapped[str] = mapped_column(String(256), default="")

    operation_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_turnstile_records_operation_date", "operation_date"),
        Index("ix_turnstile_records_created_at", "created_at"),
    )
