"""
Append-only audit log for turnstile readings replayed from the offline queue.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


class TurnstileRecordLog(Base):
    __tablename__ = "turnstile_records_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    action: Mapped[str] = mapped_column(String(32), index=True)  # create_offline_sync
    vehicle_id: Mapped[str] = mapped_column(String(36), index=True)
    operator_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    operator_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
