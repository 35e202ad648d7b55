"""
SQLAlchemy model base class for the RoletaFlow document store.

Each collection of the document store (companies, vehicles, turnstile
records and their audit log) maps onto one ORM model. All models should
inherit from the declarative `Base` defined here.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


from .company import Company  # noqa: E402,F401
from .vehicle import Vehicle  # noqa: E402,F401
from .turnstile_record import TurnstileRecord  # noqa: E402,F401
from .turnstile_record_log import TurnstileRecordLog  # noqa: E402,F401

__all__ = [
    "Base",

    # Fleet roster
    "Company",
    "Vehicle",

    # Readings
    "TurnstileRecord",
    "TurnstileRecordLog",
]
