import datetime
import os

# Lightweight settings for every test module; must run before roletaflow imports.
os.environ.setdefault("ROLETA_ENV", "dev")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("ENABLE_CONNECTIVITY_PROBE", "false")
os.environ.setdefault("TIMEZONE_NAME", "America/Sao_Paulo")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from roletaflow.models import Base
from roletaflow.models.company import Company
from roletaflow.models.vehicle import Vehicle
from roletaflow.services.document_store import SqlDocumentStore


TZ = "America/Sao_Paulo"
OPERATION_DAY = datetime.date(2024, 3, 10)


def make_session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def seed_roster(session_factory) -> dict[str, str]:
    """Two companies, three active vehicles and one inactive; returns number -> id."""
    with session_factory() as db:
        central = Company(name="Viação Central")
        norte = Company(name="Expresso Norte")
        db.add_all([central, norte])
        db.flush()
        vehicles = [
            Vehicle(number="1002", plate="BCD2E34", company_id=central.id),
            Vehicle(number="1001", plate="ABC1D23", company_id=central.id),
            Vehicle(number="2001", plate="EFG5H67", company_id=norte.id),
            Vehicle(number="9999", plate="OLD0000", company_id=norte.id, is_active=False),
        ]
        db.add_all(vehicles)
        db.commit()
        return {v.number: v.id for v in vehicles}


@pytest.fixture
def session_factory():
    return make_session_factory()


@pytest.fixture
def store(session_factory):
    return SqlDocumentStore(session_factory)


@pytest.fixture
def roster(session_factory):
    return seed_roster(session_factory)
