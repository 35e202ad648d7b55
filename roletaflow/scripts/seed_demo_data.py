"""Seed demo companies and vehicles for RoletaFlow."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from roletaflow.core.db import SessionLocal, engine
from roletaflow.core.logging_config import setup_logging
from roletaflow.models import Base
from roletaflow.services.seed import seed_fleet


logger = logging.getLogger("scripts.seed_demo_data")


def main() -> None:
    setup_logging()

    seed_path = os.getenv("SEED_FLEET_PATH")
    if seed_path:
        fleet_path = Path(seed_path)
    else:
        fleet_path = Path(__file__).resolve().parents[2] / "data" / "seed_fleet.json"

    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        inserted = seed_fleet(db, fleet_path)

    logger.info("Demo seed complete vehicles=%s", inserted)


if __name__ == "__main__":
    main()
