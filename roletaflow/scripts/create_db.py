"""Create database tables for the RoletaFlow document store."""

from __future__ import annotations

import logging

from roletaflow.core.db import engine
from roletaflow.core.logging_config import setup_logging
from roletaflow.models import Base


logger = logging.getLogger("scripts.create_db")


def main() -> None:
    setup_logging()
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified.")


if __name__ == "__main__":
    main()
