"""
Entry point for the RoletaFlow operator console.

This script creates the FastAPI application, wires the operator console
(document store, local storage, connectivity monitor) and starts the
optional connectivity probe. Run with:

    uvicorn roletaflow.main:app --reload

"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from fastapi import FastAPI
from sqlalchemy.orm import Session

from .api import api_router
from .core.config import get_app_env, settings
from .core.db import engine
from .core.errors import log_exception
from .core.logging_config import setup_logging
from .models import Base
from .services.connectivity import run_connectivity_probe
from .services.operator_console import build_console


def create_app(
    *,
    session_factory: Optional[Callable[[], Session]] = None,
    local_storage_path: Optional[str] = None,
) -> FastAPI:
    app = FastAPI(title="RoletaFlow Operator Console", version="0.1.0")
    # Include API routers
    app.include_router(api_router)
    app.state.console = build_console(session_factory, local_storage_path)
    app.state.connectivity_probe_stop = None
    app.state.connectivity_probe_thread = None

    @app.on_event("startup")
    def _startup() -> None:
        logger = logging.getLogger("startup")
        env = get_app_env()
        # A caller-provided session factory owns its own schema.
        if session_factory is None and settings.auto_create_db:
            try:
                Base.metadata.create_all(bind=engine)
            except Exception as exc:
                log_exception(logger, "DB create_all failed", exc=exc)
                if env == "prod":
                    raise
        day = app.state.console.restore()
        if day is not None:
            logger.info("Restored operation day %s", day.isoformat())
        if settings.enable_connectivity_probe and settings.connectivity_probe_url:
            stop_event = threading.Event()
            thread = threading.Thread(
                target=run_connectivity_probe,
                args=(app.state.console.monitor, stop_event),
                kwargs={
                    "url": settings.connectivity_probe_url,
                    "interval_sec": settings.connectivity_probe_interval_sec,
                    "timeout_sec": settings.connectivity_probe_timeout_sec,
                },
                daemon=True,
                name="connectivity-probe",
            )
            thread.start()
            app.state.connectivity_probe_stop = stop_event
            app.state.connectivity_probe_thread = thread

    @app.on_event("shutdown")
    def _shutdown() -> None:
        stop_event = getattr(app.state, "connectivity_probe_stop", None)
        if stop_event:
            stop_event.set()
        thread = getattr(app.state, "connectivity_probe_thread", None)
        if thread:
            thread.join(timeout=5)

    return app


setup_logging()
app = create_app()
