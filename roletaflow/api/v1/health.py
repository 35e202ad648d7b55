"""
Health endpoint for the operator console.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request


router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("")
def health(request: Request) -> dict:
    console = request.app.state.console
    probe_thread = getattr(request.app.state, "connectivity_probe_thread", None)
    return {
        "status": "ok",
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
        "connectivity": console.monitor.state.value,
        "offline_queue": len(console.queue),
        "probe_running": bool(probe_thread and probe_thread.is_alive()),
    }
