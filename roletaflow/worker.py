"""
Headless sync worker.

Probes connectivity on an interval and drains the offline queue of this
workstation whenever the connection comes back, without the API process.
"""

from __future__ import annotations

import argparse
import logging
import os
import time

from .core.config import settings
from .core.logging_config import setup_logging
from .services.connectivity import probe_once
from .services.operator_console import build_console


logger = logging.getLogger("worker")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="RoletaFlow offline queue sync worker")
    parser.add_argument("--probe-url", default=settings.connectivity_probe_url, help="URL checked for connectivity")
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.connectivity_probe_interval_sec,
        help="Seconds between connectivity probes",
    )
    parser.add_argument("--once", action="store_true", help="Probe once, drain if online, then exit")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    args = _parse_args(argv)
    if not args.probe_url:
        logger.error("No probe URL; set CONNECTIVITY_PROBE_URL or pass --probe-url")
        return 2

    # Start offline so the first successful probe counts as a reconnect and drains.
    console = build_console(online=False)
    day = console.restore()
    logger.info(
        "Worker booted (pid=%s) day=%s pending=%s",
        os.getpid(),
        day.isoformat() if day else None,
        len(console.queue),
    )

    while True:
        try:
            online = probe_once(args.probe_url, timeout_sec=settings.connectivity_probe_timeout_sec)
            # The console drains the queue on the offline -> online edge only.
            if console.set_online(online):
                logger.info("Connectivity now %s pending=%s", console.monitor.state.value, len(console.queue))
            if args.once:
                return 0 if not len(console.queue) else 1
            time.sleep(args.interval)
        except KeyboardInterrupt:
            return 0


if __name__ == "__main__":
    raise SystemExit(main())
