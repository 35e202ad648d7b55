"""
Connectivity state machine and HTTP probe.

The monitor flips between ONLINE and OFFLINE on edge-triggered signals and
notifies listeners only on transitions. The probe loop turns periodic HTTP
checks into those signals.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Callable, Optional

import requests

from ..core.errors import log_exception


class ConnectivityState(str, enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"


Listener = Callable[[], None]


class ConnectivityMonitor:
    def __init__(self, *, online: bool = True, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("ConnectivityMonitor")
        self._state = ConnectivityState.ONLINE if online else ConnectivityState.OFFLINE
        self._lock = threading.Lock()
        self._online_listeners: list[Listener] = []
        self._offline_listeners: list[Listener] = []

    @property
    def state(self) -> ConnectivityState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state is ConnectivityState.ONLINE

    def on_online(self, listener: Listener) -> None:
        self._online_listeners.append(listener)

    def on_offline(self, listener: Listener) -> None:
        self._offline_listeners.append(listener)

    def signal(self, online: bool) -> bool:
        """Apply a connectivity signal; returns True when the state changed."""
        new_state = ConnectivityState.ONLINE if online else ConnectivityState.OFFLINE
        with self._lock:
            if new_state is self._state:
                return False
            self._state = new_state
        self.logger.info("Connectivity changed state=%s", new_state.value)
        listeners = self._online_listeners if online else self._offline_listeners
        for listener in list(listeners):
            try:
                listener()
            except Exception as exc:
                log_exception(self.logger, "Connectivity listener failed", extra={"state": new_state.value}, exc=exc)
        return True


def probe_once(url: str, *, timeout_sec: float, session: Optional[requests.Session] = None) -> bool:
    http = session or requests
    try:
        resp = http.get(url, timeout=timeout_sec)
    except requests.RequestException as exc:
        logging.getLogger("ConnectivityProbe").debug("Probe failed url=%s: %s", url, exc)
        return False
    return resp.status_code < 500


def run_connectivity_probe(
    monitor: ConnectivityMonitor,
    stop_event: threading.Event,
    *,
    url: str,
    interval_sec: float,
    timeout_sec: float,
) -> None:
    logger = logging.getLogger("ConnectivityProbe")
    logger.info("Connectivity probe started (url=%s interval=%ss)", url, interval_sec)
    with requests.Session() as http:
        while not stop_event.is_set():
            monitor.signal(probe_once(url, timeout_sec=timeout_sec, session=http))
            stop_event.wait(interval_sec)
    logger.info("Connectivity probe stopped")
