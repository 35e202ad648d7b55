import threading

import requests

from roletaflow.services import connectivity
from roletaflow.services.connectivity import ConnectivityMonitor, ConnectivityState, probe_once


def test_signal_is_edge_triggered():
    monitor = ConnectivityMonitor(online=True)
    events = []
    monitor.on_online(lambda: events.append("online"))
    monitor.on_offline(lambda: events.append("offline"))

    assert monitor.signal(True) is False
    assert monitor.signal(False) is True
    assert monitor.signal(False) is False
    assert monitor.signal(True) is True
    assert monitor.signal(True) is False

    assert events == ["offline", "online"]
    assert monitor.state is ConnectivityState.ONLINE


def test_listener_failure_does_not_block_others(caplog):
    monitor = ConnectivityMonitor(online=False)
    events = []

    def _boom():
        raise RuntimeError("listener broke")

    monitor.on_online(_boom)
    monitor.on_online(lambda: events.append("second"))

    assert monitor.signal(True) is True
    assert events == ["second"]
    assert monitor.is_online
    assert any("Connectivity listener failed" in rec.message for rec in caplog.records)


class _Resp:
    def __init__(self, status_code):
        self.status_code = status_code


class _Session:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def get(self, url, timeout):
        self.calls.append((url, timeout))
        if isinstance(self.result, Exception):
            raise self.result
        return _Resp(self.result)


def test_probe_once_status_mapping():
    assert probe_once("http://probe", timeout_sec=1, session=_Session(204)) is True
    assert probe_once("http://probe", timeout_sec=1, session=_Session(404)) is True
    assert probe_once("http://probe", timeout_sec=1, session=_Session(503)) is False
    assert probe_once("http://probe", timeout_sec=1, session=_Session(requests.ConnectionError("down"))) is False


def test_probe_loop_feeds_monitor(monkeypatch):
    monitor = ConnectivityMonitor(online=True)
    stop_event = threading.Event()
    results = iter([False, True])
    seen = []

    def _fake_probe(url, *, timeout_sec, session=None):
        value = next(results)
        seen.append(value)
        if len(seen) == 2:
            stop_event.set()
        return value

    monkeypatch.setattr(connectivity, "probe_once", _fake_probe)
    transitions = []
    monitor.on_offline(lambda: transitions.append("offline"))
    monitor.on_online(lambda: transitions.append("online"))

    connectivity.run_connectivity_probe(monitor, stop_event, url="http://probe", interval_sec=0, timeout_sec=1)

    assert seen == [False, True]
    assert transitions == ["offline", "online"]
