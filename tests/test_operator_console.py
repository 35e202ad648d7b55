import datetime
from pathlib import Path

import pytest

from conftest import OPERATION_DAY, TZ
from roletaflow.core.auth import OperatorContext
from roletaflow.core.errors import OperationDayRequired, StoreError, ValidationError
from roletaflow.schemas.turnstile import ReadingForm
from roletaflow.services.connectivity import ConnectivityMonitor
from roletaflow.services.filtering import SetFilter, SetPage
from roletaflow.services.local_storage import LocalStorage
from roletaflow.services.operator_console import OPERATION_DAY_KEY, OperatorConsole


OPERATOR = OperatorContext(operator_id="op-1", operator_name="Ana")


def _console(store, tmp_path: Path, *, online=True) -> OperatorConsole:
    return OperatorConsole(
        store,
        LocalStorage(tmp_path / "local_storage.json"),
        tz_name=TZ,
        monitor=ConnectivityMonitor(online=online),
    )


def _messages(console) -> list[str]:
    return [n.message for n in console.notifications]


def test_select_day_persists_and_restores(store, roster, tmp_path):
    console = _console(store, tmp_path)
    console.dispatch(SetPage(2))

    console.select_operation_day("10/03/2024")

    assert console.filters.page == 1
    assert console.storage.get_item(OPERATION_DAY_KEY) == "10/03/2024"
    restarted = _console(store, tmp_path)
    assert restarted.restore() == OPERATION_DAY
    assert len(restarted.engine.items) == 3


def test_restore_discards_invalid_day(store, tmp_path):
    console = _console(store, tmp_path)
    console.storage.set_item(OPERATION_DAY_KEY, "31/02/2024")

    assert console.restore() is None
    assert console.storage.get_item(OPERATION_DAY_KEY) is None


def test_invalid_day_selection(store, tmp_path):
    console = _console(store, tmp_path)
    with pytest.raises(OperationDayRequired):
        console.select_operation_day("")
    with pytest.raises(ValidationError):
        console.select_operation_day("2024-03-10")
    with pytest.raises(OperationDayRequired):
        console.refresh()
    with pytest.raises(OperationDayRequired):
        console.export_csv()


def test_load_failure_notifies(store, roster, tmp_path, monkeypatch):
    console = _console(store, tmp_path)

    def _down(*_args, **_kwargs):
        raise StoreError("backend down")

    monkeypatch.setattr(store, "query", _down)
    with pytest.raises(StoreError):
        console.select_operation_day(OPERATION_DAY)

    assert console.notifications[-1].level == "error"
    assert console.snapshot().last_error == "backend down"


def test_failed_day_switch_keeps_loaded_day(store, roster, tmp_path, monkeypatch):
    console = _console(store, tmp_path)
    console.select_operation_day(OPERATION_DAY)
    console.submit_reading(
        ReadingForm(vehicle_id=roster["1001"], physical_reading="120", electronic_reading="118"),
        OPERATOR,
    )
    next_day = OPERATION_DAY + datetime.timedelta(days=1)

    def _down(*_args, **_kwargs):
        raise StoreError("backend down")

    monkeypatch.setattr(store, "query", _down)
    with pytest.raises(StoreError):
        console.select_operation_day(next_day)

    # Items, label and the day new readings go to all stay on the loaded day.
    snap = console.snapshot()
    assert snap.operation_day == "10/03/2024"
    assert snap.requested_day == "11/03/2024"
    assert console.operation_day == OPERATION_DAY
    assert console.engine.loaded_day == OPERATION_DAY
    assert [i.vehicle_id for i in console.engine.items if i.kind == "done"] == [roster["1001"]]

    monkeypatch.undo()
    console.refresh()

    snap = console.snapshot()
    assert snap.operation_day == snap.requested_day == "11/03/2024"
    assert all(i.kind == "pending" for i in console.engine.items)


def test_submit_and_page(store, roster, tmp_path):
    console = _console(store, tmp_path)
    console.select_operation_day(OPERATION_DAY)

    result = console.submit_reading(
        ReadingForm(vehicle_id=roster["1001"], physical_reading="120", electronic_reading="118"),
        OPERATOR,
    )

    assert result.status == "created"
    assert "Reading added" in _messages(console)
    assert console.current_page().total == 2
    console.dispatch(SetFilter("status", "done"))
    page = console.current_page()
    assert [i.vehicle_id for i in page.items] == [roster["1001"]]
    assert page.items[0].difference == 2


def test_failed_submission_notifies_and_raises(store, roster, tmp_path):
    console = _console(store, tmp_path)
    console.select_operation_day(OPERATION_DAY)

    with pytest.raises(ValidationError):
        console.submit_reading(ReadingForm(vehicle_id=roster["1001"], electronic_reading="1"), OPERATOR)

    assert console.notifications[-1].level == "error"


def test_reconnect_triggers_single_drain(store, roster, tmp_path, monkeypatch):
    console = _console(store, tmp_path, online=False)
    console.select_operation_day(OPERATION_DAY)
    console.submit_reading(
        ReadingForm(vehicle_id=roster["1002"], physical_reading="7", electronic_reading="7"),
        OPERATOR,
    )
    assert "Reading saved offline" in _messages(console)
    drains = []
    original = console.queue.drain_all

    def _counting_drain(handler):
        drains.append(1)
        return original(handler)

    monkeypatch.setattr(console.queue, "drain_all", _counting_drain)

    assert console.set_online(True) is True
    assert console.set_online(True) is False

    assert len(drains) == 1
    assert len(console.queue) == 0
    assert console.engine.progress.done == 1
    assert "1 offline reading(s) synced" in _messages(console)


def test_failed_reconnect_drain_keeps_queue(store, roster, tmp_path, monkeypatch):
    console = _console(store, tmp_path, online=False)
    console.select_operation_day(OPERATION_DAY)
    console.submit_reading(
        ReadingForm(vehicle_id=roster["1002"], physical_reading="7", electronic_reading="7"),
        OPERATOR,
    )

    def _down(*_args, **_kwargs):
        raise StoreError("backend down")

    monkeypatch.setattr(store, "create", _down)
    console.set_online(True)

    assert len(console.queue) == 1
    assert console.notifications[-1].level == "error"
    assert "kept for retry" in console.notifications[-1].message


def test_export_after_load(store, roster, tmp_path):
    console = _console(store, tmp_path)
    console.select_operation_day(OPERATION_DAY)
    console.submit_reading(
        ReadingForm(vehicle_id=roster["2001"], physical_reading="3", electronic_reading="3"),
        OPERATOR,
    )

    filename, content = console.export_csv()

    assert filename == "records_10-03-2024.csv"
    assert content.split("\n")[1].startswith('"2001";"EFG5H67";"Expresso Norte";"3";"3"')


def test_snapshot(store, roster, tmp_path):
    console = _console(store, tmp_path)
    console.select_operation_day(datetime.date(2024, 3, 10))
    snap = console.snapshot()
    assert snap.operation_day == "10/03/2024"
    assert snap.connectivity == "online"
    assert snap.queue_size == 0
    assert snap.filters["status"] == "pending"
    assert snap.progress.total == 3
