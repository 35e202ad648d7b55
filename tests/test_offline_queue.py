import json
from pathlib import Path

import pytest

from roletaflow.core.errors import StoreError, SyncError
from roletaflow.services.local_storage import LocalStorage
from roletaflow.services.offline_queue import OFFLINE_QUEUE_KEY, OfflineQueue


def _queue(tmp_path: Path) -> OfflineQueue:
    return OfflineQueue(LocalStorage(tmp_path / "local_storage.json"))


def test_enqueue_persists_in_order(tmp_path: Path):
    queue = _queue(tmp_path)
    first = queue.enqueue({"vehicle_id": "v1"})
    second = queue.enqueue({"vehicle_id": "v2"})

    assert first != second
    # A fresh instance over the same file sees the same entries (survives restart).
    reopened = _queue(tmp_path)
    entries = reopened.peek_all()
    assert [e["_localId"] for e in entries] == [first, second]
    assert [e["payload"]["vehicle_id"] for e in entries] == ["v1", "v2"]
    raw = json.loads((tmp_path / "local_storage.json").read_text(encoding="utf-8"))
    assert len(raw[OFFLINE_QUEUE_KEY]) == 2


def test_drain_replays_fifo_and_clears(tmp_path: Path):
    queue = _queue(tmp_path)
    ids = [queue.enqueue({"vehicle_id": f"v{i}"}) for i in range(3)]
    seen = []

    result = queue.drain_all(lambda payload, local_id: seen.append((payload["vehicle_id"], local_id)))

    assert seen == [("v0", ids[0]), ("v1", ids[1]), ("v2", ids[2])]
    assert result.drained == 3
    assert result.remaining == 0
    assert queue.peek_all() == []


def test_drain_failure_keeps_whole_queue(tmp_path: Path):
    queue = _queue(tmp_path)
    ids = [queue.enqueue({"vehicle_id": f"v{i}"}) for i in range(3)]
    before = queue.peek_all()
    calls = []

    def _handler(payload, local_id):
        calls.append(local_id)
        if payload["vehicle_id"] == "v1":
            raise StoreError("backend down")

    with pytest.raises(SyncError) as excinfo:
        queue.drain_all(_handler)

    assert calls == ids[:2]
    assert excinfo.value.failed_local_id == ids[1]
    assert excinfo.value.pending == 3
    assert queue.peek_all() == before
    assert not queue.draining


def test_drain_is_not_reentrant(tmp_path: Path):
    queue = _queue(tmp_path)
    queue.enqueue({"vehicle_id": "v1"})
    nested = []

    def _handler(payload, local_id):
        nested.append(queue.drain_all(lambda *_: None))

    result = queue.drain_all(_handler)

    assert result.drained == 1
    assert len(nested) == 1
    assert nested[0].skipped is True
    assert nested[0].drained == 0


def test_entries_enqueued_during_drain_are_kept(tmp_path: Path):
    queue = _queue(tmp_path)
    queue.enqueue({"vehicle_id": "v1"})
    late_ids = []

    def _handler(payload, local_id):
        if not late_ids:
            late_ids.append(queue.enqueue({"vehicle_id": "late"}))

    result = queue.drain_all(_handler)

    assert result.drained == 1
    assert result.remaining == 1
    assert [e["_localId"] for e in queue.peek_all()] == late_ids


def test_empty_drain_is_noop(tmp_path: Path):
    queue = _queue(tmp_path)
    result = queue.drain_all(lambda *_: pytest.fail("handler must not run"))
    assert result.drained == 0
    assert result.skipped is False


def test_corrupt_storage_is_moved_aside(tmp_path: Path):
    path = tmp_path / "local_storage.json"
    path.write_text("{not json", encoding="utf-8")
    queue = OfflineQueue(LocalStorage(path))

    assert queue.peek_all() == []
    assert list(tmp_path.glob("local_storage.json.corrupt-*"))
    queue.enqueue({"vehicle_id": "v1"})
    assert len(queue) == 1


def test_local_storage_remove_item(tmp_path: Path):
    storage = LocalStorage(tmp_path / "local_storage.json")
    storage.set_item("operationDate", "10/03/2024")
    storage.set_item("other", [1, 2])

    storage.remove_item("operationDate")
    storage.remove_item("missing")

    assert storage.get_item("operationDate") is None
    assert storage.get_item("other") == [1, 2]


def test_local_storage_returns_copies(tmp_path: Path):
    storage = LocalStorage(tmp_path / "local_storage.json")
    storage.set_item("items", [{"a": 1}])
    value = storage.get_item("items")
    value[0]["a"] = 2
    assert storage.get_item("items") == [{"a": 1}]


def test_local_storage_write_failure_raises(tmp_path: Path, monkeypatch):
    from roletaflow.services import local_storage

    storage = LocalStorage(tmp_path / "local_storage.json")
    monkeypatch.setattr(local_storage, "safe_json_dump_atomic", lambda *a, **k: False)

    with pytest.raises(StoreError):
        storage.set_item("k", "v")
