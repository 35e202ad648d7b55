from pathlib import Path

from fastapi.testclient import TestClient

from conftest import make_session_factory, seed_roster
from roletaflow.main import create_app


OPERATOR_HEADERS = {"X-User-Id": "op-1", "X-User-Name": "Ana"}
ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-User-Name": "Chefe", "X-User-Role": "ADMIN"}


def _client(tmp_path: Path):
    session_factory = make_session_factory()
    roster = seed_roster(session_factory)
    app = create_app(session_factory=session_factory, local_storage_path=str(tmp_path / "local_storage.json"))
    return TestClient(app), roster


def _reading(vehicle_id: str, physical="120", electronic="118") -> dict:
    return {"vehicle_id": vehicle_id, "physical_reading": physical, "electronic_reading": electronic}


def test_operation_day_required_first(tmp_path: Path):
    client, _ = _client(tmp_path)
    with client:
        resp = client.get("/api/v1/operator/items")
        assert resp.status_code == 422
        assert resp.json()["detail"]["field"] == "operation_day"

        resp = client.put("/api/v1/operator/operation-day", json={"operation_day": "2024-03-10"})
        assert resp.status_code == 422


def test_operator_flow(tmp_path: Path):
    client, roster = _client(tmp_path)
    with client:
        resp = client.put("/api/v1/operator/operation-day", json={"operation_day": "10/03/2024"})
        assert resp.status_code == 200
        state = resp.json()
        assert state["operation_day"] == "10/03/2024"
        assert state["progress"]["total"] == 3
        assert state["connectivity"] == "online"

        resp = client.get("/api/v1/operator/items")
        assert resp.status_code == 200
        assert len(resp.json()) == 3
        assert resp.headers["X-Total-Count"] == "3"
        assert resp.headers["X-Page"] == "1"
        assert resp.headers["X-Page-Size"] == "10"
        assert resp.headers["X-Operation-Day"] == "10/03/2024"

        resp = client.post("/api/v1/operator/records", json=_reading(roster["1001"]), headers=OPERATOR_HEADERS)
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "created"
        assert body["mismatch"] is True
        assert body["difference"] == 2

        resp = client.get("/api/v1/operator/items", params={"status": "done"})
        items = resp.json()
        assert len(items) == 1
        assert items[0]["operator_name"] == "Ana"
        assert items[0]["mismatch"] is True
        record_id = items[0]["record_id"]

        resp = client.put(
            f"/api/v1/operator/records/{record_id}",
            json=_reading(roster["1001"], physical="118"),
            headers=OPERATOR_HEADERS,
        )
        assert resp.status_code == 200
        assert resp.json()["mismatch"] is False

        # Query filters from the items listing stay in the console view.
        assert client.get("/api/v1/operator/filters").json()["status"] == "done"
        assert len(client.get("/api/v1/operator/items").json()) == 1

        resp = client.post("/api/v1/operator/filters/reset")
        assert resp.json()["status"] == "pending"

        resp = client.get("/api/v1/operator/export.csv")
        assert resp.status_code == 200
        assert 'filename="records_10-03-2024.csv"' in resp.headers["content-disposition"]
        assert resp.text.count("\n") == 1


def test_validation_errors_map_to_422(tmp_path: Path):
    client, roster = _client(tmp_path)
    with client:
        client.put("/api/v1/operator/operation-day", json={"operation_day": "10/03/2024"})
        resp = client.post(
            "/api/v1/operator/records",
            json=_reading(roster["1001"], physical=""),
            headers=OPERATOR_HEADERS,
        )
        assert resp.status_code == 422
        assert resp.json()["detail"]["field"] == "physical_reading"

        resp = client.post("/api/v1/operator/records", json=_reading("unknown"), headers=OPERATOR_HEADERS)
        assert resp.status_code == 404

        resp = client.get("/api/v1/operator/items", params={"page_size": 15})
        assert resp.status_code == 422


def test_offline_queue_drains_on_reconnect(tmp_path: Path):
    client, roster = _client(tmp_path)
    with client:
        client.put("/api/v1/operator/operation-day", json={"operation_day": "10/03/2024"})

        resp = client.post("/api/v1/operator/connectivity", json={"online": False})
        assert resp.json() == {"state": "offline", "changed": True, "queue_size": 0}

        resp = client.post("/api/v1/operator/records", json=_reading(roster["1002"]), headers=OPERATOR_HEADERS)
        assert resp.status_code == 202
        assert resp.json()["status"] == "queued"

        queue = client.get("/api/v1/operator/queue").json()
        assert len(queue) == 1
        assert queue[0]["vehicle_id"] == roster["1002"]

        assert client.post("/api/v1/operator/sync").status_code == 409

        resp = client.post("/api/v1/operator/connectivity", json={"online": True})
        assert resp.json() == {"state": "online", "changed": True, "queue_size": 0}

        state = client.get("/api/v1/operator/state").json()
        assert state["progress"]["done"] == 1
        messages = [n["message"] for n in state["notifications"]]
        assert "1 offline reading(s) synced" in messages

        resp = client.post("/api/v1/operator/sync")
        assert resp.json() == {"drained": 0, "remaining": 0, "skipped": False}


def test_operation_day_restored_after_restart(tmp_path: Path):
    session_factory = make_session_factory()
    seed_roster(session_factory)
    storage_path = str(tmp_path / "local_storage.json")

    with TestClient(create_app(session_factory=session_factory, local_storage_path=storage_path)) as client:
        client.put("/api/v1/operator/operation-day", json={"operation_day": "10/03/2024"})

    with TestClient(create_app(session_factory=session_factory, local_storage_path=storage_path)) as client:
        state = client.get("/api/v1/operator/state").json()
        assert state["operation_day"] == "10/03/2024"
        assert state["progress"]["total"] == 3


def test_reports_scoping(tmp_path: Path):
    client, roster = _client(tmp_path)
    with client:
        client.put("/api/v1/operator/operation-day", json={"operation_day": "10/03/2024"})
        client.post("/api/v1/operator/records", json=_reading(roster["1001"]), headers=OPERATOR_HEADERS)
        client.post(
            "/api/v1/operator/records",
            json=_reading(roster["2001"], physical="5", electronic="5"),
            headers={"X-User-Id": "op-2", "X-User-Name": "Bruno"},
        )

        mine = client.get("/api/v1/reports/records", headers=OPERATOR_HEADERS).json()
        assert [r["operator_name"] for r in mine] == ["Ana"]

        everything = client.get("/api/v1/reports/records", headers=ADMIN_HEADERS).json()
        assert len(everything) == 2

        stats = client.get("/api/v1/reports/stats", headers=ADMIN_HEADERS, params={"day": "10/03/2024"}).json()
        assert stats == {"total": 2, "mismatches": 1, "journey_closed": 0, "journey_open": 2}

        assert client.get("/api/v1/reports/dashboard", headers=OPERATOR_HEADERS).status_code == 403
        dashboard = client.get("/api/v1/reports/dashboard", headers=ADMIN_HEADERS).json()
        assert dashboard["active_vehicles"] == 3

        assert client.get("/api/v1/reports/dashboard/records", headers=OPERATOR_HEADERS).status_code == 403
        lists = client.get("/api/v1/reports/dashboard/records", headers=ADMIN_HEADERS).json()
        assert len(lists["latest"]) == 2
        assert [r["vehicle_number"] for r in lists["mismatches"]] == ["1001"]
        assert len(lists["open_journeys"]) == 2

        resp = client.get("/api/v1/reports/export.csv", headers=ADMIN_HEADERS)
        assert resp.status_code == 200
        assert "turnstile_report_" in resp.headers["content-disposition"]

        assert client.get("/api/v1/reports/records", params={"day": "bad"}).status_code == 422


def test_health(tmp_path: Path):
    client, _ = _client(tmp_path)
    with client:
        body = client.get("/api/v1/health").json()
        assert body["status"] == "ok"
        assert body["connectivity"] == "online"
        assert body["offline_queue"] == 0
        assert body["probe_running"] is False
