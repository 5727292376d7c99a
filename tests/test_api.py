from fastapi.testclient import TestClient

from tasbih.config import Config
from tasbih.services.api import CounterApi
from tasbih.services.counter_service import CounterService
from tasbih.storage import MemoryCounterStore


def _build_client(monkeypatch, prefix="/api"):
    monkeypatch.setenv("API_PREFIX", prefix)
    config = Config()
    service = CounterService(MemoryCounterStore())
    return TestClient(CounterApi(config, service).app)


def _create(client, goal=3, created_by="A"):
    response = client.post("/api/tasbih/create", json={"goal": goal, "created_by": created_by})
    assert response.status_code == 200
    return response.json()


def test_health(monkeypatch):
    client = _build_client(monkeypatch)
    assert client.get("/health").json() == {"status": "ok"}


def test_create_returns_full_snapshot(monkeypatch):
    client = _build_client(monkeypatch)
    body = _create(client, goal=33, created_by="A")

    assert body["goal"] == 33
    assert body["current_count"] == 0
    assert body["created_by"] == "A"
    assert body["participants"] == [{"name": "A", "count": 0}]
    assert body["is_completed"] is False
    assert isinstance(body["id"], str) and body["id"]


def test_create_rejects_bad_goal_and_name(monkeypatch):
    client = _build_client(monkeypatch)

    r = client.post("/api/tasbih/create", json={"goal": 0, "created_by": "A"})
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_GOAL"

    r = client.post("/api/tasbih/create", json={"goal": 5, "created_by": "  "})
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_NAME"

    r = client.post("/api/tasbih/create", json={"goal": "lots", "created_by": "A"})
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_REQUEST"


def test_unknown_counter_is_404(monkeypatch):
    client = _build_client(monkeypatch)

    assert client.get("/api/tasbih/missing").status_code == 404
    r = client.post("/api/tasbih/missing/join", json={"participant_name": "B"})
    assert r.status_code == 404
    assert r.json() == {"code": "NOT_FOUND", "message": "counter missing not found"}
    r = client.post("/api/tasbih/missing/join", json={"participant_name": " "})
    assert r.status_code == 404
    r = client.post("/api/tasbih/missing/increment", json={"participant_name": "B"})
    assert r.status_code == 404


def test_full_session_over_http(monkeypatch):
    client = _build_client(monkeypatch)
    counter_id = _create(client, goal=3, created_by="A")["id"]

    joined = client.post(f"/api/tasbih/{counter_id}/join", json={"participant_name": "B"})
    assert joined.status_code == 200
    again = client.post(f"/api/tasbih/{counter_id}/join", json={"participant_name": "B"})
    assert len(again.json()["participants"]) == 2

    flags = []
    for name in ("A", "B", "A"):
        r = client.post(f"/api/tasbih/{counter_id}/increment", json={"participant_name": name})
        assert r.status_code == 200
        flags.append(r.json()["transitioned_now"])
    assert flags == [False, False, True]

    state = client.get(f"/api/tasbih/{counter_id}").json()
    assert state["current_count"] == 3
    assert state["is_completed"] is True
    assert {p["name"]: p["count"] for p in state["participants"]} == {"A": 2, "B": 1}

    late = client.post(f"/api/tasbih/{counter_id}/increment", json={"participant_name": "B"})
    assert late.status_code == 409
    assert late.json()["code"] == "ALREADY_COMPLETED"
    assert client.get(f"/api/tasbih/{counter_id}").json()["current_count"] == 3


def test_reset_requires_creator(monkeypatch):
    client = _build_client(monkeypatch)
    counter_id = _create(client, goal=3, created_by="A")["id"]
    client.post(f"/api/tasbih/{counter_id}/increment", json={"participant_name": "B"})

    denied = client.post(f"/api/tasbih/{counter_id}/reset", json={"requesting_name": "B"})
    assert denied.status_code == 403
    assert denied.json()["code"] == "FORBIDDEN"

    anonymous = client.post(f"/api/tasbih/{counter_id}/reset")
    assert anonymous.status_code == 403

    allowed = client.post(f"/api/tasbih/{counter_id}/reset", json={"requesting_name": "A"})
    assert allowed.status_code == 200
    body = allowed.json()
    assert body["current_count"] == 0
    assert [p["count"] for p in body["participants"]] == [0, 0]


def test_api_prefix_is_configurable(monkeypatch):
    client = _build_client(monkeypatch, prefix="")
    r = client.post("/tasbih/create", json={"goal": 1, "created_by": "A"})
    assert r.status_code == 200
    assert client.get(f"/tasbih/{r.json()['id']}").status_code == 200
