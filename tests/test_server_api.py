import pytest
from fastapi.testclient import TestClient

from codevibe_cli import server
from core.exceptions import ConfigurationError, MalformedResponseError
from core.orchestrator import LoopOrchestrator
from core.run_log import RunLog
from tests.fakes.fake_agents import FakeModel, make_fake_agents, make_review


def _runtime(**scripts):
    model = FakeModel()
    orchestrator = LoopOrchestrator(make_fake_agents(**scripts), run_log=RunLog(), model=model)
    return {"orchestrator": orchestrator, "model_adapter": model,
            "strict_mode": False, "project_type": "web"}


@pytest.fixture
def holder():
    return {"runtime": _runtime()}


@pytest.fixture
def client(monkeypatch, holder):
    monkeypatch.delenv("CODEVIBE_API_TOKEN", raising=False)
    server.app.dependency_overrides[server.get_runtime] = lambda: holder["runtime"]
    with TestClient(server.app) as test_client:
        yield test_client
    server.app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["ready"] is True
    assert body["model"] == "fake-model"
    assert set(body["agents"]) == {"planning", "coding", "reviewer", "seo"}


def test_full_workflow_returns_operations_and_review(client, holder):
    holder["runtime"] = _runtime(reviewer=[make_review(False, required_changes=["x"]),
                                          make_review(True)])
    response = client.post("/workflows/full", json={
        "request": "build a landing page",
        "files": [{"path": "index.html", "content": "<html></html>"}],
        "max_iterations": 2,
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["workflow"]["phase"] == "approved"
    assert body["workflow"]["iterations"] == 1
    assert body["operations"][0] == {"action": "create_file", "path": "index.html",
                                     "content": "<h1>hi</h1>", "reasoning": None}
    assert body["review"]["approved"] is True
    assert body["logs"][0]["agent"] == "Orchestrator"


def test_restricted_workflows(client):
    files = [{"path": "a.js", "content": "x"}]
    assert client.post("/workflows/quick", json={"request": "x", "files": files}).status_code == 200
    assert client.post("/workflows/plan", json={"request": "x"}).json()["plan"]["tasks"][0]["id"] == 1
    assert client.post("/workflows/review", json={"files": files}).json()["review"]["approved"] is True
    assert client.post("/workflows/security", json={"files": files}).json()["audit"]["security_score"] == 95
    assert client.post("/workflows/performance",
                       json={"files": files}).json()["analysis"]["performance_score"] == 88
    seo = client.post("/workflows/seo", json={"html": "<html></html>", "options": {"title": "T"}})
    assert seo.json()["optimized"]["seo_score"] == 91


def test_validation_errors(client):
    assert client.post("/workflows/full", json={"files": []}).status_code == 422
    assert client.post("/workflows/full", json={"request": "x", "max_iterations": -1}).status_code == 422
    assert client.post("/workflows/seo", json={"html": ""}).status_code == 422


def test_agent_failure_maps_to_502(client, holder):
    holder["runtime"] = _runtime(planner=[MalformedResponseError("bad json")])

    response = client.post("/workflows/full", json={"request": "x"})

    assert response.status_code == 502
    body = response.json()
    assert body["phase"] == "planning"
    assert body["iteration"] == 0
    assert body["error"] == "bad json"


def test_missing_api_key_maps_to_503(client, holder):
    holder["runtime"] = _runtime(coder=[ConfigurationError("Gemini API key not found.")])

    response = client.post("/workflows/quick", json={"request": "x"})

    assert response.status_code == 503
    assert response.json()["phase"] == "coding"


def test_bearer_auth(client, monkeypatch):
    monkeypatch.setenv("CODEVIBE_API_TOKEN", "s3cret")

    assert client.get("/health").status_code == 401
    assert client.get("/health", headers={"Authorization": "Bearer wrong"}).status_code == 403
    assert client.get("/health", headers={"Authorization": "Bearer s3cret"}).status_code == 200
