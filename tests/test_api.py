"""Integration tests for the Axiom City REST API."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from axiom.api.app import create_app
from axiom.core.stats import AIGoal, GoalTargetType


@pytest.fixture
def client():
    app = create_app()
    return TestClient(app)


def _create(client, **config) -> str:
    params = {"grid_size": 12, "random_seed": 42}
    params.update(config)
    resp = client.post("/api/game/sessions", json={"config": params, "terrain": "flat"})
    assert resp.status_code == 200
    return resp.json()["id"]


class TestHealthCheck:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestSessionLifecycle:
    def test_create_session_defaults(self, client):
        resp = client.post("/api/game/sessions", json={})
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "created"
        assert data["running"] is False
        assert data["agent_enabled"] is False
        assert data["stats"]["money"] == 2000
        assert data["stats"]["in_debt"] is False
        assert data["config"]["grid_size"] == 45

    def test_create_with_name(self, client):
        resp = client.post("/api/game/sessions", json={"name": "Gotham", "terrain": "flat"})
        assert resp.json()["name"] == "Gotham"

    def test_unknown_terrain(self, client):
        resp = client.post("/api/game/sessions", json={"terrain": "lava"})
        assert resp.status_code == 400

    def test_invalid_config(self, client):
        resp = client.post("/api/game/sessions", json={"config": {"gravity": 9.8}})
        assert resp.status_code == 400

    def test_list_sessions(self, client):
        _create(client)
        _create(client)
        resp = client.get("/api/game/sessions")
        assert resp.status_code == 200
        assert len(resp.json()) >= 2

    def test_get_session(self, client):
        sid = _create(client)
        resp = client.get(f"/api/game/sessions/{sid}")
        assert resp.status_code == 200
        assert resp.json()["id"] == sid

    def test_get_session_not_found(self, client):
        assert client.get("/api/game/sessions/nonexistent").status_code == 404

    def test_delete_session(self, client):
        sid = _create(client)
        assert client.delete(f"/api/game/sessions/{sid}").status_code == 200
        assert client.get(f"/api/game/sessions/{sid}").status_code == 404
        assert client.delete(f"/api/game/sessions/{sid}").status_code == 404


class TestStepping:
    def test_step_one(self, client):
        sid = _create(client)
        resp = client.post(f"/api/game/sessions/{sid}/step", json={"n": 1})
        assert resp.status_code == 200
        data = resp.json()
        assert len(data["ticks"]) == 1
        assert data["ticks"][0]["day"] == 2
        assert data["session"]["stats"]["day"] == 2

    def test_step_multiple(self, client):
        sid = _create(client)
        resp = client.post(f"/api/game/sessions/{sid}/step", json={"n": 5})
        assert [t["day"] for t in resp.json()["ticks"]] == [2, 3, 4, 5, 6]

    def test_step_bounds(self, client):
        sid = _create(client)
        assert client.post(f"/api/game/sessions/{sid}/step", json={"n": 0}).status_code == 422

    def test_step_while_running_conflicts(self, client):
        sid = _create(client, tick_period=60.0)
        assert client.post(f"/api/game/sessions/{sid}/start").json()["status"] == "running"
        assert client.post(f"/api/game/sessions/{sid}/step", json={"n": 1}).status_code == 409
        resp = client.post(f"/api/game/sessions/{sid}/stop")
        assert resp.json()["status"] == "stopped"
        assert resp.json()["running"] is False


class TestViews:
    def test_grid(self, client):
        sid = _create(client)
        data = client.get(f"/api/game/sessions/{sid}/grid").json()
        assert data["width"] == 12
        assert len(data["types"]) == 12
        assert data["types"][0][0] == "None"
        assert data["unlocked_bounds"] == [0, 11]
        assert data["disaster"] is None

    def test_metrics(self, client):
        sid = _create(client)
        client.post(f"/api/game/sessions/{sid}/step", json={"n": 4})
        data = client.get(f"/api/game/sessions/{sid}/metrics").json()
        assert data["summary"]["ticks"] == 4
        assert len(data["ticks"]) == 4
        last = client.get(f"/api/game/sessions/{sid}/metrics", params={"last": 2}).json()
        assert [t["day"] for t in last["ticks"]] == [4, 5]

    def test_time_series(self, client):
        sid = _create(client)
        client.post(f"/api/game/sessions/{sid}/step", json={"n": 3})
        data = client.get(f"/api/game/sessions/{sid}/metrics/money").json()
        assert data["field"] == "money"
        assert data["days"] == [2, 3, 4]
        assert len(data["values"]) == 3

    def test_time_series_unknown_field(self, client):
        sid = _create(client)
        assert client.get(f"/api/game/sessions/{sid}/metrics/vibes").status_code == 400

    def test_news_and_history(self, client):
        sid = _create(client)
        client.post(f"/api/actions/{sid}/disaster", json={"disaster_type": "SolarFlare"})
        news = client.get(f"/api/game/sessions/{sid}/news").json()
        history = client.get(f"/api/game/sessions/{sid}/history").json()
        assert news[-1]["text"] == "SOLAR FLARE! Electronics malfunctioning."
        assert history[-1]["type"] == "disaster"


class TestBuilding:
    def test_build_residential(self, client):
        sid = _create(client)
        resp = client.post(f"/api/actions/{sid}/build", json={"building_type": "Residential", "x": 5, "y": 5})
        assert resp.status_code == 200
        data = resp.json()
        assert data["accepted"] is True
        assert data["cost"] == 200
        assert data["stats"]["money"] == 1800

    def test_build_on_occupied_conflicts(self, client):
        sid = _create(client)
        client.post(f"/api/actions/{sid}/build", json={"building_type": "Park", "x": 5, "y": 5})
        resp = client.post(f"/api/actions/{sid}/build", json={"building_type": "Road", "x": 5, "y": 5})
        assert resp.status_code == 409
        detail = resp.json()["detail"]
        assert detail["reason"] == "tile_occupied"
        assert detail["stats"]["money"] == 1950

    def test_unknown_building(self, client):
        sid = _create(client)
        resp = client.post(f"/api/actions/{sid}/build", json={"building_type": "Castle", "x": 1, "y": 1})
        assert resp.status_code == 400

    def test_demolish(self, client):
        sid = _create(client)
        client.post(f"/api/actions/{sid}/build", json={"building_type": "Road", "x": 2, "y": 2})
        resp = client.post(f"/api/actions/{sid}/demolish", json={"x": 2, "y": 2})
        assert resp.status_code == 200
        assert resp.json()["stats"]["money"] == 2000 - 10 - 5

    def test_build_unknown_session(self, client):
        resp = client.post("/api/actions/nope/build", json={"building_type": "Road", "x": 1, "y": 1})
        assert resp.status_code == 404


class TestTreasury:
    def test_tax_cycle(self, client):
        sid = _create(client)
        assert client.post(f"/api/actions/{sid}/tax/cycle").json()["tax_rate"] == 0.2

    def test_loans(self, client):
        sid = _create(client)
        assert client.post(f"/api/actions/{sid}/loan/take").json()["money"] == 7000
        data = client.post(f"/api/actions/{sid}/loan/repay").json()
        assert data["money"] == 2000
        assert data["loan_principal"] == 0
        assert client.post(f"/api/actions/{sid}/loan/repay").status_code == 409

    def test_shares(self, client):
        sid = _create(client)
        data = client.post(f"/api/actions/{sid}/shares/buy").json()
        assert data["investment_shares"] == 10
        data = client.post(f"/api/actions/{sid}/shares/sell").json()
        assert data["investment_shares"] == 0
        assert client.post(f"/api/actions/{sid}/shares/sell").status_code == 409

    def test_land_research_needs_lab(self, client):
        sid = _create(client)
        assert client.post(f"/api/actions/{sid}/research/land").status_code == 409

    def test_claim_without_goal(self, client):
        sid = _create(client)
        assert client.post(f"/api/actions/{sid}/goal/claim").status_code == 409

    def test_claim_completed_goal(self, client):
        sid = _create(client)
        engine = client.app.state.session_manager.get_session(sid).engine
        engine.set_goal(AIGoal("Save up", GoalTargetType.MONEY, 1000, reward=500, completed=True))
        data = client.post(f"/api/actions/{sid}/goal/claim").json()
        assert data["money"] == 2500
        assert data["current_goal"] is None
        news = client.get(f"/api/game/sessions/{sid}/news").json()
        assert news[-1]["text"] == "Goal achieved! 500 deposited to treasury."


class TestDisasters:
    def test_forced_meteor(self, client):
        sid = _create(client)
        resp = client.post(f"/api/actions/{sid}/disaster", json={"disaster_type": "Meteor"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["effects"][0]["kind"] == "announce"
        assert data["active"]["type"] == "Meteor"
        again = client.post(f"/api/actions/{sid}/disaster", json={"disaster_type": "Meteor"})
        assert again.status_code == 409

    def test_random_disaster_without_body(self, client):
        sid = _create(client)
        resp = client.post(f"/api/actions/{sid}/disaster")
        assert resp.status_code == 200
        assert resp.json()["effects"]

    def test_unknown_disaster(self, client):
        sid = _create(client)
        resp = client.post(f"/api/actions/{sid}/disaster", json={"disaster_type": "Godzilla"})
        assert resp.status_code == 400


class TestAgent:
    def test_status_offline(self, client):
        sid = _create(client)
        data = client.get(f"/api/agent/{sid}/status").json()
        assert data == {
            "enabled": False,
            "online": False,
            "running": False,
            "forbidden_tiles": [],
            "last_outcome": None,
        }

    def test_toggle(self, client):
        sid = _create(client)
        assert client.post(f"/api/agent/{sid}/enable").json()["enabled"] is True
        assert client.get(f"/api/game/sessions/{sid}").json()["agent_enabled"] is True
        assert client.post(f"/api/agent/{sid}/disable").json()["enabled"] is False

    def test_propose_offline_waits(self, client):
        sid = _create(client)
        client.post(f"/api/agent/{sid}/enable")
        data = client.post(f"/api/agent/{sid}/propose").json()
        assert data["action"]["action"] == "WAIT"
        assert data["action"]["reasoning"] == "AI is offline. Holding position."
        status = client.get(f"/api/agent/{sid}/status").json()
        assert status["last_outcome"]["applied"] is False

    def test_new_goal(self, client):
        sid = _create(client)
        goal = client.post(f"/api/agent/{sid}/goal").json()
        assert goal["target_type"] in ("population", "money", "building_count")
        stats = client.get(f"/api/game/sessions/{sid}").json()["stats"]
        assert stats["current_goal"]["description"] == goal["description"]

    def test_unknown_session(self, client):
        assert client.get("/api/agent/nope/status").status_code == 404


class TestLLMStatus:
    def test_offline_status(self, client):
        with patch("axiom.api.routers.llm.ClaudeClient.is_available", return_value=False), \
             patch("axiom.api.routers.llm.OllamaClient.is_available", return_value=False):
            data = client.get("/api/llm/status").json()
        assert data["available"] is False
        assert data["proposer"] is None
        assert data["providers"]["ollama"]["models"] == []
        assert "offline" in data["message"]

    def test_ollama_reachable(self, client):
        with patch("axiom.api.routers.llm.ClaudeClient.is_available", return_value=False), \
             patch("axiom.api.routers.llm.OllamaClient.is_available", return_value=True), \
             patch("axiom.api.routers.llm.OllamaClient.list_models", return_value=["gemma3:27b"]):
            data = client.get("/api/llm/status").json()
        assert data["providers"]["ollama"]["models"] == ["gemma3:27b"]
        assert "AXIOM_LLM_PROVIDER" in data["message"]
