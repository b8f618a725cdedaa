"""API tests: a whole game played over HTTP against a stubbed LLM."""

import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from backend import sessions
from backend.app import create_app
from gossip_village.llm import LLMError

VILLAGE = json.dumps({"npcs": [
    {"name": "Lin Yue", "role": "Swordswoman", "spawnZone": "Secluded"},
    {"name": "Zhang Wei", "role": "Village Chief", "spawnZone": "Official"},
]})


def _client(tmp_path, *replies) -> TestClient:
    llm = AsyncMock(side_effect=list(replies))
    (tmp_path / "config.json").write_text(json.dumps({"max_retries": 1, "retry_delay": 0}))
    return TestClient(create_app(tmp_path, llm=llm))


def _start(client: TestClient, mode: str = "Sandbox") -> tuple[str, dict]:
    resp = client.post("/api/sessions", json={"mode": mode})
    assert resp.status_code == 201
    body = resp.json()
    return body["sessionId"], body["state"]


def test_health(tmp_path):
    assert _client(tmp_path).get("/api/health").json() == {"status": "ok"}


def test_settings_round_trip(tmp_path, monkeypatch):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    client = _client(tmp_path)
    resp = client.patch("/api/settings", json={
        "llmConnection": {"api_key": "secret", "model": "kimi"},
        "villagerCount": 8,
    })
    assert resp.status_code == 200
    assert resp.json()["villager_count"] == 8
    assert resp.json()["llm_connection"]["api_key"] == "***"

    settings = client.get("/api/settings").json()
    assert settings["llm_connection"]["model"] == "kimi"
    assert settings["llm_connection"]["api_key"] == "***"


def test_start_session(tmp_path):
    client = _client(tmp_path, VILLAGE)
    session_id, state = _start(client, "Matchmaker")
    assert [n["name"] for n in state["npcs"]] == ["Lin Yue", "Zhang Wei"]
    assert state["objective"]["mode"] == "Matchmaker"
    assert state["actionPoints"] == 3
    assert client.get("/api/sessions").json() == [session_id]
    assert (tmp_path / "sessions" / f"{session_id}.json").exists()


def test_start_session_failure(tmp_path):
    client = _client(tmp_path, LLMError("down"))
    resp = client.post("/api/sessions", json={"mode": "Sandbox"})
    assert resp.status_code == 502
    assert resp.json()["detail"]["kind"] == "generation_failed"
    assert client.get("/api/sessions").json() == []


def test_invalid_mode_rejected(tmp_path):
    resp = _client(tmp_path).post("/api/sessions", json={"mode": "Peaceful"})
    assert resp.status_code == 422


def test_unknown_session_404(tmp_path):
    client = _client(tmp_path)
    assert client.get("/api/sessions/nope").status_code == 404
    assert client.post("/api/sessions/nope/end-phase").status_code == 404
    assert client.delete("/api/sessions/nope").status_code == 404


def test_play_a_phase(tmp_path):
    client = _client(tmp_path, VILLAGE, json.dumps({
        "logs": [{"npcName": "Lin Yue", "action": "sharpens her sword"}],
        "newspaper": {"headline": "Steel at dawn", "articles": []},
    }))
    session_id, state = _start(client)
    lin_id = next(n["id"] for n in state["npcs"] if n["name"] == "Lin Yue")

    resp = client.post(f"/api/sessions/{session_id}/actions", json={
        "type": "WHISPER", "content": "The chief fears you", "targetId": lin_id,
    })
    assert resp.status_code == 200
    assert resp.json()["interaction"] is None
    assert resp.json()["state"]["actionPoints"] == 2

    resp = client.post(f"/api/sessions/{session_id}/end-phase")
    assert resp.status_code == 200
    state = resp.json()
    assert state["phase"] == "Afternoon"
    assert state["pendingActions"] == []
    assert state["lastNewspaper"]["headline"] == "Steel at dawn"

    state = client.post(f"/api/sessions/{session_id}/close-newspaper").json()
    assert state["lastNewspaper"] is None


def test_undo(tmp_path):
    client = _client(tmp_path, VILLAGE)
    session_id, _ = _start(client)
    client.post(f"/api/sessions/{session_id}/actions", json={"type": "BROADCAST", "content": "x"})
    state = client.delete(f"/api/sessions/{session_id}/actions/last").json()
    assert state["actionPoints"] == 3
    assert state["pendingActions"] == []


def test_interrogate(tmp_path):
    client = _client(tmp_path, VILLAGE, '{"reply": "Leave!", "revealedInfo": null, "moodChange": "Angry"}')
    session_id, state = _start(client)
    zhang_id = next(n["id"] for n in state["npcs"] if n["name"] == "Zhang Wei")

    body = client.post(f"/api/sessions/{session_id}/actions", json={
        "type": "INTERROGATE", "content": "Why?", "targetId": zhang_id,
    }).json()
    assert body["interaction"]["reply"] == "Leave!"
    assert body["interaction"]["npcName"] == "Zhang Wei"
    assert body["state"]["actionPoints"] == 1


def test_end_phase_failure_is_502_and_retryable(tmp_path):
    client = _client(tmp_path, VILLAGE, "nonsense", "{}")
    session_id, _ = _start(client)
    resp = client.post(f"/api/sessions/{session_id}/end-phase")
    assert resp.status_code == 502
    assert resp.json()["detail"]["kind"] == "simulation_failed"

    resp = client.post(f"/api/sessions/{session_id}/end-phase")
    assert resp.status_code == 200
    assert resp.json()["phase"] == "Afternoon"


def test_end_phase_while_simulating_is_409(tmp_path):
    client = _client(tmp_path, VILLAGE)
    session_id, _ = _start(client)
    sessions.get_engine(session_id).state.is_simulating = True
    assert client.post(f"/api/sessions/{session_id}/end-phase").status_code == 409


def test_session_survives_restart(tmp_path):
    client = _client(tmp_path, VILLAGE)
    session_id, state = _start(client)

    # A fresh app on the same data dir reads the session from disk
    restarted = _client(tmp_path)
    assert restarted.get(f"/api/sessions/{session_id}").json()["npcs"] == state["npcs"]


def test_delete_session(tmp_path):
    client = _client(tmp_path, VILLAGE)
    session_id, _ = _start(client)
    assert client.delete(f"/api/sessions/{session_id}").json() == {"ok": True}
    assert client.get(f"/api/sessions/{session_id}").status_code == 404
    assert client.get("/api/sessions").json() == []


def test_settings_never_persist_env_or_masked_key(tmp_path, monkeypatch):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    client = _client(tmp_path)
    client.patch("/api/settings", json={"llmConnection": {"api_key": "secret"}})

    # The UI sends back what GET handed it
    settings = client.get("/api/settings").json()
    client.patch("/api/settings", json={"llmConnection": settings["llm_connection"]})
    stored = json.loads((tmp_path / "config.json").read_text())
    assert stored["llm_connection"]["api_key"] == "secret"

    monkeypatch.setenv("LLM_API_KEY", "sk-secret-from-env")
    client.patch("/api/settings", json={"villagerCount": 8})
    assert "sk-secret-from-env" not in (tmp_path / "config.json").read_text()


def test_settings_apply_to_open_sessions(tmp_path):
    client = _client(tmp_path, VILLAGE, "nonsense", '{"logs": []}')
    session_id, _ = _start(client)

    resp = client.patch("/api/settings", json={"maxRetries": 2, "villagerCount": 8})
    assert resp.status_code == 200
    assert sessions.get_engine(session_id).villager_count == 8

    # The bad reply is now retried instead of failing the request
    resp = client.post(f"/api/sessions/{session_id}/end-phase")
    assert resp.status_code == 200
    assert resp.json()["phase"] == "Afternoon"


def test_stale_error_is_not_reraised(tmp_path):
    client = _client(tmp_path, VILLAGE, LLMError("down"))
    session_id, _ = _start(client)
    assert client.post(f"/api/sessions/{session_id}/end-phase").status_code == 502

    resp = client.post(f"/api/sessions/{session_id}/actions", json={
        "type": "INTERROGATE", "content": "?", "targetId": "ghost",
    })
    assert resp.status_code == 200
    assert resp.json()["interaction"] is None

    resp = client.post(f"/api/sessions/{session_id}/actions", json={"type": "BROADCAST", "content": "x"})
    assert resp.status_code == 200
    assert resp.json()["state"]["error"] is None
