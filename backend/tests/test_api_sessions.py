import json

import pytest
from fastapi.testclient import TestClient

from tripplanner.core.errors import ModelCallFailed
from tripplanner.db.session import get_db
from tripplanner.main import app
from tripplanner.services.model_gateway import get_gateway


@pytest.fixture
def client_for(db):
    def _make(gateway):
        def override_db():
            yield db

        app.dependency_overrides[get_db] = override_db
        app.dependency_overrides[get_gateway] = lambda: gateway
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def client(client_for, gateway):
    return client_for(gateway)


def _start(client, **kw):
    body = {"city_name": "Lisbon", "user_id": "u1", "preferences": {"interests": ["food"]}}
    body.update(kw)
    return client.post("/sessions", json=body)


def _sse_frames(text: str) -> list[tuple[str, dict]]:
    frames = []
    for block in text.strip().split("\n\n"):
        lines = block.split("\n")
        assert lines[0].startswith("event: ")
        assert lines[1].startswith("data: ")
        frames.append((lines[0][len("event: "):], json.loads(lines[1][len("data: "):])))
    return frames


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_start_session(client):
    resp = _start(client)
    assert resp.status_code == 200
    body = resp.json()
    assert body["session_id"]
    assert body["data"]["name"] == "Lisbon Slow Days"
    assert len(body["data"]["points_of_interest"]) == 3


def test_start_session_failure_is_generic_500(client_for, make_gateway):
    client = client_for(make_gateway({"personalized_itinerary": ModelCallFailed("secret upstream detail")}))
    resp = _start(client)
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to generate itinerary. Please try again."
    assert "secret" not in resp.text


def test_continue_and_read_session(client):
    session_id = _start(client).json()["session_id"]
    resp = client.post(f"/sessions/{session_id}/messages", json={"message": "remove belem tower"})
    assert resp.status_code == 200
    assert resp.json()["response"] == "I've removed Belem Tower from your itinerary."
    assert len(resp.json()["data"]["points_of_interest"]) == 2

    session = client.get(f"/sessions/{session_id}").json()
    assert session["status"] == "active"
    assert len(session["conversation_history"]) == 4


def test_unknown_session_is_404(client):
    assert client.get("/sessions/missing").status_code == 404
    resp = client.post("/sessions/missing/messages", json={"message": "add X"})
    assert resp.status_code == 404
    assert client.delete("/sessions/missing").status_code == 404


def test_closed_session_rejects_messages(client):
    session_id = _start(client).json()["session_id"]
    assert client.delete(f"/sessions/{session_id}").json()["status"] == "closed"
    assert client.post(f"/sessions/{session_id}/messages", json={"message": "add X"}).status_code == 404


def test_list_sessions(client):
    _start(client)
    _start(client, city_name="Porto")
    sessions = client.get("/sessions", params={"user_id": "u1"}).json()["sessions"]
    assert len(sessions) == 2


def test_stream_framing_and_final_event(client):
    resp = client.post("/sessions/stream", json={"city_name": "Lisbon", "user_id": "u1"})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")

    frames = _sse_frames(resp.text)
    assert frames[0][0] == "start"
    assert frames[-1][0] == "complete"
    assert frames[-1][1]["is_final"] is True
    assert all(not data["is_final"] for _, data in frames[:-1])
    assert all(data["type"] == name for name, data in frames)
    session_id = frames[0][1]["data"]["session_id"]
    assert client.get(f"/sessions/{session_id}").status_code == 200


def test_stream_failure_ends_with_error_event(client_for, make_gateway):
    client = client_for(make_gateway({"city_data": "not json"}))
    frames = _sse_frames(client.post("/sessions/stream", json={"city_name": "Lisbon", "user_id": "u1"}).text)
    name, data = frames[-1]
    assert name == "error"
    assert data["is_final"] is True
    assert data["error"] == "Failed to generate itinerary. Please try again."


def test_interactions_ledger(client):
    _start(client)
    entries = client.get("/interactions", params={"user_id": "u1"}).json()["interactions"]
    assert len(entries) == 3
    one = client.get(f"/interactions/{entries[0]['id']}").json()
    assert one["model_used"] == "fake:test-model"
    assert one["prompt"]
    assert client.get("/interactions/99999").status_code == 404


def test_validation_error_for_bad_origin(client):
    resp = _start(client, origin={"latitude": 123, "longitude": 0})
    assert resp.status_code == 422


def test_stream_continue(client):
    session_id = _start(client).json()["session_id"]
    resp = client.post(f"/sessions/{session_id}/messages/stream", json={"message": "remove belem tower"})
    assert resp.status_code == 200
    frames = _sse_frames(resp.text)
    assert [name for name, _ in frames][-3:] == ["itinerary", "message", "complete"]
    assert frames[-1][1]["data"]["response"] == "I've removed Belem Tower from your itinerary."
    assert len(client.get(f"/sessions/{session_id}").json()["conversation_history"]) == 4


def test_stream_continue_unknown_session_ends_with_error_event(client):
    frames = _sse_frames(client.post("/sessions/missing/messages/stream", json={"message": "add X"}).text)
    name, data = frames[-1]
    assert name == "error"
    assert data["is_final"] is True
    assert data["error"] == "Session missing not found."


def test_saved_itineraries(client):
    _start(client)
    interaction = client.get("/interactions", params={"user_id": "u1"}).json()["interactions"][0]

    resp = client.post(
        "/itineraries",
        params={"user_id": "u1"},
        json={"llm_interaction_id": interaction["id"], "title": "Lisbon weekend", "tags": ["food"]},
    )
    assert resp.status_code == 201
    saved = resp.json()
    assert saved["content"] == interaction["response_text"]
    assert saved["tags"] == ["food"]

    listed = client.get("/itineraries", params={"user_id": "u1"}).json()["itineraries"]
    assert [s["id"] for s in listed] == [saved["id"]]

    # Another user cannot remove it
    assert client.delete(f"/itineraries/{saved['id']}", params={"user_id": "u2"}).status_code == 404
    assert client.delete(f"/itineraries/{saved['id']}", params={"user_id": "u1"}).status_code == 204
    assert client.get("/itineraries", params={"user_id": "u1"}).json()["itineraries"] == []


def test_save_unknown_interaction_is_404(client):
    resp = client.post("/itineraries", params={"user_id": "u1"}, json={"llm_interaction_id": 999, "title": "x"})
    assert resp.status_code == 404
