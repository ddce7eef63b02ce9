import pytest
from fastapi.testclient import TestClient

from main import app


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as c:
        yield c


def start(client, **overrides):
    payload = {"subject": "Calculus", "topic": "Limits", "planned_minutes": 25, "user_id": "api-user"}
    payload.update(overrides)
    response = client.post("/api/sessions", json=payload)
    assert response.status_code == 201
    return response.json()


def test_start_session(client):
    data = start(client)
    assert data["state"] == "running"
    assert data["subject"] == "Calculus"
    assert data["tracking"] is None
    assert data["browser"]["category"] == "STUDY"
    # no camera frames yet
    assert data["classification"] == {"status": "DISTRACTED", "distraction_type": "ABSENT"}


def test_start_requires_subject(client):
    assert client.post("/api/sessions", json={"subject": ""}).status_code == 422
    assert client.post("/api/sessions", json={"subject": "X", "planned_minutes": -1}).status_code == 422


def test_live_unknown_session(client):
    assert client.get("/api/sessions/doesnotexist/live").status_code == 404
    assert client.post("/api/sessions/doesnotexist/stop").status_code == 404


def test_browser_update(client):
    sid = start(client)["session_id"]
    response = client.post(f"/api/sessions/{sid}/browser",
                           json={"url": "https://www.youtube.com/watch?v=x", "title": "Video"})
    assert response.status_code == 200
    assert response.json() == {
        "url": "https://www.youtube.com/watch?v=x",
        "domain": "www.youtube.com",
        "title": "Video",
        "category": "NON_STUDY",
    }
    live = client.get(f"/api/sessions/{sid}/live").json()
    assert live["classification"]["distraction_type"] == "WEB_DISTRACTION"


def test_browser_update_rejects_bad_url(client):
    sid = start(client)["session_id"]
    assert client.post(f"/api/sessions/{sid}/browser", json={"url": "nonsense"}).status_code == 400
    live = client.get(f"/api/sessions/{sid}/live").json()
    assert live["browser"]["category"] == "STUDY"


def test_pause_resume(client):
    sid = start(client)["session_id"]
    assert client.post(f"/api/sessions/{sid}/pause").json()["state"] == "paused"
    assert client.post(f"/api/sessions/{sid}/resume").json()["state"] == "running"


def test_stop_returns_report_and_persists(client):
    sid = start(client, user_id="history-user")["session_id"]
    response = client.post(f"/api/sessions/{sid}/stop")
    assert response.status_code == 200
    body = response.json()
    assert body["session_id"] == sid
    assert body["persisted"] is True
    assert body["end_time"] >= body["start_time"]
    report = body["report"]
    assert report["total_duration"] == report["focused_time"] + report["outside_time"]
    assert 0 <= report["focus_score"] <= 100

    # repeat stop returns the same cached report
    again = client.post(f"/api/sessions/{sid}/stop").json()
    assert again["report"] == report
    assert again["end_time"] == body["end_time"]

    assert client.post(f"/api/sessions/{sid}/pause").status_code == 409
    assert client.post(f"/api/sessions/{sid}/resume").status_code == 409
    assert client.get(f"/api/sessions/{sid}/live").json()["state"] == "stopped"

    detail = client.get(f"/api/sessions/{sid}")
    assert detail.status_code == 200
    assert detail.json()["id"] == sid
    assert detail.json()["subject"] == "Calculus"
    assert isinstance(detail.json()["slices"], list)

    history = client.get("/api/sessions", params={"user_id": "history-user"}).json()
    assert [row["id"] for row in history] == [sid]


def test_history_unknown_session(client):
    assert client.get("/api/sessions/unknown").status_code == 404


def test_api_info(client):
    data = client.get("/api/info").json()
    assert data["endpoints"]["sessions"] == "/api/sessions"
