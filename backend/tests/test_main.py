from fastapi.testclient import TestClient

from app.main import app
from services.store import auto_recorder, court_classifier

client = TestClient(app)


def test_health() -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_events_socket_rejects_unknown_channel() -> None:
    with client.websocket_connect("/api/ws/events/nope") as ws:
        message = ws.receive()
    assert message["type"] == "websocket.close"
    assert message["code"] == 1008


def test_app_recorder_is_wired_to_court_classifier() -> None:
    assert auto_recorder.classifier is court_classifier
