"""Tests for the FastAPI web interface."""

import pytest
from fastapi.testclient import TestClient

from image_insight.analysis.gemini_client import MockImageAnalyzer
from image_insight.config import InsightConfig
from image_insight.web.api import create_app

from conftest import FakeAnalyzer, MODEL_PAYLOAD


@pytest.fixture
def config(tmp_path):
    return InsightConfig(db_path=str(tmp_path / "insight.db"), data_dir=str(tmp_path / "data"))


@pytest.fixture
def client(config):
    with TestClient(create_app(config, analyzer=MockImageAnalyzer())) as test_client:
        yield test_client


def upload(client, data, filename="paris.jpg", user="alice"):
    return client.post(
        "/api/analyze",
        files={"file": (filename, data, "image/jpeg")},
        headers={"X-User-Id": user},
    )


class TestAnalyzeEndpoint:
    """Test image upload and session state."""

    def test_analyze_returns_result(self, client, paris_jpeg):
        response = upload(client, paris_jpeg)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["file_name"] == "paris.jpg"
        assert data["loading"] is False
        assert data["metadata"]["gps"] == {"latitude": "48.858222", "longitude": "2.294500"}
        assert len(data["result"]["excerpts"]) == 2
        assert data["result"]["location"]["city"] == "Paris"

    def test_session_is_per_user(self, client, paris_jpeg):
        upload(client, paris_jpeg, user="alice")

        alice = client.get("/api/session", headers={"X-User-Id": "alice"}).json()
        bob = client.get("/api/session", headers={"X-User-Id": "bob"}).json()

        assert alice["status"] == "ready"
        assert bob["status"] == "idle"
        assert bob["result"] is None

    def test_clear_session(self, client, paris_jpeg):
        upload(client, paris_jpeg)

        response = client.delete("/api/session", headers={"X-User-Id": "alice"})

        assert response.status_code == 200
        assert response.json()["status"] == "idle"
        assert response.json()["file_name"] is None

    def test_empty_upload_rejected(self, client):
        response = upload(client, b"")
        assert response.status_code == 400

    def test_failed_analysis_reports_generic_error(self, config, paris_jpeg):
        app = create_app(config, analyzer=FakeAnalyzer(error=RuntimeError("quota")))
        with TestClient(app) as client:
            data = upload(client, paris_jpeg).json()

        assert data["status"] == "failed"
        assert data["result"] is None
        assert data["error"].startswith("Une erreur est survenue")
        assert "quota" not in data["error"]

    def test_successful_analysis_recorded_in_history(self, config, paris_jpeg):
        with TestClient(create_app(config, analyzer=FakeAnalyzer())) as client:
            upload(client, paris_jpeg, user="alice")
            records = client.get("/api/history", headers={"X-User-Id": "alice"}).json()
            other = client.get("/api/history", headers={"X-User-Id": "bob"}).json()

        assert len(records) == 1
        assert records[0]["result"] == MODEL_PAYLOAD
        assert records[0]["file_name"] == "paris.jpg"
        assert other == []


class TestChatEndpoint:
    """Test the chat endpoints."""

    def test_send_and_list(self, client):
        response = client.post("/api/chat", json={"text": "Bonjour"}, headers={"X-User-Id": "alice"})

        assert response.status_code == 200
        data = response.json()
        assert data["accepted"] is True
        assert [m["role"] for m in data["messages"]] == ["user", "model"]
        assert data["failed"] is False
        assert data["messages"][1]["text"].startswith("Merci")
        assert all(m["created_at"] for m in data["messages"])

        history = client.get("/api/chat", headers={"X-User-Id": "alice"}).json()
        assert [m["text"] for m in history] == [m["text"] for m in data["messages"]]
        assert client.get("/api/chat", headers={"X-User-Id": "bob"}).json() == []

    def test_blank_message_not_accepted(self, client):
        data = client.post("/api/chat", json={"text": "   "}).json()

        assert data["accepted"] is False
        assert data["messages"] == []

    def test_failed_reply_returns_apology(self, config):
        app = create_app(config, analyzer=FakeAnalyzer(stream_error=ConnectionError("reset")))
        with TestClient(app) as client:
            data = client.post("/api/chat", json={"text": "Bonjour"}).json()

        assert data["accepted"] is True
        assert data["failed"] is True
        assert data["messages"][-1]["role"] == "model"
        assert data["messages"][-1]["text"].startswith("Désolé")

    def test_missing_text_is_validation_error(self, client):
        assert client.post("/api/chat", json={}).status_code == 422


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
