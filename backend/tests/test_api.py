"""Tests for the HTTP API, using the mock backend and in-memory storage."""

import pytest
from fastapi.testclient import TestClient

from murmur_models import GREETING_TEXT

from murmur.api import build_orchestrator, create_app
from murmur.config import Settings
from murmur.exceptions import CONFIGURATION_ERROR_MESSAGE
from murmur.services.assistant_mock import MockAssistantBackend


@pytest.fixture
def client():
    orchestrator = build_orchestrator(Settings(assistant_backend="mock", storage_backend="memory"))
    with TestClient(create_app(orchestrator)) as test_client:
        yield test_client


@pytest.fixture
def logged_in(client):
    response = client.post("/auth/login", json={"email": "jane.doe@example.com", "password": "pw"})
    assert response.status_code == 200
    return client


class TestHealthAndState:
    def test_health(self, client):
        response = client.get("/health")
        assert response.json() == {"status": "healthy", "assistant": "ready"}

    def test_state_before_login(self, client):
        state = client.get("/state").json()

        assert state["user"] is None
        assert state["conversations"] == []
        assert state["is_initializing"] is True
        assert state["speech_input_supported"] is False


class TestAuthEndpoints:
    def test_login_starts_chat(self, client):
        response = client.post("/auth/login", json={"email": "jane.doe@example.com", "password": "pw"})

        state = response.json()
        assert state["user"]["name"] == "Jane Doe"
        assert len(state["conversations"]) == 1
        assert state["conversations"][0]["messages"][0]["text"] == GREETING_TEXT
        assert state["is_initializing"] is False

    def test_login_validation(self, client):
        response = client.post("/auth/login", json={"email": "jane@example.com"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Please enter both email and password."

    def test_signup_and_social(self, client):
        assert client.post("/auth/signup", json={"name": "Sam", "email": "s@example.com", "password": "pw"}).json()["user"]["name"] == "Sam"
        assert client.post("/auth/social/github").json()["user"]["email"] == "github.user@example.com"

    def test_logout(self, logged_in):
        state = logged_in.post("/auth/logout").json()

        assert state["user"] is None
        assert state["conversations"] == []

    def test_avatar(self, client):
        assert client.put("/profile/avatar", json={"avatar": "x"}).status_code == 401

        client.post("/auth/social/google")
        response = client.put("/profile/avatar", json={"avatar": "data:image/png;base64,AAAA"})
        assert response.json()["avatar"] == "data:image/png;base64,AAAA"


class TestChatEndpoints:
    def test_chat_requires_login(self, client):
        assert client.post("/chat", json={"message": "Hello"}).status_code == 401

    def test_chat_streams_reply(self, logged_in):
        """The response carries the finished turn."""
        state = logged_in.post("/chat", json={"message": "Hello"}).json()

        messages = state["conversations"][0]["messages"]
        assert [m["author"] for m in messages] == ["assistant", "user", "assistant"]
        assert messages[1]["text"] == "Hello"
        assert messages[2]["text"] == MockAssistantBackend.reply_for("Hello")
        assert state["conversations"][0]["title"] == "Hello"
        assert state["is_sending"] is False
        assert state["input"] == ""

    def test_input(self, logged_in):
        state = logged_in.put("/input", json={"text": "draft"}).json()
        assert state["input"] == "draft"

    def test_suggestions_default(self, logged_in):
        assert len(logged_in.get("/suggestions").json()["suggestions"]) == 3


class TestConversationEndpoints:
    def test_new_select_delete(self, logged_in):
        first_id = logged_in.get("/conversations").json()["active_conversation_id"]

        state = logged_in.post("/conversations").json()
        second_id = state["active_conversation_id"]
        assert second_id != first_id
        assert [c["id"] for c in state["conversations"]] == [second_id, first_id]

        state = logged_in.post(f"/conversations/{first_id}/select").json()
        assert state["active_conversation_id"] == first_id

        state = logged_in.delete(f"/conversations/{first_id}").json()
        assert state["active_conversation_id"] == second_id
        assert logged_in.get("/conversations").json()["total"] == 1

    def test_unknown_conversation(self, logged_in):
        assert logged_in.post("/conversations/convo-missing/select").status_code == 404
        assert logged_in.delete("/conversations/convo-missing").status_code == 404


class TestVoiceEndpoints:
    def test_settings_update(self, client):
        response = client.patch("/settings", json={"rate": 3, "soundEnabled": False})

        assert response.json() == {"voiceId": None, "rate": 2.0, "soundEnabled": False}
        assert client.get("/settings").json()["soundEnabled"] is False

    def test_unknown_voice(self, client):
        assert client.patch("/settings", json={"voiceId": "nope"}).status_code == 400
        assert client.get("/voices").json() == {"voices": [], "selected_voice_id": None}

    def test_toggles_and_mood(self, client):
        assert client.post("/speech/toggle").json() == {"speech_enabled": False}
        assert client.post("/recording/toggle").status_code == 501
        assert client.put("/mood", json={"mood": "happy"}).json() == {"mood": "happy"}
        assert client.put("/mood", json={"mood": "angry"}).status_code == 422


class TestImageEndpoint:
    def test_mock_backend_has_no_images(self, client):
        response = client.post("/images", json={"prompt": "a fox"})
        assert response.status_code == 501

    def test_blank_prompt(self, client):
        assert client.post("/images", json={"prompt": " "}).status_code == 400


class TestMissingApiKey:
    """The app starts without a key and reports it."""

    @pytest.fixture
    def unconfigured(self):
        orchestrator = build_orchestrator(
            Settings(assistant_backend="gemini", gemini_api_key="", storage_backend="memory")
        )
        with TestClient(create_app(orchestrator)) as test_client:
            yield test_client

    def test_health_and_state(self, unconfigured):
        assert unconfigured.get("/health").json()["assistant"] == "unavailable"
        assert unconfigured.get("/state").json()["error"] == CONFIGURATION_ERROR_MESSAGE

    def test_chat_blocked(self, unconfigured):
        unconfigured.post("/auth/social/google")

        response = unconfigured.post("/chat", json={"message": "Hello"})

        assert response.status_code == 503
        state = unconfigured.get("/state").json()
        assert len(state["conversations"][0]["messages"]) == 1

    def test_images_blocked(self, unconfigured):
        assert unconfigured.post("/images", json={"prompt": "a fox"}).status_code == 503
