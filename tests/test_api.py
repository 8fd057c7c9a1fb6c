"""
HTTP API tests.

The app is built with create_app() against fake speech collaborators, so no
request leaves the process.
"""
import base64
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conversation_api.config import ApiConfig
from conversation_api.errors import DialogueError
from conversation_api.server import create_app
from conversation_api.store import DEFAULT_BASE_CONTEXT

from conftest import MP3_BYTES, FakeDialogue


def _audio(name="test.mp3", content_type="audio/mpeg", data=MP3_BYTES):
    return {"audio": (name, data, content_type)}


def _start(client, **body):
    response = client.post("/conversations/start", json=body)
    assert response.status_code == 200
    return response.json()["conversationId"]


class TestHealthEndpoints:
    def test_hello(self, client):
        response = client.get("/")
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Hello World! FastAPI voice tutor is running!"
        assert body["timestamp"].endswith("Z")

    def test_health(self, client):
        response = client.get("/health")
        assert response.json() == {"status": "ok", "component": "conversation_api"}

    def test_cors_header(self, client):
        response = client.get("/test-cors", headers={"Origin": "http://localhost:5173"})
        assert response.status_code == 200
        assert response.json()["message"] == "CORS is working!"
        assert response.headers["access-control-allow-origin"] == "*"


class TestOpenAICheck:
    def test_missing_key(self, tmp_path, store, transcriber, dialogue, synthesizer):
        app = create_app(
            config=ApiConfig(openai_api_key=None, upload_dir=str(tmp_path)),
            store=store,
            transcriber=transcriber,
            dialogue=dialogue,
            synthesizer=synthesizer,
        )
        response = TestClient(app).get("/test-openai")

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "OpenAI API key not configured"
        assert body["error"] == "OPENAI_API_KEY is not set in environment variables"
        assert dialogue.calls == []

    def test_success(self, client, dialogue):
        dialogue.reply = "Hello! OpenAI is working correctly."
        response = client.get("/test-openai")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "OpenAI API is working!"
        assert body["openaiResponse"] == "Hello! OpenAI is working correctly."

    def test_provider_failure(self, client, dialogue):
        dialogue.error = DialogueError("invalid api key")
        response = client.get("/test-openai")

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "OpenAI API test failed"
        assert body["error"] == "invalid api key"


class TestConversationLifecycle:
    def test_start_with_empty_body_uses_default_seed(self, client, store):
        response = client.post("/conversations/start", json={})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        conversation = store.get(body["conversationId"])
        assert conversation.messages[0].content == DEFAULT_BASE_CONTEXT

    def test_start_without_body(self, client, store):
        response = client.post("/conversations/start")

        assert response.status_code == 200
        assert store.count() == 1

    def test_start_with_custom_context(self, client, store):
        conversation_id = _start(client, baseContext="Practice ordering food in a cafe.")
        assert store.get(conversation_id).messages[0].content == "Practice ordering food in a cafe."

    def test_empty_context_falls_back_to_default(self, client, store):
        conversation_id = _start(client, baseContext="")
        assert store.get(conversation_id).messages[0].content == DEFAULT_BASE_CONTEXT

    def test_list_empty(self, client):
        body = client.get("/conversations").json()
        assert body["success"] is True
        assert body["totalConversations"] == 0
        assert body["conversations"] == []

    def test_list_after_start(self, client):
        first = _start(client)
        second = _start(client)

        body = client.get("/conversations").json()

        assert body["totalConversations"] == 2
        assert [c["id"] for c in body["conversations"]] == [first, second]
        assert body["conversations"][0]["messagesCount"] == 1
        assert body["conversations"][0]["createdAt"].endswith("Z")

    def test_detail(self, client):
        conversation_id = _start(client, baseContext="Be brief.")

        body = client.get(f"/conversations/{conversation_id}").json()

        assert body["conversation"]["id"] == conversation_id
        assert body["conversation"]["messages"][0]["role"] == "system"
        assert body["conversation"]["messages"][0]["content"] == "Be brief."

    def test_detail_unknown(self, client):
        response = client.get("/conversations/unknown-id")
        assert response.status_code == 404
        assert response.json()["error"] == "Conversation not found"

    def test_events(self, client):
        conversation_id = _start(client)
        client.post(f"/record?conversationId={conversation_id}", files=_audio())

        body = client.get(f"/conversations/{conversation_id}/events").json()

        event_types = [e["event_type"] for e in body["events"]]
        assert body["conversationId"] == conversation_id
        assert body["count"] == len(body["events"])
        assert event_types[0] == "conversation.started"
        assert "stt.completed" in event_types
        assert "tts.completed" in event_types

        filtered = client.get(
            f"/conversations/{conversation_id}/events", params={"event_type": "stt.completed"}
        ).json()
        assert filtered["count"] == 1

    def test_events_unknown_conversation(self, client):
        response = client.get("/conversations/unknown-id/events")
        assert response.status_code == 404


class TestRecord:
    def test_missing_file(self, client):
        conversation_id = _start(client)
        response = client.post("/record", data={"conversationId": conversation_id})

        assert response.status_code == 400
        assert response.json()["error"] == "No audio file provided"

    def test_missing_conversation_id(self, client, config):
        response = client.post("/record", files=_audio())

        assert response.status_code == 400
        assert response.json()["error"].startswith("Conversation ID is required.")
        assert list(Path(config.upload_dir).iterdir()) == []

    def test_unknown_conversation(self, client, transcriber):
        response = client.post("/record?conversationId=unknown-id", files=_audio())

        assert response.status_code == 404
        assert response.json()["error"] == "Conversation not found. Please start a new conversation."
        assert transcriber.calls == []

    def test_success(self, client, store, synthesizer, config):
        conversation_id = _start(client)

        response = client.post(f"/record?conversationId={conversation_id}", files=_audio())

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["conversationId"] == conversation_id
        assert body["transcription"] == "Hello, this is a test transcription."
        assert body["aiResponse"] == "This is a test AI response."
        assert base64.b64decode(body["audioBuffer"]) == b"fake audio"
        assert body["timestamp"].endswith("Z")
        assert len(store.get(conversation_id).messages) == 3
        assert synthesizer.calls == ["This is a test AI response."]

    def test_conversation_id_from_form(self, client, store):
        conversation_id = _start(client)

        response = client.post("/record", data={"conversationId": conversation_id}, files=_audio())

        assert response.status_code == 200
        assert len(store.get(conversation_id).messages) == 3

    def test_query_wins_over_form(self, client, store):
        from_query = _start(client)
        from_form = _start(client)

        response = client.post(
            f"/record?conversationId={from_query}",
            data={"conversationId": from_form},
            files=_audio(),
        )

        assert response.json()["conversationId"] == from_query
        assert len(store.get(from_query).messages) == 3
        assert len(store.get(from_form).messages) == 1

    def test_mp3_accepted_by_extension(self, client):
        conversation_id = _start(client)
        response = client.post(
            f"/record?conversationId={conversation_id}",
            files=_audio(content_type="application/octet-stream"),
        )
        assert response.status_code == 200

    def test_non_mp3_rejected(self, client, transcriber):
        conversation_id = _start(client)

        response = client.post(
            f"/record?conversationId={conversation_id}",
            files=_audio(name="clip.wav", content_type="audio/wav"),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Only MP3 files are allowed"
        assert transcriber.calls == []

    def test_oversized_upload_rejected(self, tmp_path, store, transcriber, dialogue, synthesizer):
        upload_dir = tmp_path / "uploads"
        app = create_app(
            config=ApiConfig(openai_api_key="test-key", upload_dir=str(upload_dir), max_upload_bytes=8),
            store=store,
            transcriber=transcriber,
            dialogue=dialogue,
            synthesizer=synthesizer,
        )
        client = TestClient(app)
        conversation_id = client.post("/conversations/start").json()["conversationId"]

        response = client.post(f"/record?conversationId={conversation_id}", files=_audio())

        assert response.status_code == 413
        assert response.json()["error"] == "File too large"
        assert list(upload_dir.iterdir()) == []

    def test_synthesis_failure_omits_audio(self, client, synthesizer):
        synthesizer.error = RuntimeError("tts down")
        conversation_id = _start(client)

        response = client.post(f"/record?conversationId={conversation_id}", files=_audio())

        assert response.status_code == 200
        assert "audioBuffer" not in response.json()

    def test_dialogue_failure(self, client, dialogue, store):
        dialogue.error = DialogueError("model overloaded")
        conversation_id = _start(client)

        response = client.post(f"/record?conversationId={conversation_id}", files=_audio())

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "model overloaded",
            "timestamp": response.json()["timestamp"],
        }
        assert len(store.get(conversation_id).messages) == 2

    @pytest.mark.parametrize("turns", [1, 3])
    def test_upload_dir_empty_after_requests(self, client, config, turns):
        conversation_id = _start(client)
        for _ in range(turns):
            client.post(f"/record?conversationId={conversation_id}", files=_audio())
        client.post("/record?conversationId=unknown-id", files=_audio())

        assert list(Path(config.upload_dir).iterdir()) == []

    def test_history_accumulates_across_requests(self, client, store, dialogue):
        conversation_id = _start(client)
        for _ in range(2):
            client.post(f"/record?conversationId={conversation_id}", files=_audio())

        assert [len(call) for call in dialogue.calls] == [2, 4]
        assert len(store.get(conversation_id).messages) == 5


def test_placeholder_reply(tmp_path, store, transcriber, synthesizer):
    app = create_app(
        config=ApiConfig(openai_api_key="test-key", upload_dir=str(tmp_path / "uploads")),
        store=store,
        transcriber=transcriber,
        dialogue=FakeDialogue(reply=None),
        synthesizer=synthesizer,
    )
    client = TestClient(app)
    conversation_id = client.post("/conversations/start").json()["conversationId"]

    body = client.post(f"/record?conversationId={conversation_id}", files=_audio()).json()

    assert body["aiResponse"] == "No response generated"
    assert "audioBuffer" not in body
    assert synthesizer.calls == []


class TestUploadCleanupFailure:
    @pytest.fixture
    def unlink_denied(self, monkeypatch):
        def deny(path, *args, **kwargs):
            raise PermissionError("unlink denied")

        monkeypatch.setattr(Path, "unlink", deny)

    def _client(self, config, store, transcriber, dialogue, synthesizer):
        app = create_app(
            config=config,
            store=store,
            transcriber=transcriber,
            dialogue=dialogue,
            synthesizer=synthesizer,
        )
        return TestClient(app, raise_server_exceptions=False)

    def test_successful_turn_still_answered(self, config, store, transcriber, dialogue, synthesizer, unlink_denied):
        client = self._client(config, store, transcriber, dialogue, synthesizer)
        conversation_id = _start(client)

        response = client.post(f"/record?conversationId={conversation_id}", files=_audio())

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_failed_turn_returns_json_error(self, config, store, transcriber, dialogue, synthesizer, unlink_denied):
        dialogue.error = DialogueError("model overloaded")
        client = self._client(config, store, transcriber, dialogue, synthesizer)
        conversation_id = _start(client)

        response = client.post(f"/record?conversationId={conversation_id}", files=_audio())

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "model overloaded"


class TestValidationErrors:
    def test_malformed_json_body(self, client):
        response = client.post(
            "/conversations/start",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("Invalid request")
        assert body["timestamp"].endswith("Z")

    def test_non_string_base_context(self, client, store):
        response = client.post("/conversations/start", json={"baseContext": {"topic": "travel"}})

        assert response.status_code == 422
        assert response.json()["success"] is False
        assert "baseContext" in response.json()["error"]
        assert store.count() == 0


def test_event_stats(client):
    _start(client)

    stats = client.get("/events/stats").json()

    assert stats["total_events"] >= 1
    assert stats["max_events"] == 10000
    assert stats["newest_event_ts"] is not None
