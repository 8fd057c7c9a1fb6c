"""
Shared fakes for the speech collaborators and app fixtures.
"""
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from conversation_api.config import ApiConfig
from conversation_api.server import create_app
from conversation_api.store import InMemoryConversationStore
from observability.event_store import event_store
from speech_pipeline.base import DialogueModel, SpeechSynthesizer, Transcriber

MP3_BYTES = b"ID3\x03\x00\x00\x00\x00\x00\x00fake-mp3-frames"


class FakeTranscriber(Transcriber):
    def __init__(self, text: str = "Hello, this is a test transcription.", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls: List[bytes] = []

    async def transcribe(self, audio: bytes, filename: str = "audio.mp3") -> str:
        self.calls.append(audio)
        if self.error:
            raise self.error
        return self.text


class FakeDialogue(DialogueModel):
    def __init__(self, reply: Optional[str] = "This is a test AI response.", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: List[list] = []

    async def generate_reply(self, messages):
        self.calls.append([dict(m) for m in messages])
        if self.error:
            raise self.error
        return self.reply


class FakeSynthesizer(SpeechSynthesizer):
    def __init__(self, audio: bytes = b"fake audio", error: Optional[Exception] = None):
        self.audio = audio
        self.error = error
        self.calls: List[str] = []

    async def synthesize(self, text: str) -> bytes:
        self.calls.append(text)
        if self.error:
            raise self.error
        return self.audio


@pytest.fixture(autouse=True)
def clear_events():
    yield
    event_store.clear()


@pytest.fixture
def store():
    return InMemoryConversationStore()


@pytest.fixture
def transcriber():
    return FakeTranscriber()


@pytest.fixture
def dialogue():
    return FakeDialogue()


@pytest.fixture
def synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def config(tmp_path):
    return ApiConfig(openai_api_key="test-key", upload_dir=str(tmp_path / "uploads"))


@pytest.fixture
def client(config, store, transcriber, dialogue, synthesizer):
    app = create_app(
        config=config,
        store=store,
        transcriber=transcriber,
        dialogue=dialogue,
        synthesizer=synthesizer,
    )
    return TestClient(app)
