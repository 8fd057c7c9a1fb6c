"""
OpenAI-backed collaborators: Whisper transcription, chat completions, TTS.

One AsyncOpenAI client is shared by the three providers. The client is created
on first use so the application can start without credentials; a missing key
surfaces as ProviderNotConfiguredError from whichever call needs it.
"""
from __future__ import annotations

import time
from typing import Optional

from openai import AsyncOpenAI

from conversation_api.errors import (
    DialogueError,
    ProviderErrorHandler,
    ProviderNotConfiguredError,
    SynthesisError,
    TranscriptionError,
)
from logging_setup import Component, get_logger

from .base import ChatMessages, DialogueModel, SpeechSynthesizer, Transcriber


class OpenAIClientFactory:
    """Lazily builds the shared AsyncOpenAI client."""

    def __init__(self, api_key: Optional[str]):
        self._api_key = api_key
        self._client: Optional[AsyncOpenAI] = None

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def get(self) -> AsyncOpenAI:
        if not self._api_key:
            raise ProviderNotConfiguredError()
        if self._client is None:
            # No retries: a failed provider call is terminal for the request
            self._client = AsyncOpenAI(api_key=self._api_key, max_retries=0)
        return self._client


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class OpenAITranscriber(Transcriber):
    def __init__(self, clients: OpenAIClientFactory, model: str = "whisper-1"):
        self._clients = clients
        self._model = model
        self._logger = get_logger(Component.STT)

    async def transcribe(self, audio: bytes, filename: str = "audio.mp3") -> str:
        start = time.perf_counter()
        try:
            client = self._clients.get()
            transcription = await client.audio.transcriptions.create(
                file=(filename, audio),
                model=self._model,
            )
        except Exception as exc:
            error = ProviderErrorHandler.wrap(exc, TranscriptionError)
            self._logger.warning(
                "Transcription failed",
                model=self._model,
                category=error.category,
                error_type=type(exc).__name__,
                latency_ms=_elapsed_ms(start),
            )
            raise error from exc

        self._logger.info(
            "Transcription completed",
            model=self._model,
            audio_bytes=len(audio),
            transcript_chars=len(transcription.text),
            latency_ms=_elapsed_ms(start),
        )
        return transcription.text


class OpenAIDialogueModel(DialogueModel):
    def __init__(self, clients: OpenAIClientFactory, model: str = "gpt-3.5-turbo"):
        self._clients = clients
        self._model = model
        self._logger = get_logger(Component.LLM)

    async def generate_reply(self, messages: ChatMessages) -> Optional[str]:
        start = time.perf_counter()
        try:
            client = self._clients.get()
            completion = await client.chat.completions.create(
                messages=messages,
                model=self._model,
            )
        except Exception as exc:
            error = ProviderErrorHandler.wrap(exc, DialogueError)
            self._logger.warning(
                "Chat completion failed",
                model=self._model,
                category=error.category,
                error_type=type(exc).__name__,
                latency_ms=_elapsed_ms(start),
            )
            raise error from exc

        content = completion.choices[0].message.content if completion.choices else None
        self._logger.info(
            "Chat completion received",
            model=self._model,
            history_messages=len(messages),
            reply_chars=len(content or ""),
            latency_ms=_elapsed_ms(start),
        )
        return content


class OpenAISpeechSynthesizer(SpeechSynthesizer):
    def __init__(self, clients: OpenAIClientFactory, model: str = "tts-1", voice: str = "nova"):
        self._clients = clients
        self._model = model
        self._voice = voice
        self._logger = get_logger(Component.TTS)

    async def synthesize(self, text: str) -> bytes:
        start = time.perf_counter()
        try:
            client = self._clients.get()
            speech = await client.audio.speech.create(
                model=self._model,
                voice=self._voice,
                input=text,
            )
            audio = speech.content
        except Exception as exc:
            raise ProviderErrorHandler.wrap(exc, SynthesisError) from exc

        self._logger.info(
            "Speech synthesized",
            model=self._model,
            voice=self._voice,
            text_chars=len(text),
            audio_bytes=len(audio),
            latency_ms=_elapsed_ms(start),
        )
        return audio
