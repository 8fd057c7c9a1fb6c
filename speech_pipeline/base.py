"""
Collaborator contracts for the audio reply pipeline: STT -> LLM -> TTS.

Implementations live next to this module; tests substitute fakes that follow
the same shape.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

from conversation_api.errors import ProviderError, ProviderErrorHandler, SynthesisError

ChatMessages = List[Dict[str, str]]


class Transcriber(ABC):
    @abstractmethod
    async def transcribe(self, audio: bytes, filename: str = "audio.mp3") -> str:
        """Convert audio bytes to text. Raises TranscriptionError."""


class DialogueModel(ABC):
    @abstractmethod
    async def generate_reply(self, messages: ChatMessages) -> Optional[str]:
        """
        Generate the next assistant turn for an ordered list of {role, content}.

        Returns None (or "") when the provider produced no content.
        Raises DialogueError.
        """


class SpeechSynthesizer(ABC):
    @abstractmethod
    async def synthesize(self, text: str) -> bytes:
        """Convert reply text to audio bytes. Raises SynthesisError."""


@dataclass(frozen=True)
class SynthesisResult:
    """Outcome of a best-effort synthesis call."""

    audio: Optional[bytes] = None
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.audio is not None


async def synthesize_best_effort(synthesizer: SpeechSynthesizer, text: str) -> SynthesisResult:
    """
    Run speech synthesis and fold any failure into the result.

    The caller decides what to do with a failed result; nothing propagates.
    """
    try:
        audio = await synthesizer.synthesize(text)
    except Exception as exc:
        return SynthesisResult(error=ProviderErrorHandler.wrap(exc, SynthesisError))
    if not audio:
        return SynthesisResult(error=SynthesisError("Speech synthesis returned no audio"))
    return SynthesisResult(audio=audio)
