"""
Audio reply orchestration.

One /record request: validate -> transcribe -> store user turn -> generate
reply from the full history -> store assistant turn -> synthesize speech
(best-effort) -> remove the uploaded file -> respond.

The uploaded file belongs to the request: it is removed exactly once, from
`process`, whichever exit path the turn takes. A failed delete is logged and
does not change the response.
"""
from __future__ import annotations

import base64
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from logging_setup import Component, get_logger
from observability.events import Component as EventComponent, EventEmitter, Severity
from speech_pipeline.base import (
    DialogueModel,
    SpeechSynthesizer,
    Transcriber,
    synthesize_best_effort,
)

from .errors import (
    ConversationNotFoundError,
    MissingAudioError,
    MissingConversationIdError,
    ProviderError,
    RequestError,
    error_message,
)
from .store import ConversationMessage, ConversationStore, MessageRole, to_iso, utc_now
from .uploads import StoredUpload, remove_upload

NO_RESPONSE_PLACEHOLDER = "No response generated"


@dataclass(frozen=True)
class HandlerResult:
    """HTTP status plus JSON body produced by a handler."""

    status_code: int
    body: Dict[str, Any]


def error_result(status_code: int, message: str) -> HandlerResult:
    return HandlerResult(
        status_code=status_code,
        body={"success": False, "error": message, "timestamp": to_iso(utc_now())},
    )


def resolve_conversation_id(query_value: Optional[str], body_value: Optional[str]) -> Optional[str]:
    """The query parameter wins over the body field when both are present."""
    return query_value or body_value or None


class AudioReplyOrchestrator:
    """Handles one recorded audio turn against a stored conversation."""

    def __init__(
        self,
        store: ConversationStore,
        transcriber: Transcriber,
        dialogue: DialogueModel,
        synthesizer: SpeechSynthesizer,
    ):
        self.store = store
        self.transcriber = transcriber
        self.dialogue = dialogue
        self.synthesizer = synthesizer
        self.logger = get_logger(Component.ORCHESTRATOR)
        self.emitter = EventEmitter(EventComponent.CONVERSATION_API)
        self.speech_emitter = EventEmitter(EventComponent.SPEECH_PIPELINE)

    async def process(self, upload: Optional[StoredUpload], conversation_id: Optional[str]) -> HandlerResult:
        request_id = uuid.uuid4().hex
        try:
            return await self._process(upload, conversation_id, request_id)
        except RequestError as exc:
            self.logger.info("Audio request rejected", status=exc.status_code, error=exc.message)
            return error_result(exc.status_code, exc.message)
        except Exception as exc:
            self.logger.exception(
                "Error processing audio",
                conversation_id=conversation_id,
                error_type=type(exc).__name__,
                category=getattr(exc, "category", None),
            )
            if conversation_id:
                self.emitter.emit(
                    "request.failed",
                    conversation_id,
                    severity=Severity.ERROR,
                    correlation_id=request_id,
                    stage=exc.stage if isinstance(exc, ProviderError) else "internal",
                    error_class=type(exc).__name__,
                )
            return error_result(500, error_message(exc))
        finally:
            self._discard_upload(upload, conversation_id, request_id)

    def _discard_upload(
        self,
        upload: Optional[StoredUpload],
        conversation_id: Optional[str],
        request_id: str,
    ) -> None:
        """
        Remove the request's upload. Called once per request, on every exit path.

        A failed delete is logged and left for the operator; it never changes
        the response already produced for the turn.
        """
        if upload is None:
            return
        try:
            removed = remove_upload(upload.path)
        except OSError as exc:
            self.logger.warning(
                "Could not remove upload",
                path=str(upload.path),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return

        if not removed:
            return
        self.logger.debug("Upload removed", path=str(upload.path))
        if conversation_id and self.store.get(conversation_id) is not None:
            self.emitter.emit("audio.upload_removed", conversation_id, correlation_id=request_id)

    async def _process(
        self,
        upload: Optional[StoredUpload],
        conversation_id: Optional[str],
        request_id: str,
    ) -> HandlerResult:
        if upload is None:
            raise MissingAudioError()
        if not conversation_id:
            raise MissingConversationIdError()
        if self.store.get(conversation_id) is None:
            raise ConversationNotFoundError()

        log = self.logger.with_conversation(conversation_id)
        self.emitter.emit(
            "audio.received",
            conversation_id,
            correlation_id=request_id,
            audio_bytes=upload.size,
            content_type=upload.content_type,
        )

        audio = upload.path.read_bytes()
        transcript = await self.transcriber.transcribe(audio, filename=upload.original_name)
        log.debug_pii("User turn transcribed", text=transcript)
        self.speech_emitter.emit("stt.completed", conversation_id, correlation_id=request_id, transcript_chars=len(transcript))

        self._append(conversation_id, MessageRole.USER, transcript, request_id)

        conversation = self.store.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError()
        history = [message.as_chat_message() for message in conversation.messages]

        reply = await self.dialogue.generate_reply(history) or NO_RESPONSE_PLACEHOLDER
        generated = reply != NO_RESPONSE_PLACEHOLDER
        self.speech_emitter.emit(
            "llm.completed",
            conversation_id,
            correlation_id=request_id,
            history_messages=len(history),
            reply_chars=len(reply) if generated else 0,
            placeholder=not generated,
        )

        audio_buffer: Optional[str] = None
        if generated:
            self._append(conversation_id, MessageRole.ASSISTANT, reply, request_id)

            result = await synthesize_best_effort(self.synthesizer, reply)
            if result.ok:
                audio_buffer = base64.b64encode(result.audio).decode("ascii")
                self.speech_emitter.emit("tts.completed", conversation_id, correlation_id=request_id, audio_bytes=len(result.audio))
            else:
                # Reply is still returned, just without audio
                log.warning(
                    "Speech synthesis failed; responding without audio",
                    category=result.error.category,
                    error=str(result.error),
                )
                self.speech_emitter.emit(
                    "tts.failed",
                    conversation_id,
                    severity=Severity.WARN,
                    correlation_id=request_id,
                    category=result.error.category,
                )
        else:
            log.warning("Dialogue model returned no content")

        body: Dict[str, Any] = {
            "success": True,
            "conversationId": conversation_id,
            "transcription": transcript,
            "aiResponse": reply,
            "timestamp": to_iso(utc_now()),
        }
        if audio_buffer is not None:
            body["audioBuffer"] = audio_buffer

        log.info(
            "Audio turn processed",
            transcript_chars=len(transcript),
            reply_chars=len(reply),
            has_audio=audio_buffer is not None,
        )
        return HandlerResult(status_code=200, body=body)

    def _append(self, conversation_id: str, role: MessageRole, content: str, request_id: str) -> None:
        if not self.store.append(conversation_id, ConversationMessage(role=role, content=content)):
            raise ConversationNotFoundError()
        self.emitter.emit(
            "conversation.message_appended",
            conversation_id,
            correlation_id=request_id,
            role=role.value,
            content_chars=len(content),
        )
