"""
FastAPI application for the voice tutor.

`create_app()` wires the conversation store, the speech collaborators and the
handlers together. Every dependency can be passed in, which is how tests run
the app against fakes; anything omitted is built from configuration.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from logging_setup import Component, get_logger
from speech_pipeline.base import DialogueModel, SpeechSynthesizer, Transcriber
from speech_pipeline.instructions import get_base_context
from speech_pipeline.openai_providers import (
    OpenAIClientFactory,
    OpenAIDialogueModel,
    OpenAISpeechSynthesizer,
    OpenAITranscriber,
)

from .config import ApiConfig, get_config
from .lifecycle import ConversationLifecycle
from .orchestrator import AudioReplyOrchestrator, error_result
from .routes import router
from .store import ConversationStore, InMemoryConversationStore

logger = get_logger(Component.API_SERVER)


@dataclass
class Services:
    """Everything the route handlers need, attached to app.state."""

    config: ApiConfig
    store: ConversationStore
    clients: OpenAIClientFactory
    dialogue: DialogueModel
    orchestrator: AudioReplyOrchestrator
    lifecycle: ConversationLifecycle


def create_app(
    config: Optional[ApiConfig] = None,
    store: Optional[ConversationStore] = None,
    transcriber: Optional[Transcriber] = None,
    dialogue: Optional[DialogueModel] = None,
    synthesizer: Optional[SpeechSynthesizer] = None,
) -> FastAPI:
    config = config or get_config()
    store = store or InMemoryConversationStore()

    clients = OpenAIClientFactory(config.openai_api_key)
    transcriber = transcriber or OpenAITranscriber(clients, model=config.transcription_model)
    dialogue = dialogue or OpenAIDialogueModel(clients, model=config.chat_model)
    synthesizer = synthesizer or OpenAISpeechSynthesizer(clients, model=config.tts_model, voice=config.tts_voice)

    app = FastAPI(title="Voice Tutor Conversation API")
    app.state.services = Services(
        config=config,
        store=store,
        clients=clients,
        dialogue=dialogue,
        orchestrator=AudioReplyOrchestrator(store, transcriber, dialogue, synthesizer),
        lifecycle=ConversationLifecycle(store, lambda: get_base_context(config.scenario)),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials="*" not in config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.debug(
            "Request received",
            method=request.method,
            path=request.url.path,
            origin=request.headers.get("origin"),
        )
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        # Same {success, error, timestamp} body as every other rejected request
        details = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        logger.info("Request validation failed", path=request.url.path, errors=details)
        result = error_result(422, f"Invalid request: {details}" if details else "Invalid request")
        return JSONResponse(status_code=result.status_code, content=result.body)

    app.include_router(router)
    return app


app = create_app()
