"""
HTTP routes for the voice tutor.

- GET  /                               liveness hello
- GET  /health                         health check
- GET  /test-cors                      CORS check for browser clients
- GET  /test-openai                    one dialogue call to verify credentials
- POST /conversations/start            start a conversation
- GET  /conversations                  debug listing
- GET  /conversations/{id}             debug detail with messages
- GET  /conversations/{id}/events      structured events for a conversation
- GET  /events/stats                   event store size and time span
- POST /record                         audio turn (multipart field "audio")

Handlers never let an exception reach the transport: every error is a JSON
body with success=false and a message.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from logging_setup import Component, get_logger
from observability.event_store import event_store

from .errors import RequestError, error_message
from .orchestrator import HandlerResult, error_result, resolve_conversation_id
from .store import to_iso, utc_now
from .uploads import save_upload

router = APIRouter()
logger = get_logger(Component.API_SERVER)

OPENAI_TEST_PROMPT = "Say 'Hello! OpenAI is working correctly.' in exactly those words."


class StartConversationRequest(BaseModel):
    baseContext: Optional[str] = Field(None, description="Seed system instruction; default tutor prompt if omitted")


def _respond(result: HandlerResult) -> JSONResponse:
    return JSONResponse(status_code=result.status_code, content=result.body)


@router.get("/")
async def hello_world():
    return {
        "message": "Hello World! FastAPI voice tutor is running!",
        "timestamp": to_iso(utc_now()),
    }


@router.get("/health")
async def health():
    return {"status": "ok", "component": "conversation_api"}


@router.get("/test-cors")
async def test_cors():
    return {"message": "CORS is working!", "timestamp": to_iso(utc_now())}


@router.get("/test-openai")
async def test_openai(request: Request):
    """Exercise the dialogue model once and report the outcome."""
    services = request.app.state.services

    if not services.clients.configured:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "message": "OpenAI API key not configured",
                "error": "OPENAI_API_KEY is not set in environment variables",
                "timestamp": to_iso(utc_now()),
            },
        )

    try:
        reply = await services.dialogue.generate_reply([{"role": "user", "content": OPENAI_TEST_PROMPT}])
    except Exception as e:
        logger.error("OpenAI test call failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "OpenAI API test failed",
                "error": error_message(e),
                "timestamp": to_iso(utc_now()),
            },
        )

    return {
        "success": True,
        "message": "OpenAI API is working!",
        "openaiResponse": reply or "",
        "timestamp": to_iso(utc_now()),
    }


@router.post("/conversations/start")
async def start_conversation(request: Request, body: Optional[StartConversationRequest] = None):
    base_context = body.baseContext if body else None
    return _respond(request.app.state.services.lifecycle.start_conversation(base_context))


@router.get("/conversations")
async def list_conversations(request: Request):
    return _respond(request.app.state.services.lifecycle.list_conversations())


@router.get("/conversations/{conversation_id}")
async def get_conversation(request: Request, conversation_id: str):
    return _respond(request.app.state.services.lifecycle.describe(conversation_id))


@router.get("/conversations/{conversation_id}/events")
async def get_conversation_events(
    request: Request,
    conversation_id: str,
    event_type: Optional[str] = Query(None, description="Filter by event_type"),
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Max events to return"),
):
    if request.app.state.services.store.get(conversation_id) is None:
        return _respond(error_result(404, "Conversation not found"))

    events = event_store.query(conversation_id=conversation_id, event_type=event_type, limit=limit)
    return {
        "conversationId": conversation_id,
        "events": events,
        "count": len(events),
    }


@router.get("/events/stats")
async def get_event_stats():
    """Size and time span of the in-memory event store."""
    return event_store.get_stats()


@router.post("/record")
async def record(
    request: Request,
    audio: Optional[UploadFile] = File(None),
    query_conversation_id: Optional[str] = Query(None, alias="conversationId"),
    form_conversation_id: Optional[str] = Form(None, alias="conversationId"),
):
    """
    Process one recorded audio turn.

    conversationId may be passed as a query parameter (preferred) or as a form
    field; the query parameter wins when both are present.
    """
    services = request.app.state.services

    stored = None
    if audio is not None:
        try:
            stored = await save_upload(audio, services.config.upload_dir, services.config.max_upload_bytes)
        except RequestError as e:
            return _respond(error_result(e.status_code, e.message))
        except Exception as e:
            logger.exception("Failed to store upload", error_type=type(e).__name__)
            return _respond(error_result(500, error_message(e)))

    conversation_id = resolve_conversation_id(query_conversation_id, form_conversation_id)
    return _respond(await services.orchestrator.process(stored, conversation_id))
