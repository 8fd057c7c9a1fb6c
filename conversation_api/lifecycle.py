"""
Conversation lifecycle handlers: start a conversation, list conversations.
"""
from __future__ import annotations

from typing import Callable, Optional

from logging_setup import Component, get_logger
from observability.events import Component as EventComponent, EventEmitter

from .errors import error_message
from .orchestrator import HandlerResult, error_result
from .store import ConversationStore, to_iso, utc_now


class ConversationLifecycle:
    def __init__(self, store: ConversationStore, default_base_context: Callable[[], str]):
        self.store = store
        self.default_base_context = default_base_context
        self.logger = get_logger(Component.CONVERSATION_STORE)
        self.emitter = EventEmitter(EventComponent.CONVERSATION_API)

    def start_conversation(self, base_context: Optional[str] = None) -> HandlerResult:
        """
        Create a conversation seeded with `base_context`, or with the default
        instruction when it is missing or empty.
        """
        try:
            custom = bool(base_context)
            conversation_id = self.store.create(base_context or self.default_base_context())
        except Exception as exc:
            self.logger.exception("Error starting conversation", error_type=type(exc).__name__)
            return error_result(500, error_message(exc))

        self.logger.info("Conversation started", conversation_id=conversation_id, custom_context=custom)
        self.emitter.emit("conversation.started", conversation_id, custom_context=custom)
        return HandlerResult(
            status_code=200,
            body={"success": True, "conversationId": conversation_id, "timestamp": to_iso(utc_now())},
        )

    def list_conversations(self) -> HandlerResult:
        """Debug listing of every stored conversation."""
        try:
            summaries = self.store.list_summaries()
            conversations = [
                {
                    "id": s.id,
                    "messagesCount": s.message_count,
                    "createdAt": to_iso(s.created_at),
                    "lastUpdatedAt": to_iso(s.last_updated_at),
                }
                for s in summaries
            ]
        except Exception as exc:
            self.logger.exception("Error listing conversations", error_type=type(exc).__name__)
            return error_result(500, error_message(exc))

        return HandlerResult(
            status_code=200,
            body={
                "success": True,
                "totalConversations": len(conversations),
                "conversations": conversations,
                "timestamp": to_iso(utc_now()),
            },
        )

    def describe(self, conversation_id: str) -> HandlerResult:
        conversation = self.store.get(conversation_id)
        if conversation is None:
            return error_result(404, "Conversation not found")
        return HandlerResult(
            status_code=200,
            body={
                "success": True,
                "conversation": {
                    "id": conversation.id,
                    "createdAt": to_iso(conversation.created_at),
                    "lastUpdatedAt": to_iso(conversation.last_updated_at),
                    "messages": [m.to_dict() for m in conversation.messages],
                },
                "timestamp": to_iso(utc_now()),
            },
        )
