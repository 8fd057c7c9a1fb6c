"""
Conversation store.

A conversation is an append-only, chronological list of role-tagged messages
seeded with exactly one system instruction. The store owns every record;
callers get snapshots back and mutate only through `append`.

The in-memory implementation keeps records for the lifetime of the process
and never evicts them.
"""
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

DEFAULT_BASE_CONTEXT = (
    "Hi. I want to learn English could you be my teacher today. I want to talk with you "
    "on different themes, and you can improve my grammar and other things."
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Render an instant as UTC with millisecond precision and a Z suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationMessage:
    """One turn of a conversation. Immutable once appended."""

    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        # Accept plain strings ("user") as well as MessageRole members
        object.__setattr__(self, "role", MessageRole(self.role))

    def as_chat_message(self) -> Dict[str, str]:
        """Project to the {role, content} shape the dialogue provider takes."""
        return {"role": self.role.value, "content": self.content}

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content, "timestamp": to_iso(self.timestamp)}


@dataclass
class Conversation:
    """A stored conversation."""

    id: str
    messages: List[ConversationMessage]
    created_at: datetime
    last_updated_at: datetime

    def __post_init__(self):
        if not self.id:
            raise ValueError("conversation id is required")
        if not self.messages or self.messages[0].role != MessageRole.SYSTEM:
            raise ValueError("conversation must start with a system message")

    def snapshot(self) -> "Conversation":
        return replace(self, messages=list(self.messages))


@dataclass(frozen=True)
class ConversationSummary:
    id: str
    message_count: int
    created_at: datetime
    last_updated_at: datetime


class ConversationStore(ABC):
    """Storage interface used by the orchestrator and lifecycle handlers."""

    @abstractmethod
    def create(self, seed_system_content: Optional[str] = None) -> str:
        """Create a conversation seeded with one system message; return its id."""

    @abstractmethod
    def get(self, conversation_id: str) -> Optional[Conversation]:
        """Return a snapshot of the conversation, or None if unknown."""

    @abstractmethod
    def append(self, conversation_id: str, message: ConversationMessage) -> bool:
        """Append a message. Returns False (and changes nothing) for unknown ids."""

    @abstractmethod
    def list_summaries(self) -> List[ConversationSummary]:
        """Summaries of all conversations in insertion order."""

    @abstractmethod
    def count(self) -> int:
        """Number of stored conversations."""


class InMemoryConversationStore(ConversationStore):
    """Process-local conversation store guarded by a single lock."""

    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}
        self._lock = threading.Lock()

    def create(self, seed_system_content: Optional[str] = None) -> str:
        conversation_id = str(uuid.uuid4())
        now = utc_now()
        seed = ConversationMessage(
            role=MessageRole.SYSTEM,
            content=seed_system_content or DEFAULT_BASE_CONTEXT,
            timestamp=now,
        )
        conversation = Conversation(
            id=conversation_id,
            messages=[seed],
            created_at=now,
            last_updated_at=now,
        )
        with self._lock:
            self._conversations[conversation_id] = conversation
        return conversation_id

    def get(self, conversation_id: str) -> Optional[Conversation]:
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            return conversation.snapshot() if conversation else None

    def append(self, conversation_id: str, message: ConversationMessage) -> bool:
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                return False
            conversation.messages.append(message)
            # lastUpdatedAt never trails the newest message
            conversation.last_updated_at = max(utc_now(), message.timestamp, conversation.last_updated_at)
            return True

    def list_summaries(self) -> List[ConversationSummary]:
        with self._lock:
            return [
                ConversationSummary(
                    id=c.id,
                    message_count=len(c.messages),
                    created_at=c.created_at,
                    last_updated_at=c.last_updated_at,
                )
                for c in self._conversations.values()
            ]

    def count(self) -> int:
        with self._lock:
            return len(self._conversations)

    def clear(self) -> None:
        with self._lock:
            self._conversations.clear()
