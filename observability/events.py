"""
Structured JSON event emission.

Every event is written as one JSON line to stdout (for log aggregation) and
kept in the in-memory event store so it can be read back per conversation.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from .event_store import event_store


class Component(str, Enum):
    """Event sources."""

    CONVERSATION_API = "conversation_api"
    SPEECH_PIPELINE = "speech_pipeline"


class Severity(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class EventEmitter:
    """Emits structured JSON events."""

    def __init__(self, component: Component):
        self.component = component

    def emit(
        self,
        event_type: str,
        conversation_id: str,
        severity: Severity = Severity.INFO,
        correlation_id: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        """
        Emit a structured event.

        Args:
            event_type: Stable event type string (e.g., "stt.completed")
            conversation_id: Opaque conversation identifier
            severity: Event severity level
            correlation_id: Optional request correlation ID
            **kwargs: Additional event-specific fields
        """
        event = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "conversation_id": conversation_id,
            "component": self.component.value,
            "event_type": event_type,
            "severity": severity.value,
            "correlation_id": correlation_id or conversation_id,
        }
        event.update(kwargs)

        sys.stdout.write(json.dumps(event, ensure_ascii=False, default=str))
        sys.stdout.write("\n")
        sys.stdout.flush()

        event_store.store(event)
