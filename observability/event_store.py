"""
Event store for querying structured events by conversation_id.

In-memory implementation, bounded so a long-running process cannot grow it
without limit. Lifetime is the process lifetime, same as the conversations.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from dataclasses import dataclass

ENVELOPE_KEYS = ("ts", "conversation_id", "component", "event_type", "severity", "correlation_id")


@dataclass
class StoredEvent:
    """A structured event kept in memory."""

    ts: datetime
    conversation_id: str
    component: str
    event_type: str
    severity: str
    correlation_id: str
    payload: Dict[str, Any]  # All other event fields

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "ts": self.ts.isoformat(),
            "conversation_id": self.conversation_id,
            "component": self.component,
            "event_type": self.event_type,
            "severity": self.severity,
            "correlation_id": self.correlation_id,
        }
        result.update(self.payload)
        return result


class EventStore:
    """
    In-memory event store.

    Stores events in a bounded deque (FIFO); the oldest events are dropped
    once max_events is reached.
    """

    def __init__(self, max_events: int = 10000):
        self._events: deque[StoredEvent] = deque(maxlen=max_events)
        self._max_events = max_events

    def store(self, event: Dict[str, Any]) -> None:
        """
        Store an event dict as produced by EventEmitter.emit.
        """
        ts_str = event.get("ts")
        if isinstance(ts_str, str):
            ts = datetime.fromisoformat(ts_str.replace("Z", "+00:00"))
        else:
            ts = datetime.now(timezone.utc)

        conversation_id = event.get("conversation_id", "")
        payload = {k: v for k, v in event.items() if k not in ENVELOPE_KEYS}

        self._events.append(StoredEvent(
            ts=ts,
            conversation_id=conversation_id,
            component=event.get("component", "unknown"),
            event_type=event.get("event_type", "unknown"),
            severity=event.get("severity", "info"),
            correlation_id=event.get("correlation_id", conversation_id),
            payload=payload,
        ))

    def query(
        self,
        conversation_id: Optional[str] = None,
        event_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Query events with optional filters.

        Returns event dicts ordered oldest first, capped at `limit` if given.
        """
        results: List[StoredEvent] = []

        for event in self._events:
            if conversation_id and event.conversation_id != conversation_id:
                continue
            if event_type and event.event_type != event_type:
                continue

            results.append(event)

            if limit and len(results) >= limit:
                break

        return [e.to_dict() for e in results]

    def clear(self) -> None:
        self._events.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "total_events": len(self._events),
            "max_events": self._max_events,
            "oldest_event_ts": self._events[0].ts.isoformat() if self._events else None,
            "newest_event_ts": self._events[-1].ts.isoformat() if self._events else None,
        }


# Global event store instance
event_store = EventStore()
