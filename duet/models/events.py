"""Diagnostics — an in-memory event channel for things nobody else should see.

Observer failures, runtime loads and finished executions each produce a
DiagnosticEvent. They are kept in a bounded in-memory buffer; there is no
persistence across restarts.
"""

from __future__ import annotations

import uuid
from collections import deque
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from duet.utils.clock import now_utc

DEFAULT_MAX_EVENTS = 1000


class DiagnosticEvent(BaseModel):
    """A single diagnostic record."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str = Field(
        description="Type: observer_error, runtime_loaded, runtime_load_failed, "
        "execution_complete, execution_error"
    )
    source: str = Field(description="Component that emitted this event (e.g., 'sessions.notifier')")
    session_id: str = Field(default="", description="Session the event relates to, if any")
    payload: dict[str, Any] = Field(default_factory=dict)
    error: str = Field(default="", description="Error message if this is an error event")
    duration_ms: float = Field(default=0.0, description="Duration of the operation, if applicable")
    timestamp: datetime = Field(default_factory=now_utc)


class EventBus:
    """Bounded in-memory event bus.

    Oldest events are dropped once ``max_events`` is reached.
    """

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        self._events: deque[DiagnosticEvent] = deque(maxlen=max_events)

    def emit(self, event: DiagnosticEvent) -> None:
        self._events.append(event)

    def events(
        self,
        event_type: str | None = None,
        session_id: str | None = None,
    ) -> list[DiagnosticEvent]:
        """Return stored events, oldest first, optionally filtered."""
        return [
            e for e in self._events
            if (event_type is None or e.event_type == event_type)
            and (session_id is None or e.session_id == session_id)
        ]

    def clear(self) -> None:
        self._events.clear()

    @property
    def event_count(self) -> int:
        return len(self._events)
