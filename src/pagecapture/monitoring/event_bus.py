"""Event bus — decouples the capture session from consumers (CLI, dashboards, logs).

* Type-safe event types via ``EventType`` enum.
* Multiple sink pattern: a single bus emits to all registered
  ``EventSink`` implementations (JSONL stream, logger, in-memory buffer).
* Snapshot caching so late-joining consumers receive the latest state
  immediately.

Delivery is at-least-once per sink with no replay: a sink registered after
an event was emitted never sees it.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------


class EventType(str, Enum):
    """All event types emitted by capture sessions and batch runs."""

    # Capture
    PROGRESS = "progress"
    TRIM_SET = "trim_set"
    COMPLETED = "completed"

    # State machine
    STATE_CHANGED = "state_changed"

    # Batch
    BATCH_PROGRESS = "batch_progress"
    BATCH_COMPLETE = "batch_complete"

    # Info / errors
    LOG = "log"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Event payload model
# ---------------------------------------------------------------------------


class Event(BaseModel):
    """Structured event emitted by the event bus."""

    event_type: EventType
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    session_id: str = ""
    data: dict[str, Any] = Field(default_factory=dict)

    def to_jsonl(self) -> str:
        """Serialize to a single JSON line (no trailing newline)."""
        return self.model_dump_json()


# ---------------------------------------------------------------------------
# Sink protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class EventSink(Protocol):
    """Protocol for event consumers.

    Implementations may write to JSONL files, push connections,
    structured loggers, or in-memory buffers for testing.
    """

    async def handle_event(self, event: Event) -> None:
        """Process a single event."""
        ...


# ---------------------------------------------------------------------------
# Built-in sinks
# ---------------------------------------------------------------------------


class LoggingSink:
    """Emit events to the Python logger at DEBUG level."""

    def __init__(self, logger_name: str = "pagecapture.events") -> None:
        self._logger = logging.getLogger(logger_name)

    async def handle_event(self, event: Event) -> None:
        """Log the event."""
        self._logger.debug(
            "[%s] %s: %s",
            event.session_id or "?",
            event.event_type.value,
            json.dumps(event.data, default=str)[:200],
        )


class InMemorySink:
    """Collect events in a list — useful for testing."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    async def handle_event(self, event: Event) -> None:
        """Append the event to the in-memory list."""
        self.events.append(event)

    def clear(self) -> None:
        """Clear all collected events."""
        self.events.clear()

    def of_type(self, event_type: EventType) -> list[Event]:
        """Return collected events of one type, in emission order."""
        return [e for e in self.events if e.event_type == event_type]

    @property
    def count(self) -> int:
        """Return the number of collected events."""
        return len(self.events)


class JsonlSink:
    """Write events as JSONL lines to a file-like object.

    Works with ``sys.stdout``, ``sys.stderr``, or an open file handle.
    """

    def __init__(self, stream: Any) -> None:
        self._stream = stream

    async def handle_event(self, event: Event) -> None:
        """Write one JSON line to the stream."""
        self._stream.write(event.to_jsonl() + "\n")
        if hasattr(self._stream, "flush"):
            self._stream.flush()


# ---------------------------------------------------------------------------
# Event bus
# ---------------------------------------------------------------------------


class EventBus:
    """Central event dispatcher for session-to-consumer communication.

    Args:
        session_id: Optional default session ID attached to all events.
    """

    def __init__(self, session_id: str = "") -> None:
        self._session_id = session_id
        self._sinks: list[EventSink] = []

        # Snapshot for late-joining consumers
        self._latest_state: str = ""
        self._latest_count: int = 0
        self._latest_error: str = ""
        self._latest_batch: dict[str, Any] = {}
        self._started_at: float = time.monotonic()

    # ------------------------------------------------------------------
    # Sink management
    # ------------------------------------------------------------------

    def add_sink(self, sink: EventSink) -> None:
        """Register an event sink."""
        self._sinks.append(sink)

    def remove_sink(self, sink: EventSink) -> None:
        """Remove a previously registered sink."""
        self._sinks = [s for s in self._sinks if s is not sink]

    @property
    def sink_count(self) -> int:
        """Return the number of registered sinks."""
        return len(self._sinks)

    # ------------------------------------------------------------------
    # Emit
    # ------------------------------------------------------------------

    async def emit(self, event_type: EventType | str, data: dict[str, Any] | None = None) -> None:
        """Emit an event to all registered sinks.

        A failing sink is logged and skipped; it never prevents delivery to
        the remaining sinks or propagates into the emitter.

        Args:
            event_type: The event type (``EventType`` enum or raw string).
            data: Optional payload data.
        """
        # Normalise string → enum
        if isinstance(event_type, str):
            try:
                event_type = EventType(event_type)
            except ValueError:
                event_type = EventType.LOG

        payload = data or {}

        self._update_snapshot(event_type, payload)

        event = Event(
            event_type=event_type,
            session_id=self._session_id,
            data=payload,
        )

        for sink in self._sinks:
            try:
                await sink.handle_event(event)
            except Exception as exc:
                logger.warning("EventBus sink error (%s): %s", type(sink).__name__, exc)

    def _update_snapshot(self, event_type: EventType, data: dict[str, Any]) -> None:
        """Update internal snapshot cache."""
        if event_type == EventType.STATE_CHANGED:
            self._latest_state = data.get("new_state", "")
        elif event_type in (EventType.PROGRESS, EventType.COMPLETED):
            self._latest_count = data.get("count", self._latest_count)
        elif event_type == EventType.ERROR:
            self._latest_error = data.get("message", "")
        elif event_type in (EventType.BATCH_PROGRESS, EventType.BATCH_COMPLETE):
            self._latest_batch = data.get("status", {})

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def get_snapshot(self) -> dict[str, Any]:
        """Return latest state for newly connected consumers."""
        return {
            "state": self._latest_state,
            "count": self._latest_count,
            "last_error": self._latest_error,
            "batch": self._latest_batch,
            "uptime_sec": round(time.monotonic() - self._started_at, 1),
        }
