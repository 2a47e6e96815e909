"""Event sinks - observers of domain events emitted after successful mutations."""

import logging
from typing import Protocol

from backend.notekit.models.events import NoteEvent

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Consumer of domain events."""

    async def emit(self, event: NoteEvent) -> None:
        """Deliver an event. Must not raise into the mutation that produced it."""
        ...


class LoggingEventSink:
    """Event sink that writes events to the application log."""

    async def emit(self, event: NoteEvent) -> None:
        """Log the event with its structured payload."""
        logger.info(
            f"Event: {event.kind} subject={event.subject_id}",
            extra={"structured": event.model_dump(mode="json")},
        )


class InMemoryEventSink:
    """Event sink that keeps events in a list."""

    def __init__(self) -> None:
        self.events: list[NoteEvent] = []

    async def emit(self, event: NoteEvent) -> None:
        """Record the event."""
        self.events.append(event)

    def kinds(self) -> list[str]:
        """Kinds of recorded events, in emission order."""
        return [e.kind for e in self.events]


async def emit_safely(sink: EventSink | None, event: NoteEvent) -> None:
    """Emit an event, logging and suppressing observer failures."""
    if sink is None:
        return
    try:
        await sink.emit(event)
    except Exception as e:
        logger.error(f"Event sink failed for {event.kind}: {e}", exc_info=True)


async def get_event_sink() -> EventSink:
    """FastAPI dependency returning the application event sink."""
    return LoggingEventSink()
