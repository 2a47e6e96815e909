"""Domain events - what changed after a successful mutation."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

EventKind = Literal[
    "note.saved",
    "note.updated",
    "note.deleted",
    "compiled_note.created",
    "compiled_note.citations_removed",
    "compiled_note.deleted",
    "friendship.requested",
    "friendship.accepted",
    "friendship.rejected",
    "friendship.removed",
]


class NoteEvent(BaseModel):
    """Event emitted once a mutation has been persisted.

    Consumed by external observers (analytics, activity feeds); the engine
    never writes side-channel data itself.
    """

    kind: EventKind
    user_id: UUID
    subject_id: UUID
    occurred_at: datetime
    payload: dict[str, Any] = Field(default_factory=dict)
