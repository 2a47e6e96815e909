"""Models package - re-exports for convenience."""

from backend.notekit.models.compiled import CitationRef, CompiledNote, SectionCitations
from backend.notekit.models.events import EventKind, NoteEvent
from backend.notekit.models.friends import Friendship, FriendshipStatus
from backend.notekit.models.notes import (
    DocumentContent,
    FreeformContent,
    LiveNoteSeed,
    Note,
    NoteDraft,
    NoteMetadata,
    Section,
    SectionsContent,
    SectionUpdate,
    TranscriptChunk,
    parse_document_content,
)

__all__ = [
    # Notes
    "Section",
    "SectionsContent",
    "FreeformContent",
    "DocumentContent",
    "parse_document_content",
    "Note",
    "NoteDraft",
    "NoteMetadata",
    "TranscriptChunk",
    "SectionUpdate",
    "LiveNoteSeed",
    # Compiled notes
    "CompiledNote",
    "CitationRef",
    "SectionCitations",
    # Friends
    "Friendship",
    "FriendshipStatus",
    # Events
    "EventKind",
    "NoteEvent",
]
