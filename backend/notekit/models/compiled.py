"""Compiled note models - notes synthesized from several source notes."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from backend.notekit.models.notes import Section


class CompiledNote(BaseModel):
    """Derived note synthesized from two or more source notes.

    source_note_ids defines citation numbering: the citation number of a
    source is its 1-based position in this list.
    """

    id: UUID
    owner_id: UUID
    title: str
    sections: list[Section] = Field(default_factory=list)
    source_note_ids: list[UUID] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @field_validator("source_note_ids")
    @classmethod
    def _dedupe_source_note_ids(cls, v: list[UUID]) -> list[UUID]:
        return list(dict.fromkeys(v))


class CitationRef(BaseModel):
    """A resolved citation as displayed next to a section."""

    number: int = Field(..., ge=1)
    note_id: UUID
    title: str | None = None


class SectionCitations(BaseModel):
    """Citations of one compiled section.

    stale_ids lists cited notes that no longer exist; they are omitted from
    citations.
    """

    section_index: int
    citations: list[CitationRef] = Field(default_factory=list)
    stale_ids: list[UUID] = Field(default_factory=list)
