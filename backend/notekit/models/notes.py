"""Note domain models: sections, note content, notes and live-generation deltas."""

from datetime import datetime
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter, field_validator


class Section(BaseModel):
    """Titled block of text within a note.

    source_ids is empty for authored sections and populated only for
    compiled notes, where it lists the notes that contributed to the section.
    """

    title: str
    content: str
    source_ids: list[UUID] = Field(default_factory=list)

    @field_validator("source_ids")
    @classmethod
    def _dedupe_source_ids(cls, v: list[UUID]) -> list[UUID]:
        return list(dict.fromkeys(v))

    def key(self) -> tuple[str, str]:
        """Identity used for exact-duplicate detection."""
        return (self.title, self.content)


class SectionsContent(BaseModel):
    """Note body made of ordered sections."""

    kind: Literal["sections"] = "sections"
    sections: list[Section] = Field(default_factory=list)


class FreeformContent(BaseModel):
    """Note body stored as a single block of text."""

    kind: Literal["freeform"] = "freeform"
    text: str


DocumentContent = Annotated[SectionsContent | FreeformContent, Field(discriminator="kind")]

_content_adapter: TypeAdapter[SectionsContent | FreeformContent] = TypeAdapter(DocumentContent)


def parse_document_content(raw: Any) -> SectionsContent | FreeformContent:
    """Validate stored note content into the tagged variant.

    Accepts the tagged shape as well as older untagged shapes: a
    {"sections": [...]} object, a bare list of sections, or a bare string.

    Raises:
        pydantic.ValidationError: If the content matches none of the shapes
    """
    if isinstance(raw, (SectionsContent, FreeformContent)):
        return raw
    if isinstance(raw, str):
        return FreeformContent(text=raw)
    if isinstance(raw, list):
        return SectionsContent(sections=raw)
    if isinstance(raw, dict) and "kind" not in raw:
        if "sections" in raw:
            return SectionsContent(sections=raw["sections"] or [])
        if "text" in raw:
            return FreeformContent(text=raw["text"])
    return _content_adapter.validate_python(raw)


class Note(BaseModel):
    """A user-authored note (source document)."""

    id: UUID
    owner_id: UUID
    title: str
    content: DocumentContent
    tags: list[str] = Field(default_factory=list)
    source_url: str | None = None
    source_type: str | None = None
    is_public: bool = False
    created_at: datetime
    updated_at: datetime

    @field_validator("content", mode="before")
    @classmethod
    def _parse_content(cls, v: Any) -> Any:
        return parse_document_content(v)

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(tag.strip() for tag in v if tag and tag.strip()))

    @property
    def sections(self) -> list[Section]:
        """Sections of the note; empty for freeform content."""
        if isinstance(self.content, SectionsContent):
            return self.content.sections
        return []

    def render_text(self) -> str:
        """Plain-text rendering used when the note is fed to the text generator."""
        if isinstance(self.content, FreeformContent):
            return self.content.text
        return "\n\n".join(f"## {s.title}\n{s.content}" for s in self.content.sections)


class NoteDraft(BaseModel):
    """Generated but not yet persisted note."""

    title: str
    tags: list[str] = Field(default_factory=list)
    sections: list[Section] = Field(default_factory=list)


class NoteMetadata(BaseModel):
    """Generated title and tags for a note."""

    title: str
    tags: list[str] = Field(default_factory=list)


class TranscriptChunk(BaseModel):
    """One unit of streaming transcript text."""

    text: str
    sequence_no: int = Field(0, ge=0)


class SectionUpdate(BaseModel):
    """Incremental change proposed for a live note.

    For "update", index addresses an existing section. For "add", index is
    ignored (conventionally -1).
    """

    action: Literal["update", "add"]
    index: int = -1
    content: Section


class LiveNoteSeed(BaseModel):
    """Initial title and sections produced from the first transcript chunk."""

    title: str | None = None
    sections: list[Section] = Field(default_factory=list)
