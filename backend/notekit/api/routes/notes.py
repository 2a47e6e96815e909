"""Note endpoints - save, list, read, edit, delete and ask questions about notes."""

import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, ValidationError

from backend.notekit.api.auth import get_current_context
from backend.notekit.api.deps import get_note_store
from backend.notekit.db.context import RequestContext
from backend.notekit.db.repositories import NoteStore
from backend.notekit.errors import (
    GenerationFailedError,
    MalformedGenerationResponseError,
    NoteNotFoundError,
)
from backend.notekit.events import EventSink, get_event_sink
from backend.notekit.llm.client import TextGenerator, get_text_generator
from backend.notekit.models.notes import Note, NoteDraft, Section, parse_document_content
from backend.notekit.notes import service
from backend.notekit.notes.drafts import answer_question

router = APIRouter(prefix="/notes", tags=["notes"])


class SaveNoteRequest(BaseModel):
    """Request body for POST /notes."""

    title: str = Field(..., min_length=1, max_length=300)
    tags: list[str] = Field(default_factory=list)
    sections: list[Section] = Field(default_factory=list)
    source_url: str | None = None
    source_type: str | None = Field(None, description="url, transcript, live or manual")
    is_public: bool = False


class UpdateNoteRequest(BaseModel):
    """Request body for PATCH /notes/{note_id}; only given fields change."""

    title: str | None = Field(None, min_length=1, max_length=300)
    tags: list[str] | None = None
    content: Any | None = Field(None, description="Tagged content, a section list or text")
    is_public: bool | None = None


class QnARequest(BaseModel):
    """Request body for POST /notes/{note_id}/qna."""

    question: str = Field(..., min_length=1, max_length=2000)


class QnAResponse(BaseModel):
    """Response for POST /notes/{note_id}/qna."""

    answer: str


class NoteListResponse(BaseModel):
    """Response for GET /notes."""

    notes: list[Note]


class DeleteNoteResponse(BaseModel):
    """Response for DELETE /notes/{note_id}."""

    deleted: bool
    compiled_notes_updated: int


@router.post("", response_model=Note, status_code=status.HTTP_201_CREATED)
async def save_note(
    request: SaveNoteRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
    events: Annotated[EventSink, Depends(get_event_sink)],
) -> Note:
    """Save a note for the current user.

    Args:
        request: Note fields
        ctx: Request context (user_id)
        store: Note store
        events: Event sink

    Returns:
        Saved note
    """
    draft = NoteDraft(title=request.title, tags=request.tags, sections=request.sections)
    return await service.save_note(
        store,
        ctx,
        draft,
        source_url=request.source_url,
        source_type=request.source_type,
        is_public=request.is_public,
        events=events,
    )


@router.get("", response_model=NoteListResponse)
async def list_notes(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
) -> NoteListResponse:
    """List the current user's notes, newest first."""
    return NoteListResponse(notes=await store.list_notes(ctx.user_id))


@router.get("/{note_id}", response_model=Note)
async def get_note(
    note_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
) -> Note:
    """Get a note owned by the user, public, or owned by an accepted friend.

    Raises:
        HTTPException: 404 if the note is missing or not readable
    """
    try:
        return await service.get_readable_note(store, ctx, note_id)
    except NoteNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.post("/{note_id}/qna", response_model=QnAResponse)
async def ask_question(
    note_id: uuid.UUID,
    request: QnARequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
    generator: Annotated[TextGenerator, Depends(get_text_generator)],
) -> QnAResponse:
    """Answer a question about a readable note.

    Raises:
        HTTPException: 404 if the note is not readable, 400 on a blank
            question, 502 if generation fails
    """
    try:
        note = await service.get_readable_note(store, ctx, note_id)
        answer = await answer_question(request.question, note, generator=generator)
    except NoteNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except (GenerationFailedError, MalformedGenerationResponseError) as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    return QnAResponse(answer=answer)


@router.patch("/{note_id}", response_model=Note)
async def update_note(
    note_id: uuid.UUID,
    request: UpdateNoteRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
    events: Annotated[EventSink, Depends(get_event_sink)],
) -> Note:
    """Edit title, tags, content or visibility of an owned note.

    Raises:
        HTTPException: 404 if the note is missing or not owned, 422 on bad content
    """
    patch = request.model_dump(exclude_unset=True, exclude_none=True)
    if "content" in patch:
        try:
            patch["content"] = parse_document_content(patch["content"]).model_dump(mode="json")
        except ValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Invalid note content: {e.error_count()} error(s)",
            ) from e

    try:
        return await service.update_note(store, ctx, note_id, patch, events)
    except NoteNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.delete("/{note_id}", response_model=DeleteNoteResponse)
async def delete_note(
    note_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
    events: Annotated[EventSink, Depends(get_event_sink)],
) -> DeleteNoteResponse:
    """Delete an owned note and strip it from the user's compiled notes.

    Raises:
        HTTPException: 404 if the note is missing or not owned
    """
    try:
        updated = await service.delete_note(store, ctx, note_id, events)
    except NoteNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    return DeleteNoteResponse(deleted=True, compiled_notes_updated=updated)
