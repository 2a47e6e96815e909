"""Compiled note endpoints - compile, list, read with citations, delete."""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from backend.notekit.api.auth import get_current_context
from backend.notekit.api.deps import get_note_store
from backend.notekit.citations.render import count_existing_references, render_section_citations
from backend.notekit.db.context import RequestContext
from backend.notekit.db.repositories import NoteStore
from backend.notekit.errors import (
    CompilationFailedError,
    InsufficientSourcesError,
    NoteNotFoundError,
)
from backend.notekit.events import EventSink, emit_safely, get_event_sink
from backend.notekit.llm.client import TextGenerator, get_text_generator
from backend.notekit.models.compiled import CompiledNote, SectionCitations
from backend.notekit.models.events import NoteEvent
from backend.notekit.notes.compiler import compile_notes, utc_now
from backend.notekit.notes.service import resolve_sources

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/compiled-notes", tags=["compiled-notes"])


class CompileRequest(BaseModel):
    """Request body for POST /compiled-notes."""

    note_ids: list[uuid.UUID] = Field(..., description="Source notes, in citation order")


class CompileResponse(BaseModel):
    """Response for POST /compiled-notes."""

    compiled_note: CompiledNote
    is_duplicate: bool


class CompiledNoteListResponse(BaseModel):
    """Response for GET /compiled-notes."""

    compiled_notes: list[CompiledNote]


class CompiledNoteDetailResponse(BaseModel):
    """Response for GET /compiled-notes/{compiled_id}."""

    compiled_note: CompiledNote
    citations: list[SectionCitations]
    existing_references: int


@router.post("", response_model=CompileResponse, status_code=status.HTTP_201_CREATED)
async def create_compiled_note(
    request: CompileRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
    generator: Annotated[TextGenerator, Depends(get_text_generator)],
    events: Annotated[EventSink, Depends(get_event_sink)],
) -> CompileResponse | JSONResponse:
    """Compile two or more readable notes into one compiled note.

    A retry of the same source set within the dedup window returns the
    existing compiled note with is_duplicate set.

    Raises:
        HTTPException: 400 with fewer than 2 notes, 404 if a note is not readable
    """
    if len(set(request.note_ids)) < 2:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="At least 2 notes required"
        )

    try:
        sources = await resolve_sources(store, ctx, request.note_ids)
        outcome = await compile_notes(
            sources, ctx, generator=generator, store=store, events=events
        )
    except InsufficientSourcesError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except NoteNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except CompilationFailedError as e:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "compilation_failed", "detail": str(e)},
        )

    return CompileResponse(compiled_note=outcome.note, is_duplicate=outcome.is_duplicate)


@router.get("", response_model=CompiledNoteListResponse)
async def list_compiled_notes(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
) -> CompiledNoteListResponse:
    """List the current user's compiled notes, newest first."""
    return CompiledNoteListResponse(compiled_notes=await store.list_compiled_notes(ctx))


@router.get("/{compiled_id}", response_model=CompiledNoteDetailResponse)
async def get_compiled_note(
    compiled_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
) -> CompiledNoteDetailResponse:
    """Get a compiled note with its rendered citations.

    Citations to notes that no longer exist are reported as stale ids.

    Raises:
        HTTPException: 404 if the compiled note is missing or not owned
    """
    compiled = await store.get_compiled_note(compiled_id, ctx)
    if compiled is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Compiled note not found")

    existing = await store.get_notes(compiled.source_note_ids)
    titles = {note.id: note.title for note in existing}

    return CompiledNoteDetailResponse(
        compiled_note=compiled,
        citations=render_section_citations(compiled, titles),
        existing_references=count_existing_references(compiled, titles),
    )


@router.delete("/{compiled_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_compiled_note(
    compiled_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
    events: Annotated[EventSink, Depends(get_event_sink)],
) -> None:
    """Delete an owned compiled note.

    Raises:
        HTTPException: 404 if the compiled note is missing or not owned
    """
    if not await store.delete_compiled_note(compiled_id, ctx):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Compiled note not found")

    await emit_safely(
        events,
        NoteEvent(
            kind="compiled_note.deleted",
            user_id=ctx.user_id,
            subject_id=compiled_id,
            occurred_at=utc_now(),
        ),
    )
