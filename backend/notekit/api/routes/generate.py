"""Generation endpoints - note drafts, live consolidation (SSE), cleanup and metadata."""

import json
import logging
from collections.abc import AsyncGenerator
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from backend.notekit.api.auth import get_current_context
from backend.notekit.db.context import RequestContext
from backend.notekit.errors import GenerationFailedError, MalformedGenerationResponseError
from backend.notekit.llm.client import TextGenerator, get_text_generator
from backend.notekit.models.notes import (
    LiveNoteSeed,
    NoteDraft,
    NoteMetadata,
    Section,
    TranscriptChunk,
)
from backend.notekit.notes.cleanup import cleanup_sections
from backend.notekit.notes.live import LiveNoteSession
from backend.notekit.notes.drafts import (
    generate_metadata,
    generate_note_from_transcript,
    generate_note_from_url,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notes", tags=["generate"])


class GenerateFromUrlRequest(BaseModel):
    """Request body for POST /notes/generate."""

    url: str = Field(..., min_length=1, max_length=2000)


class GenerateFromTranscriptRequest(BaseModel):
    """Request body for POST /notes/generate-from-transcript."""

    transcript: str = Field(..., min_length=1)


class GenerateLiveRequest(BaseModel):
    """Request body for POST /notes/generate-live."""

    chunk: str
    sequence_no: int = Field(0, ge=0)
    existing_sections: list[Section] = Field(default_factory=list)
    meeting_title: str | None = None
    last_sequence_no: int | None = Field(
        None, ge=0, description="sequence_no of the previous chunk the client sent"
    )


class CleanupRequest(BaseModel):
    """Request body for POST /notes/cleanup."""

    sections: list[Section] = Field(default_factory=list)


class CleanupResponse(BaseModel):
    """Response for POST /notes/cleanup."""

    sections: list[Section]


class MetadataRequest(BaseModel):
    """Request body for POST /notes/metadata."""

    sections: list[Section] = Field(default_factory=list)
    transcript: str | None = None


def _bad_gateway(e: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


def _sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


@router.post("/generate", response_model=NoteDraft)
async def generate_from_url(
    request: GenerateFromUrlRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    generator: Annotated[TextGenerator, Depends(get_text_generator)],
) -> NoteDraft:
    """Generate a note draft about the content at a URL.

    Raises:
        HTTPException: 502 if generation fails or returns malformed output
    """
    logger.info(f"[generate] user_id={ctx.user_id} url={request.url}")
    try:
        return await generate_note_from_url(request.url, generator=generator)
    except (GenerationFailedError, MalformedGenerationResponseError) as e:
        raise _bad_gateway(e) from e


@router.post("/generate-from-transcript", response_model=NoteDraft)
async def generate_from_transcript(
    request: GenerateFromTranscriptRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    generator: Annotated[TextGenerator, Depends(get_text_generator)],
) -> NoteDraft:
    """Generate a note draft from a complete transcript.

    Raises:
        HTTPException: 400 on a blank transcript, 502 if generation fails
    """
    logger.info(
        f"[generate-from-transcript] user_id={ctx.user_id} chars={len(request.transcript)}"
    )
    try:
        return await generate_note_from_transcript(request.transcript, generator=generator)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except (GenerationFailedError, MalformedGenerationResponseError) as e:
        raise _bad_gateway(e) from e


@router.post("/generate-live")
async def generate_live(
    request: GenerateLiveRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    generator: Annotated[TextGenerator, Depends(get_text_generator)],
) -> StreamingResponse:
    """Consolidate one transcript chunk and stream the resulting changes via SSE.

    Events:
        title: {"content": title} for the first chunk
        add-section / update-section: {"index": int, "content": Section}
        done: {} when the chunk is processed
        error: {"error": message} on unexpected failure

    A discarded or noise chunk produces only "done".
    """
    chunk = TranscriptChunk(text=request.chunk, sequence_no=request.sequence_no)

    async def event_generator() -> AsyncGenerator[str, None]:
        """Generate SSE events."""
        try:
            session = LiveNoteSession(
                generator=generator,
                title=request.meeting_title,
                sections=list(request.existing_sections),
                last_sequence_no=request.last_sequence_no,
            )
            result = await session.ingest(chunk)

            if isinstance(result, LiveNoteSeed):
                if result.title:
                    yield _sse("title", {"content": result.title})
                for section in result.sections:
                    yield _sse("add-section", {"index": -1, "content": section.model_dump(mode="json")})
            else:
                for update in result:
                    event = "update-section" if update.action == "update" else "add-section"
                    yield _sse(
                        event,
                        {"index": update.index, "content": update.content.model_dump(mode="json")},
                    )

            yield _sse("done", {})
        except Exception as e:
            logger.error(
                f"[generate-live] user_id={ctx.user_id} chunk={chunk.sequence_no} failed: {e}",
                exc_info=True,
            )
            yield _sse("error", {"error": "Failed to process transcript chunk"})

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup(
    request: CleanupRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    generator: Annotated[TextGenerator, Depends(get_text_generator)],
) -> CleanupResponse:
    """Consolidate sections before saving.

    Always succeeds; on any failure the input sections are returned.
    """
    sections = await cleanup_sections(request.sections, generator=generator)
    logger.info(
        f"[cleanup] user_id={ctx.user_id} {len(request.sections)} -> {len(sections)} sections"
    )
    return CleanupResponse(sections=sections)


@router.post("/metadata", response_model=NoteMetadata)
async def metadata(
    request: MetadataRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    generator: Annotated[TextGenerator, Depends(get_text_generator)],
) -> NoteMetadata:
    """Generate a title and tags from sections and/or a transcript excerpt.

    Raises:
        HTTPException: 400 if there is no content, 502 if generation fails
    """
    try:
        return await generate_metadata(request.sections, request.transcript, generator=generator)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except (GenerationFailedError, MalformedGenerationResponseError) as e:
        logger.warning(f"[metadata] user_id={ctx.user_id} failed: {e}")
        raise _bad_gateway(e) from e
