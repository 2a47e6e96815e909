"""Note draft generation from URLs, full transcripts, and existing content, plus note QnA.

Unlike consolidation and cleanup, these operations raise typed errors; the
caller decides how to surface them.
"""

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from backend.notekit.config import Settings, get_settings
from backend.notekit.errors import MalformedGenerationResponseError
from backend.notekit.llm.client import TextGenerator
from backend.notekit.llm.parsing import parse_json_response
from backend.notekit.llm.prompts import (
    NOTE_TAKER_SYSTEM_PROMPT,
    QNA_SYSTEM_PROMPT,
    build_metadata_prompt,
    build_qna_prompt,
    build_transcript_notes_prompt,
    build_url_notes_prompt,
)
from backend.notekit.models.notes import Note, NoteDraft, NoteMetadata, Section
from backend.notekit.notes.sections import dedupe_sections

logger = logging.getLogger(__name__)


class _DraftSection(BaseModel):
    title: str
    content: str


class _DraftPayload(BaseModel):
    title: str = Field(..., min_length=1)
    tags: list[str] = Field(default_factory=list)
    sections: list[_DraftSection] = Field(default_factory=list)


class _MetadataPayload(BaseModel):
    title: str = Field(..., min_length=1)
    tags: list[str]


def parse_note_draft(payload: Any) -> NoteDraft:
    """Validate a generated note draft.

    Raises:
        MalformedGenerationResponseError: If the payload has the wrong shape
    """
    try:
        parsed = _DraftPayload.model_validate(payload)
    except ValidationError as e:
        raise MalformedGenerationResponseError(f"Invalid note draft: {e}") from e

    sections = [
        Section(title=s.title.strip(), content=s.content.strip())
        for s in parsed.sections
        if s.content.strip()
    ]
    return NoteDraft(
        title=parsed.title.strip(),
        tags=list(dict.fromkeys(t.strip() for t in parsed.tags if t.strip())),
        sections=dedupe_sections(sections),
    )


async def _generate_draft(
    prompt: str, *, generator: TextGenerator, settings: Settings, operation: str
) -> NoteDraft:
    text = await generator.generate(
        prompt,
        system=NOTE_TAKER_SYSTEM_PROMPT,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        operation=operation,
    )
    draft = parse_note_draft(parse_json_response(text))
    logger.info(f"[{operation}] generated '{draft.title}' with {len(draft.sections)} sections")
    return draft


async def generate_note_from_url(
    url: str, *, generator: TextGenerator, settings: Settings | None = None
) -> NoteDraft:
    """Generate a note draft about the content at a URL.

    Raises:
        GenerationFailedError: If the generator call fails
        MalformedGenerationResponseError: If the response cannot be parsed
    """
    settings = settings or get_settings()
    return await _generate_draft(
        build_url_notes_prompt(url),
        generator=generator,
        settings=settings,
        operation="generate_url",
    )


async def generate_note_from_transcript(
    transcript: str, *, generator: TextGenerator, settings: Settings | None = None
) -> NoteDraft:
    """Generate a note draft from a complete meeting transcript.

    Raises:
        ValueError: If the transcript is blank
        GenerationFailedError: If the generator call fails
        MalformedGenerationResponseError: If the response cannot be parsed
    """
    if not transcript.strip():
        raise ValueError("Transcript is empty")

    settings = settings or get_settings()
    return await _generate_draft(
        build_transcript_notes_prompt(transcript),
        generator=generator,
        settings=settings,
        operation="generate_transcript",
    )


def build_content_summary(
    sections: Sequence[Section], transcript: str | None, *, preview_chars: int
) -> str:
    """Summarize note content for metadata generation.

    Sections are listed with 1-based numbers; the transcript is cut to
    preview_chars with a trailing ellipsis.
    """
    summary = ""
    if sections:
        summary = "Note Sections:\n" + "".join(
            f"{idx}. {s.title}\n{s.content}\n\n" for idx, s in enumerate(sections, start=1)
        )

    if transcript and transcript.strip():
        preview = (
            transcript[:preview_chars] + "..." if len(transcript) > preview_chars else transcript
        )
        summary += f"\nMeeting Transcript (excerpt):\n{preview}"

    return summary


async def generate_metadata(
    sections: Sequence[Section],
    transcript: str | None = None,
    *,
    generator: TextGenerator,
    settings: Settings | None = None,
) -> NoteMetadata:
    """Generate a title and 3-5 tags for note content.

    Args:
        sections: Note sections (may be empty)
        transcript: Optional transcript, only an excerpt is used
        generator: Text generator
        settings: Settings override

    Returns:
        Generated metadata

    Raises:
        ValueError: If there is no content to summarize
        GenerationFailedError: If the generator call fails
        MalformedGenerationResponseError: If the response cannot be parsed
    """
    settings = settings or get_settings()
    summary = build_content_summary(
        sections, transcript, preview_chars=settings.transcript_preview_chars
    )
    if not summary.strip():
        raise ValueError("No content provided to generate metadata")

    text = await generator.generate(
        build_metadata_prompt(summary),
        temperature=settings.llm_temperature,
        max_tokens=settings.metadata_max_tokens,
        operation="metadata",
    )
    payload = parse_json_response(text)

    try:
        parsed = _MetadataPayload.model_validate(payload)
    except ValidationError as e:
        raise MalformedGenerationResponseError(f"Invalid metadata: {e}") from e

    return NoteMetadata(
        title=parsed.title.strip(),
        tags=list(dict.fromkeys(t.strip() for t in parsed.tags if t.strip())),
    )


async def answer_question(
    question: str,
    note: Note,
    *,
    generator: TextGenerator,
    settings: Settings | None = None,
) -> str:
    """Answer a question about a note's content.

    Raises:
        ValueError: If the question is blank
        GenerationFailedError: If the generator call fails
        MalformedGenerationResponseError: If the answer is empty
    """
    if not question.strip():
        raise ValueError("Question is empty")

    settings = settings or get_settings()
    text = await generator.generate(
        build_qna_prompt(question.strip(), note),
        system=QNA_SYSTEM_PROMPT,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        operation="qna",
    )

    answer = text.strip()
    if not answer:
        raise MalformedGenerationResponseError("Empty answer")
    logger.info(f"[qna] answered question on note {note.id} ({len(answer)} chars)")
    return answer
