"""Multi-source compiler - synthesizes one compiled note from several source notes.

Correctness over availability: a generator failure or malformed response
fails the whole call and nothing is persisted.
"""

import logging
import uuid
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from backend.notekit.config import Settings, get_settings
from backend.notekit.db.context import RequestContext
from backend.notekit.db.repositories import NoteStore
from backend.notekit.errors import (
    CompilationFailedError,
    GenerationFailedError,
    InsufficientSourcesError,
    MalformedGenerationResponseError,
)
from backend.notekit.events import EventSink, emit_safely
from backend.notekit.llm.client import TextGenerator
from backend.notekit.llm.parsing import parse_json_response
from backend.notekit.llm.prompts import COMPILE_SYSTEM_PROMPT, build_compile_prompt
from backend.notekit.models.compiled import CompiledNote
from backend.notekit.models.events import NoteEvent
from backend.notekit.models.notes import Note, Section
from backend.notekit.notes.sections import dedupe_sections
from backend.notekit.utils.metrics import compile_outcomes_total

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class CompileOutcome:
    """Result of a compile call."""

    note: CompiledNote
    is_duplicate: bool = False


class _CompiledSection(BaseModel):
    title: str
    content: str
    source_ids: list[Any] | None = Field(
        default=None, validation_alias=AliasChoices("source_ids", "source_note_ids")
    )


class _CompiledPayload(BaseModel):
    title: str | None = None
    sections: list[_CompiledSection] = Field(..., min_length=1)


def aggregate_tags(notes: Sequence[Note], limit: int = 5) -> list[str]:
    """Pick the most relevant tags of the source notes.

    Tags are ranked by the number of notes carrying them (descending), then
    alphabetically. Tags shared by several notes come first; the remaining
    slots up to limit are filled with the best-ranked single-note tags.

    Args:
        notes: Source notes
        limit: Maximum number of tags

    Returns:
        Selected tags in rank order
    """
    counts = Counter(tag for note in notes for tag in dict.fromkeys(note.tags))
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0].casefold(), item[0]))

    shared = [tag for tag, count in ranked if count > 1]
    single = [tag for tag, count in ranked if count == 1]
    return (shared + single)[:limit]


def _parse_source_ids(raw: list[Any] | None, allowed: Sequence[uuid.UUID]) -> list[uuid.UUID]:
    """Resolve generated source ids against the compile inputs.

    Unknown or unparsable ids are dropped; a missing or fully unknown list
    falls back to every input id so a section is never under-attributed.
    """
    if raw is None:
        return list(allowed)

    allowed_set = set(allowed)
    resolved: list[uuid.UUID] = []
    for value in raw:
        try:
            note_id = uuid.UUID(str(value))
        except ValueError:
            continue
        if note_id in allowed_set:
            resolved.append(note_id)

    if not resolved:
        return list(allowed)

    # Keep citation order stable with the inputs
    order = {nid: i for i, nid in enumerate(allowed)}
    return sorted(dict.fromkeys(resolved), key=order.__getitem__)


def parse_compiled_payload(
    payload: Any, source_ids: Sequence[uuid.UUID]
) -> tuple[str | None, list[Section]]:
    """Convert generated compile output into a title and attributed sections.

    Raises:
        MalformedGenerationResponseError: If the payload has the wrong shape
    """
    try:
        parsed = _CompiledPayload.model_validate(payload)
    except ValidationError as e:
        raise MalformedGenerationResponseError(f"Invalid compiled note: {e}") from e

    sections = [
        Section(
            title=s.title.strip(),
            content=s.content.strip(),
            source_ids=_parse_source_ids(s.source_ids, source_ids),
        )
        for s in parsed.sections
    ]
    title = parsed.title.strip() if parsed.title and parsed.title.strip() else None
    return title, dedupe_sections(sections)


async def find_recent_duplicate(
    store: NoteStore,
    ctx: RequestContext,
    source_ids: Sequence[uuid.UUID],
    *,
    now: datetime,
    window: timedelta,
) -> CompiledNote | None:
    """Find a compiled note of the same source set created within the window.

    Args:
        store: Note store
        ctx: Request context (owner scoping)
        source_ids: Source note IDs of the requested compilation
        now: Reference time
        window: Trailing dedup window

    Returns:
        Most recent matching compiled note, or None
    """
    wanted = sorted(source_ids)
    recent = await store.list_compiled_notes(ctx, created_since=now - window)
    for note in recent:
        if sorted(note.source_note_ids) == wanted:
            return note
    return None


def _unique_sources(sources: Sequence[Note]) -> list[Note]:
    seen: set[uuid.UUID] = set()
    unique: list[Note] = []
    for note in sources:
        if note.id in seen:
            continue
        seen.add(note.id)
        unique.append(note)
    return unique


async def compile_notes(
    sources: Sequence[Note],
    ctx: RequestContext,
    *,
    generator: TextGenerator,
    store: NoteStore,
    events: EventSink | None = None,
    settings: Settings | None = None,
    clock: Clock = utc_now,
) -> CompileOutcome:
    """Compile source notes into one compiled note with per-section citations.

    Steps:
        1. Dedup guard: a compiled note of the same source set created by the
           same user within the dedup window is returned instead.
        2. Synthesis with the text generator; sections without source ids
           are attributed to every source.
        3. Tag aggregation across sources.
        4. Dedup guard again (absorbs a retry racing an in-flight call), then
           persist with source_note_ids in input order.

    Cancelling the awaiting task propagates and persists nothing.

    Args:
        sources: Source notes, in citation order
        ctx: Request context (owner)
        generator: Text generator
        store: Note store
        events: Optional event sink
        settings: Settings override
        clock: Time source

    Returns:
        CompileOutcome with the compiled note and whether it already existed

    Raises:
        InsufficientSourcesError: If fewer than two distinct sources are given
        CompilationFailedError: If synthesis fails or returns malformed output
    """
    settings = settings or get_settings()
    unique = _unique_sources(sources)

    if len(unique) < 2:
        raise InsufficientSourcesError(
            f"At least 2 distinct notes are required to compile, got {len(unique)}"
        )

    source_ids = [note.id for note in unique]
    window = timedelta(seconds=settings.compile_dedup_window_seconds)

    existing = await find_recent_duplicate(store, ctx, source_ids, now=clock(), window=window)
    if existing is not None:
        logger.info(f"[compile] user_id={ctx.user_id} returning recent duplicate {existing.id}")
        compile_outcomes_total.labels(outcome="duplicate").inc()
        return CompileOutcome(note=existing, is_duplicate=True)

    try:
        text = await generator.generate(
            build_compile_prompt(unique),
            system=COMPILE_SYSTEM_PROMPT,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            operation="compile",
        )
        payload = parse_json_response(text)
        title, sections = parse_compiled_payload(payload, source_ids)
    except (GenerationFailedError, MalformedGenerationResponseError) as e:
        logger.error(f"[compile] user_id={ctx.user_id} failed: {e}")
        compile_outcomes_total.labels(outcome="failed").inc()
        raise CompilationFailedError(f"Failed to compile notes: {e}") from e

    existing = await find_recent_duplicate(store, ctx, source_ids, now=clock(), window=window)
    if existing is not None:
        logger.info(f"[compile] user_id={ctx.user_id} concurrent duplicate {existing.id}")
        compile_outcomes_total.labels(outcome="duplicate").inc()
        return CompileOutcome(note=existing, is_duplicate=True)

    created_at = clock()
    compiled = CompiledNote(
        id=uuid.uuid4(),
        owner_id=ctx.user_id,
        title=title or f"Compiled from {len(unique)} notes",
        sections=sections,
        source_note_ids=source_ids,
        tags=aggregate_tags(unique, limit=settings.max_compiled_tags),
        created_at=created_at,
        updated_at=created_at,
    )
    compiled = await store.insert_compiled_note(compiled)

    logger.info(
        f"[compile] user_id={ctx.user_id} created {compiled.id} "
        f"({len(compiled.sections)} sections, {len(source_ids)} sources, tags={compiled.tags})"
    )
    compile_outcomes_total.labels(outcome="created").inc()

    await emit_safely(
        events,
        NoteEvent(
            kind="compiled_note.created",
            user_id=ctx.user_id,
            subject_id=compiled.id,
            occurred_at=created_at,
            payload={"source_note_ids": [str(nid) for nid in source_ids]},
        ),
    )

    return CompileOutcome(note=compiled, is_duplicate=False)
