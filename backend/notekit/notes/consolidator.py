"""Incremental consolidator - folds transcript chunks into a bounded set of sections.

The text generator decides whether a chunk updates an existing section or
starts a new one. Generator failures never escape: the chunk is discarded and
the caller keeps its current sections.
"""

import logging
from collections.abc import Sequence
from typing import Any, Literal

from pydantic import BaseModel, ValidationError

from backend.notekit.config import Settings, get_settings
from backend.notekit.errors import MalformedGenerationResponseError, NotekitError
from backend.notekit.llm.client import TextGenerator
from backend.notekit.llm.parsing import parse_json_response
from backend.notekit.llm.prompts import build_consolidation_prompt, build_live_seed_prompt
from backend.notekit.models.notes import LiveNoteSeed, Section, SectionUpdate
from backend.notekit.utils.metrics import consolidation_outcomes_total

logger = logging.getLogger(__name__)


class _GeneratedUpdate(BaseModel):
    action: Literal["update", "add"]
    index: int = -1
    title: str = ""
    content: str = ""


class _GeneratedSection(BaseModel):
    title: str
    content: str


class _GeneratedSeed(BaseModel):
    title: str | None = None
    sections: list[_GeneratedSection]


def is_noise(chunk: str, min_chars: int) -> bool:
    """Whether a chunk carries too little content to consolidate.

    Only alphanumeric characters count, so whitespace, punctuation and
    filler symbols do not.
    """
    meaningful = sum(1 for ch in chunk if ch.isalnum())
    return meaningful < min_chars


def parse_section_updates(payload: Any) -> list[SectionUpdate]:
    """Convert a generated payload into section updates.

    Accepts a JSON array of {action, index, title, content} items, or an
    object holding "sections", whose entries become "add" updates.

    Raises:
        MalformedGenerationResponseError: If any part of the payload has the wrong shape
    """
    try:
        if isinstance(payload, dict) and isinstance(payload.get("sections"), list):
            seed = _GeneratedSeed.model_validate(payload)
            return [
                SectionUpdate(
                    action="add",
                    index=-1,
                    content=Section(title=s.title, content=s.content),
                )
                for s in seed.sections
            ]

        if not isinstance(payload, list):
            raise MalformedGenerationResponseError(
                f"Expected a list of section updates, got {type(payload).__name__}"
            )

        items = [_GeneratedUpdate.model_validate(item) for item in payload]
    except ValidationError as e:
        raise MalformedGenerationResponseError(f"Invalid section update: {e}") from e

    return [
        SectionUpdate(
            action=item.action,
            index=item.index if item.action == "update" else -1,
            content=Section(title=item.title, content=item.content),
        )
        for item in items
    ]


def parse_live_seed(payload: Any) -> LiveNoteSeed:
    """Convert a generated payload into the initial live note.

    Raises:
        MalformedGenerationResponseError: If the payload has the wrong shape
    """
    try:
        seed = _GeneratedSeed.model_validate(payload)
    except ValidationError as e:
        raise MalformedGenerationResponseError(f"Invalid live note seed: {e}") from e

    title = seed.title.strip() if seed.title and seed.title.strip() else None
    return LiveNoteSeed(
        title=title,
        sections=[
            Section(title=s.title.strip(), content=s.content.strip())
            for s in seed.sections
            if s.content.strip()
        ],
    )


async def consolidate(
    chunk: str,
    existing_sections: Sequence[Section],
    *,
    generator: TextGenerator,
    meeting_title: str | None = None,
    settings: Settings | None = None,
) -> LiveNoteSeed | list[SectionUpdate]:
    """Decide how a transcript chunk changes a live note.

    With no existing sections this returns a LiveNoteSeed (title plus 1-3
    sections). Otherwise it returns ordered SectionUpdate deltas to be
    applied with apply_updates.

    Noise chunks and any generator failure produce an empty result, leaving
    the caller's sections unchanged.

    Args:
        chunk: Raw transcript text
        existing_sections: Current sections of the live note
        generator: Text generator used as the decision oracle
        meeting_title: Optional running title
        settings: Settings override

    Returns:
        LiveNoteSeed for the first chunk, list of SectionUpdate afterwards
    """
    settings = settings or get_settings()
    seeding = len(existing_sections) == 0

    if is_noise(chunk, settings.min_chunk_chars):
        logger.debug(f"Skipping noise chunk ({len(chunk)} chars)")
        consolidation_outcomes_total.labels(outcome="noise").inc()
        return LiveNoteSeed() if seeding else []

    if seeding:
        prompt = build_live_seed_prompt(chunk, meeting_title)
    else:
        prompt = build_consolidation_prompt(chunk, existing_sections, meeting_title)

    try:
        text = await generator.generate(
            prompt,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            operation="consolidate",
        )
        payload = parse_json_response(text)
        result: LiveNoteSeed | list[SectionUpdate] = (
            parse_live_seed(payload) if seeding else parse_section_updates(payload)
        )
    except NotekitError as e:
        logger.warning(f"Discarding transcript chunk, consolidation failed: {e}", exc_info=True)
        consolidation_outcomes_total.labels(outcome="failed").inc()
        return LiveNoteSeed() if seeding else []

    consolidation_outcomes_total.labels(outcome="seeded" if seeding else "updated").inc()
    return result
