"""Cleanup pass - best-effort consolidation of sections before saving.

Fail-open: any failure returns the input sections unchanged, so cleanup
never blocks a save.
"""

import logging
from collections.abc import Sequence
from typing import Any
from uuid import UUID

from backend.notekit.config import Settings, get_settings
from backend.notekit.llm.client import TextGenerator
from backend.notekit.llm.parsing import parse_json_response
from backend.notekit.llm.prompts import build_cleanup_prompt
from backend.notekit.models.notes import Section
from backend.notekit.notes.sections import dedupe_sections
from backend.notekit.utils.metrics import cleanup_outcomes_total

logger = logging.getLogger(__name__)


def inherit_source_ids(merged_from: Any, originals: Sequence[Section]) -> list[UUID]:
    """Source ids a cleaned section inherits from the sections it was merged from.

    Args:
        merged_from: 1-based indexes of original sections as reported by the generator
        originals: Sections passed to cleanup

    Returns:
        Union of the referenced sections' source_ids in original order, or of
        all sections' source_ids when merged_from is missing or unusable
    """
    indexes: list[int] = []
    if isinstance(merged_from, list):
        indexes = [
            i - 1
            for i in merged_from
            if isinstance(i, int) and not isinstance(i, bool) and 1 <= i <= len(originals)
        ]

    chosen = [originals[i] for i in sorted(set(indexes))] if indexes else list(originals)
    return list(dict.fromkeys(sid for section in chosen for sid in section.source_ids))


def validate_cleaned_sections(payload: Any, originals: Sequence[Section]) -> list[Section]:
    """Keep generated elements that have a non-empty title and content.

    Args:
        payload: Decoded generator output
        originals: Sections passed to cleanup

    Returns:
        Valid cleaned sections (possibly empty)
    """
    if not isinstance(payload, list):
        return []

    cleaned: list[Section] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        content = item.get("content")
        if not isinstance(title, str) or not title.strip():
            continue
        if not isinstance(content, str) or not content.strip():
            continue
        cleaned.append(
            Section(
                title=title.strip(),
                content=content.strip(),
                source_ids=inherit_source_ids(item.get("merged_from"), originals),
            )
        )
    return dedupe_sections(cleaned)


async def cleanup_sections(
    sections: Sequence[Section],
    *,
    generator: TextGenerator,
    settings: Settings | None = None,
) -> list[Section]:
    """Merge similar sections, drop fragments and cross-section repetition.

    The result replaces the input. Section source_ids are carried over from
    the sections each cleaned section was merged from.

    Args:
        sections: Sections to clean
        generator: Text generator
        settings: Settings override

    Returns:
        Cleaned sections, or the original sections if cleanup fails
    """
    if not sections:
        return list(sections)

    settings = settings or get_settings()

    try:
        text = await generator.generate(
            build_cleanup_prompt(sections),
            temperature=settings.cleanup_temperature,
            max_tokens=settings.cleanup_max_tokens,
            operation="cleanup",
        )
        payload = parse_json_response(text)
    except Exception as e:
        logger.warning(f"Cleanup failed, keeping original sections: {e}", exc_info=True)
        cleanup_outcomes_total.labels(outcome="failed").inc()
        return list(sections)

    cleaned = validate_cleaned_sections(payload, sections)
    if not cleaned:
        logger.warning("No valid sections after cleanup, keeping original sections")
        cleanup_outcomes_total.labels(outcome="invalid").inc()
        return list(sections)

    logger.info(f"Consolidated {len(sections)} sections into {len(cleaned)} sections")
    cleanup_outcomes_total.labels(outcome="cleaned").inc()
    return cleaned
