"""Section store operations - pure functions over an ordered list of sections.

Invariant: a section list produced here never holds two sections with
identical (title, content).
"""

import logging
from collections.abc import Sequence

from backend.notekit.models.notes import Section, SectionUpdate

logger = logging.getLogger(__name__)


def merge_section_content(existing: str, new: str) -> str:
    """Fold new content into a section's existing content.

    Case-insensitive equality or containment is a no-op, so applying the
    same content twice never grows the section.

    Args:
        existing: Current section content
        new: Incoming content

    Returns:
        Merged content, separated by a blank line when appended
    """
    incoming = new.strip()
    if not incoming:
        return existing

    if incoming.lower() == existing.strip().lower():
        return existing

    if incoming.lower() in existing.lower():
        return existing

    if not existing.strip():
        return incoming

    return f"{existing}\n\n{incoming}"


def dedupe_sections(sections: Sequence[Section]) -> list[Section]:
    """Drop exact (title, content) duplicates, keeping the first occurrence."""
    seen: set[tuple[str, str]] = set()
    result: list[Section] = []
    for section in sections:
        key = section.key()
        if key in seen:
            continue
        seen.add(key)
        result.append(section)
    return result


def _has_key(sections: Sequence[Section], key: tuple[str, str], skip: int | None = None) -> bool:
    return any(s.key() == key for i, s in enumerate(sections) if i != skip)


def apply_updates(sections: Sequence[Section], updates: Sequence[SectionUpdate]) -> list[Section]:
    """Apply consolidation updates to a section list.

    - "update" with an in-range index merges content into that section and
      replaces its title only when the new title is non-empty. Out-of-range
      indexes are dropped.
    - "add" appends the section unless an identical one already exists or
      its content is empty.

    The input list is not mutated.

    Args:
        sections: Current sections
        updates: Ordered updates to apply

    Returns:
        New section list
    """
    result = dedupe_sections(sections)

    for update in updates:
        if update.action == "update":
            if not 0 <= update.index < len(result):
                logger.debug(
                    f"Dropping update for out-of-range index {update.index} "
                    f"({len(result)} sections)"
                )
                continue

            current = result[update.index]
            merged = Section(
                title=update.content.title.strip() or current.title,
                content=merge_section_content(current.content, update.content.content),
                source_ids=current.source_ids,
            )
            if merged.key() == current.key():
                continue
            if _has_key(result, merged.key(), skip=update.index):
                logger.debug(f"Dropping update that would duplicate a section: {merged.title!r}")
                continue
            result[update.index] = merged

        else:
            candidate = Section(
                title=update.content.title.strip(),
                content=update.content.content.strip(),
                source_ids=update.content.source_ids,
            )
            if not candidate.content:
                continue
            if _has_key(result, candidate.key()):
                logger.debug(f"Skipping duplicate section: {candidate.title!r}")
                continue
            result.append(candidate)

    return result
