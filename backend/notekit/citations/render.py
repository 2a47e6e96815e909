"""Citation numbering and rendering for compiled notes.

The citation number of a source note is its 1-based position in the
compiled note's source_note_ids; it does not depend on which sections cite it.
"""

import logging
from collections.abc import Mapping
from uuid import UUID

from backend.notekit.models.compiled import CitationRef, CompiledNote, SectionCitations

logger = logging.getLogger(__name__)


def citation_index(compiled: CompiledNote) -> dict[UUID, int]:
    """Map each source note ID to its citation number."""
    return {note_id: number for number, note_id in enumerate(compiled.source_note_ids, start=1)}


def citation_number(compiled: CompiledNote, note_id: UUID) -> int | None:
    """Citation number of a source note, or None if the note is not a source."""
    return citation_index(compiled).get(note_id)


def render_section_citations(
    compiled: CompiledNote, existing_titles: Mapping[UUID, str]
) -> list[SectionCitations]:
    """Resolve the displayed citations of every section.

    A section displays the ids in both its source_ids and the compiled
    note's source_note_ids, ordered by citation number. Ids whose note no
    longer exists are reported in stale_ids instead of raising.

    Args:
        compiled: Compiled note
        existing_titles: Titles of source notes that still exist, by ID

    Returns:
        One SectionCitations per section, in section order
    """
    index = citation_index(compiled)
    rendered: list[SectionCitations] = []

    for section_index, section in enumerate(compiled.sections):
        cited = sorted((sid for sid in section.source_ids if sid in index), key=index.__getitem__)
        citations = [
            CitationRef(number=index[sid], note_id=sid, title=existing_titles[sid])
            for sid in cited
            if sid in existing_titles
        ]
        stale = [sid for sid in cited if sid not in existing_titles]
        if stale:
            logger.debug(
                f"Compiled note {compiled.id} section {section_index}: "
                f"omitting {len(stale)} stale citation(s)"
            )
        rendered.append(
            SectionCitations(section_index=section_index, citations=citations, stale_ids=stale)
        )

    return rendered


def count_existing_references(compiled: CompiledNote, existing_titles: Mapping[UUID, str]) -> int:
    """Number of source notes of a compiled note that still exist."""
    return sum(1 for note_id in compiled.source_note_ids if note_id in existing_titles)
