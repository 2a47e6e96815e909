"""Tests for citation numbering and rendering."""

import uuid
from datetime import UTC, datetime

from backend.notekit.citations.render import (
    citation_index,
    citation_number,
    count_existing_references,
    render_section_citations,
)
from backend.notekit.models.compiled import CompiledNote
from backend.notekit.models.notes import Section

A, B, C = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()


def _compiled(source_ids: list[uuid.UUID], sections: list[Section]) -> CompiledNote:
    now = datetime.now(UTC)
    return CompiledNote(
        id=uuid.uuid4(),
        owner_id=uuid.uuid4(),
        title="Compiled",
        sections=sections,
        source_note_ids=source_ids,
        created_at=now,
        updated_at=now,
    )


def test_citation_numbers_follow_input_order() -> None:
    """Citation number is the 1-based position in source_note_ids."""
    compiled = _compiled([B, A, C], [Section(title="S", content="x", source_ids=[C])])

    assert citation_index(compiled) == {B: 1, A: 2, C: 3}
    assert citation_number(compiled, A) == 2
    assert citation_number(compiled, uuid.uuid4()) is None


def test_numbering_does_not_depend_on_which_sections_cite() -> None:
    """A source cited by no section still holds its number."""
    compiled = _compiled([A, B, C], [Section(title="S", content="x", source_ids=[C])])
    rendered = render_section_citations(compiled, {A: "A", B: "B", C: "C"})

    assert [(c.number, c.note_id) for c in rendered[0].citations] == [(3, C)]


def test_section_citations_sorted_by_number_with_titles() -> None:
    """Displayed citations are ordered by number and carry note titles."""
    compiled = _compiled(
        [A, B, C],
        [
            Section(title="One", content="x", source_ids=[C, A]),
            Section(title="Two", content="y", source_ids=[B]),
        ],
    )

    rendered = render_section_citations(compiled, {A: "Alpha", B: "Beta", C: "Gamma"})

    assert [r.section_index for r in rendered] == [0, 1]
    assert [(c.number, c.title) for c in rendered[0].citations] == [(1, "Alpha"), (3, "Gamma")]
    assert [(c.number, c.title) for c in rendered[1].citations] == [(2, "Beta")]


def test_ids_outside_source_list_are_not_displayed() -> None:
    """Only ids present in source_note_ids are cited."""
    stray = uuid.uuid4()
    compiled = _compiled([A, B], [Section(title="S", content="x", source_ids=[A, stray])])

    rendered = render_section_citations(compiled, {A: "Alpha", B: "Beta", stray: "Stray"})

    assert [c.note_id for c in rendered[0].citations] == [A]
    assert rendered[0].stale_ids == []


def test_deleted_sources_become_stale_not_errors() -> None:
    """Citations to notes that no longer exist are reported as stale."""
    compiled = _compiled([A, B, C], [Section(title="S", content="x", source_ids=[A, B, C])])

    rendered = render_section_citations(compiled, {A: "Alpha", C: "Gamma"})

    assert [c.number for c in rendered[0].citations] == [1, 3]
    assert rendered[0].stale_ids == [B]
    assert count_existing_references(compiled, {A: "Alpha", C: "Gamma"}) == 2
