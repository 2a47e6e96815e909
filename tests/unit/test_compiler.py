"""Tests for multi-source compilation: dedup window, attribution, tags, failures."""

import asyncio
import json
import uuid
from datetime import UTC, datetime, timedelta

import pytest

from backend.notekit.config import Settings
from backend.notekit.db.context import RequestContext
from backend.notekit.db.inmemory import InMemoryNoteStore
from backend.notekit.errors import (
    CompilationFailedError,
    GenerationFailedError,
    InsufficientSourcesError,
)
from backend.notekit.events import InMemoryEventSink
from backend.notekit.models.compiled import CompiledNote
from backend.notekit.models.notes import Note
from backend.notekit.notes.compiler import aggregate_tags, compile_notes


class FakeClock:
    """Manually advanced clock."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def _compiled_response(*sections: dict, title: str = "Compiled") -> str:
    return json.dumps({"title": title, "sections": list(sections)})


@pytest.fixture
def two_notes(ctx: RequestContext, make_note) -> tuple[Note, Note]:
    return (
        make_note(ctx.user_id, "Neural networks", tags=["AI", "ML"]),
        make_note(ctx.user_id, "Model security", tags=["ML", "Security"]),
    )


def test_aggregate_tags_ranks_by_frequency_then_alphabet(make_note) -> None:
    """Shared tags come first, ties break alphabetically."""
    owner = uuid.uuid4()
    notes = [
        make_note(owner, tags=["AI", "ML"]),
        make_note(owner, tags=["ML", "Security"]),
    ]
    assert aggregate_tags(notes) == ["ML", "AI", "Security"]


def test_aggregate_tags_caps_at_limit_preferring_shared(make_note) -> None:
    """Shared tags are never crowded out by singles."""
    owner = uuid.uuid4()
    notes = [
        make_note(owner, tags=["a", "b", "c", "d", "e", "zeta"]),
        make_note(owner, tags=["zeta", "omega"]),
        make_note(owner, tags=["omega", "zeta"]),
    ]
    assert aggregate_tags(notes, limit=5) == ["zeta", "omega", "a", "b", "c"]


def test_aggregate_tags_counts_each_note_once(make_note) -> None:
    """A tag repeated inside one note counts once for that note."""
    owner = uuid.uuid4()
    notes = [make_note(owner, tags=["x"]), make_note(owner, tags=["y"])]
    notes[0].tags.append("x")
    assert aggregate_tags(notes) == ["x", "y"]


@pytest.mark.asyncio
async def test_compile_persists_with_input_order_and_tags(
    ctx: RequestContext, store: InMemoryNoteStore, scripted, settings: Settings, two_notes
) -> None:
    """Source ids keep input order; tags are aggregated; an event is emitted."""
    n1, n2 = two_notes
    events = InMemoryEventSink()
    gen = scripted(
        _compiled_response(
            {"title": "Overview", "content": "Both notes.", "source_ids": [str(n2.id), str(n1.id)]},
            title="AI and security",
        )
    )

    outcome = await compile_notes(
        [n2, n1], ctx, generator=gen, store=store, events=events, settings=settings
    )

    assert outcome.is_duplicate is False
    compiled = outcome.note
    assert compiled.title == "AI and security"
    assert compiled.source_note_ids == [n2.id, n1.id]
    assert compiled.tags == ["ML", "AI", "Security"]
    assert compiled.sections[0].source_ids == [n2.id, n1.id]
    assert await store.list_compiled_notes(ctx) == [compiled]
    assert events.kinds() == ["compiled_note.created"]

    prompt = gen.calls[0].prompt
    assert f"(ID: {n1.id})" in prompt
    assert f"(ID: {n2.id})" in prompt
    assert gen.calls[0].system is not None


@pytest.mark.asyncio
async def test_missing_source_ids_default_to_all_inputs(
    ctx: RequestContext, store: InMemoryNoteStore, scripted, settings: Settings, two_notes
) -> None:
    """Sections without attribution cite every source."""
    n1, n2 = two_notes
    gen = scripted(_compiled_response({"title": "Overview", "content": "Both notes."}))

    outcome = await compile_notes([n1, n2], ctx, generator=gen, store=store, settings=settings)

    assert outcome.note.sections[0].source_ids == [n1.id, n2.id]


@pytest.mark.asyncio
async def test_unknown_source_ids_are_dropped(
    ctx: RequestContext, store: InMemoryNoteStore, scripted, settings: Settings, two_notes
) -> None:
    """Ids outside the inputs are removed; all-unknown falls back to every input."""
    n1, n2 = two_notes
    gen = scripted(
        _compiled_response(
            {"title": "One", "content": "From n2.", "source_note_ids": [str(n2.id), str(uuid.uuid4())]},
            {"title": "Two", "content": "Unknown.", "source_ids": ["not-a-uuid", str(uuid.uuid4())]},
        )
    )

    outcome = await compile_notes([n1, n2], ctx, generator=gen, store=store, settings=settings)

    first, second = outcome.note.sections
    assert first.source_ids == [n2.id]
    assert second.source_ids == [n1.id, n2.id]
    assert all(set(s.source_ids) <= set(outcome.note.source_note_ids) for s in outcome.note.sections)


@pytest.mark.asyncio
async def test_dedup_window_returns_existing_then_expires(
    ctx: RequestContext, store: InMemoryNoteStore, scripted, settings: Settings, two_notes
) -> None:
    """Same source set within 10 s returns the first artifact; after 11 s a new one."""
    n1, n2 = two_notes
    clock = FakeClock()
    gen = scripted(
        _compiled_response({"title": "First", "content": "x"}),
        _compiled_response({"title": "Second", "content": "y"}),
    )

    first = await compile_notes(
        [n1, n2], ctx, generator=gen, store=store, settings=settings, clock=clock
    )

    clock.advance(5)
    retry = await compile_notes(
        [n2, n1], ctx, generator=gen, store=store, settings=settings, clock=clock
    )

    assert retry.is_duplicate is True
    assert retry.note.id == first.note.id
    assert len(gen.calls) == 1

    clock.advance(6)
    later = await compile_notes(
        [n1, n2], ctx, generator=gen, store=store, settings=settings, clock=clock
    )

    assert later.is_duplicate is False
    assert later.note.id != first.note.id
    assert len(await store.list_compiled_notes(ctx)) == 2


@pytest.mark.asyncio
async def test_dedup_is_scoped_to_owner(
    store: InMemoryNoteStore, scripted, settings: Settings, make_note
) -> None:
    """Another user compiling the same notes gets their own artifact."""
    alice = RequestContext(user_id=uuid.uuid4())
    bob = RequestContext(user_id=uuid.uuid4())
    n1 = make_note(alice.user_id, "One", is_public=True)
    n2 = make_note(alice.user_id, "Two", is_public=True)
    clock = FakeClock()
    gen = scripted(
        _compiled_response({"title": "A", "content": "x"}),
        _compiled_response({"title": "B", "content": "y"}),
    )

    a = await compile_notes([n1, n2], alice, generator=gen, store=store, settings=settings, clock=clock)
    b = await compile_notes([n1, n2], bob, generator=gen, store=store, settings=settings, clock=clock)

    assert not b.is_duplicate
    assert a.note.id != b.note.id


@pytest.mark.asyncio
async def test_duplicate_created_during_synthesis_is_returned(
    ctx: RequestContext, store: InMemoryNoteStore, settings: Settings, two_notes
) -> None:
    """A concurrent compile that finished first wins; no second artifact is stored."""
    n1, n2 = two_notes
    clock = FakeClock()
    racer = CompiledNote(
        id=uuid.uuid4(),
        owner_id=ctx.user_id,
        title="Racer",
        source_note_ids=[n1.id, n2.id],
        created_at=clock(),
        updated_at=clock(),
    )

    class RacingGenerator:
        async def generate(self, prompt: str, **kwargs: object) -> str:
            await store.insert_compiled_note(racer)
            return _compiled_response({"title": "Late", "content": "x"})

    outcome = await compile_notes(
        [n1, n2], ctx, generator=RacingGenerator(), store=store, settings=settings, clock=clock
    )

    assert outcome.is_duplicate is True
    assert outcome.note.id == racer.id
    assert len(await store.list_compiled_notes(ctx)) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("count", [0, 1])
async def test_fewer_than_two_sources_rejected(
    ctx: RequestContext, store: InMemoryNoteStore, scripted, settings: Settings, two_notes, count
) -> None:
    """At least two notes are required."""
    with pytest.raises(InsufficientSourcesError):
        await compile_notes(
            list(two_notes[:count]), ctx, generator=scripted(), store=store, settings=settings
        )


@pytest.mark.asyncio
async def test_duplicate_sources_count_once(
    ctx: RequestContext, store: InMemoryNoteStore, scripted, settings: Settings, two_notes
) -> None:
    """The same note twice is one distinct source."""
    n1, _ = two_notes
    with pytest.raises(InsufficientSourcesError):
        await compile_notes([n1, n1], ctx, generator=scripted(), store=store, settings=settings)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        GenerationFailedError("upstream down"),
        "I could not compile these notes.",
        '{"title": "Empty", "sections": []}',
        '{"title": "Bad", "sections": [{"title": "No content"}]}',
    ],
)
async def test_failures_raise_and_persist_nothing(
    ctx: RequestContext,
    store: InMemoryNoteStore,
    scripted,
    settings: Settings,
    two_notes,
    response,
) -> None:
    """Generator errors and malformed output fail the whole compile."""
    events = InMemoryEventSink()

    with pytest.raises(CompilationFailedError):
        await compile_notes(
            list(two_notes),
            ctx,
            generator=scripted(response),
            store=store,
            events=events,
            settings=settings,
        )

    assert await store.list_compiled_notes(ctx) == []
    assert events.events == []


@pytest.mark.asyncio
async def test_cancellation_persists_nothing(
    ctx: RequestContext, store: InMemoryNoteStore, settings: Settings, two_notes
) -> None:
    """Cancelling an in-flight compile propagates and stores nothing."""
    started = asyncio.Event()

    class HangingGenerator:
        async def generate(self, prompt: str, **kwargs: object) -> str:
            started.set()
            await asyncio.Event().wait()
            return ""

    task = asyncio.create_task(
        compile_notes(
            list(two_notes), ctx, generator=HangingGenerator(), store=store, settings=settings
        )
    )
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert await store.list_compiled_notes(ctx) == []
