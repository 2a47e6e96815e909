"""Tests for cascade-on-delete and friend removal."""

import uuid
from datetime import UTC, datetime

import pytest

from backend.notekit.db.context import RequestContext
from backend.notekit.db.inmemory import InMemoryNoteStore
from backend.notekit.events import InMemoryEventSink
from backend.notekit.models.compiled import CompiledNote
from backend.notekit.models.friends import Friendship, FriendshipStatus
from backend.notekit.models.notes import Section
from backend.notekit.notes.cascade import cascade_note_deleted, strip_citations
from backend.notekit.notes.service import delete_note
from backend.notekit.sharing.friends import remove_friend


def _compiled(
    owner_id: uuid.UUID, source_ids: list[uuid.UUID], sections: list[Section]
) -> CompiledNote:
    now = datetime.now(UTC)
    return CompiledNote(
        id=uuid.uuid4(),
        owner_id=owner_id,
        title="Compiled",
        sections=sections,
        source_note_ids=source_ids,
        created_at=now,
        updated_at=now,
    )


def test_strip_citations_removes_ids_everywhere() -> None:
    """Removed ids disappear from the source list and every section."""
    a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    compiled = _compiled(
        uuid.uuid4(),
        [a, b, c],
        [
            Section(title="One", content="x", source_ids=[a, c]),
            Section(title="Two", content="y", source_ids=[a]),
        ],
    )

    now = datetime(2026, 3, 1, 9, 30, tzinfo=UTC)
    updated = strip_citations(compiled, [a], now=now)

    assert updated is not None
    assert updated.id == compiled.id
    assert updated.updated_at == now
    assert updated.source_note_ids == [b, c]
    assert [s.source_ids for s in updated.sections] == [[c], []]
    assert [s.title for s in updated.sections] == ["One", "Two"]


def test_strip_citations_returns_none_when_unrelated() -> None:
    """Compiled notes that never cited the ids are left alone."""
    compiled = _compiled(
        uuid.uuid4(), [uuid.uuid4()], [Section(title="S", content="x", source_ids=[])]
    )
    assert strip_citations(compiled, [uuid.uuid4()], now=datetime.now(UTC)) is None


@pytest.mark.asyncio
async def test_deleting_source_note_strips_citations(
    ctx: RequestContext, store: InMemoryNoteStore, make_note
) -> None:
    """Deleting A from a compile of [A, B, C] leaves [B, C] and the section cites C."""
    a = await store.insert_note(make_note(ctx.user_id, "A"))
    b = await store.insert_note(make_note(ctx.user_id, "B"))
    c = await store.insert_note(make_note(ctx.user_id, "C"))
    compiled = await store.insert_compiled_note(
        _compiled(
            ctx.user_id,
            [a.id, b.id, c.id],
            [Section(title="Mixed", content="x", source_ids=[a.id, c.id])],
        )
    )
    events = InMemoryEventSink()

    updated_count = await delete_note(store, ctx, a.id, events)

    after = await store.get_compiled_note(compiled.id, ctx)
    assert after is not None
    assert after.source_note_ids == [b.id, c.id]
    assert after.sections[0].source_ids == [c.id]
    assert updated_count == 1
    assert await store.get_note(a.id) is None
    assert events.kinds() == ["compiled_note.citations_removed", "note.deleted"]


@pytest.mark.asyncio
async def test_cascade_only_touches_actor_compiled_notes(
    store: InMemoryNoteStore, make_note
) -> None:
    """Another user's compiled note citing the deleted note is untouched."""
    owner = RequestContext(user_id=uuid.uuid4())
    other = RequestContext(user_id=uuid.uuid4())
    a = await store.insert_note(make_note(owner.user_id, "A", is_public=True))
    b = await store.insert_note(make_note(owner.user_id, "B", is_public=True))
    theirs = await store.insert_compiled_note(
        _compiled(other.user_id, [a.id, b.id], [Section(title="S", content="x", source_ids=[a.id])])
    )

    await delete_note(store, owner, a.id)

    untouched = await store.get_compiled_note(theirs.id, other)
    assert untouched is not None
    assert untouched.source_note_ids == [a.id, b.id]


@pytest.mark.asyncio
async def test_removing_friend_strips_their_notes_from_my_compilations(
    store: InMemoryNoteStore, make_note
) -> None:
    """Friend removal cascades over my compiled notes only and deletes both directions."""
    me = RequestContext(user_id=uuid.uuid4())
    friend = RequestContext(user_id=uuid.uuid4())
    mine = await store.insert_note(make_note(me.user_id, "Mine"))
    theirs = await store.insert_note(make_note(friend.user_id, "Theirs"))
    await store.insert_friendship(
        Friendship(
            id=uuid.uuid4(),
            user_id=me.user_id,
            friend_id=friend.user_id,
            status=FriendshipStatus.accepted,
            created_at=datetime.now(UTC),
        )
    )
    my_compiled = await store.insert_compiled_note(
        _compiled(
            me.user_id,
            [mine.id, theirs.id],
            [Section(title="S", content="x", source_ids=[mine.id, theirs.id])],
        )
    )
    their_compiled = await store.insert_compiled_note(
        _compiled(
            friend.user_id,
            [mine.id, theirs.id],
            [Section(title="S", content="x", source_ids=[mine.id, theirs.id])],
        )
    )

    updated = await remove_friend(store, me, friend.user_id)

    assert updated == 1
    after = await store.get_compiled_note(my_compiled.id, me)
    assert after is not None
    assert after.source_note_ids == [mine.id]
    assert after.sections[0].source_ids == [mine.id]

    unchanged = await store.get_compiled_note(their_compiled.id, friend)
    assert unchanged is not None
    assert unchanged.source_note_ids == [mine.id, theirs.id]

    assert await store.find_friendship(me.user_id, friend.user_id) is None
    assert await store.get_note(theirs.id) is not None


@pytest.mark.asyncio
async def test_cascade_stamps_updated_at_from_clock(
    ctx: RequestContext, store: InMemoryNoteStore, make_note
) -> None:
    """The cascade records the injected clock's time on changed notes."""
    a = await store.insert_note(make_note(ctx.user_id, "A"))
    b = await store.insert_note(make_note(ctx.user_id, "B"))
    compiled = await store.insert_compiled_note(
        _compiled(ctx.user_id, [a.id, b.id], [Section(title="S", content="x", source_ids=[a.id])])
    )
    stamp = datetime(2026, 5, 4, 8, 0, tzinfo=UTC)

    changed = await cascade_note_deleted(store, ctx, a.id, clock=lambda: stamp)

    assert [c.id for c in changed] == [compiled.id]
    after = await store.get_compiled_note(compiled.id, ctx)
    assert after is not None
    assert after.updated_at == stamp
