"""Cascade-on-delete - keep compiled notes consistent when sources go away."""

import logging
from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from backend.notekit.db.context import RequestContext
from backend.notekit.db.repositories import NoteStore
from backend.notekit.events import EventSink, emit_safely
from backend.notekit.models.compiled import CompiledNote
from backend.notekit.models.events import NoteEvent
from backend.notekit.notes.compiler import Clock, utc_now

logger = logging.getLogger(__name__)


def strip_citations(
    compiled: CompiledNote, removed_ids: Iterable[UUID], *, now: datetime
) -> CompiledNote | None:
    """Remove source ids from a compiled note and all of its sections.

    The compiled note and its sections survive; only citations disappear.

    Args:
        compiled: Compiled note to clean
        removed_ids: Source note IDs to remove
        now: Timestamp recorded as updated_at

    Returns:
        Updated compiled note, or None if it cited none of removed_ids
    """
    removed = set(removed_ids)
    if not removed.intersection(compiled.source_note_ids):
        # Sections may still reference ids outside source_note_ids
        if not any(removed.intersection(s.source_ids) for s in compiled.sections):
            return None

    sections = [
        s.model_copy(update={"source_ids": [sid for sid in s.source_ids if sid not in removed]})
        for s in compiled.sections
    ]
    return compiled.model_copy(
        update={
            "source_note_ids": [nid for nid in compiled.source_note_ids if nid not in removed],
            "sections": sections,
            "updated_at": now,
        }
    )


async def remove_citations(
    store: NoteStore,
    ctx: RequestContext,
    removed_ids: Iterable[UUID],
    events: EventSink | None = None,
    *,
    clock: Clock = utc_now,
) -> list[CompiledNote]:
    """Strip removed_ids from every compiled note owned by the acting user.

    Args:
        store: Note store
        ctx: Request context (only the actor's compiled notes are touched)
        removed_ids: Source note IDs to remove
        events: Optional event sink
        clock: Time source for updated_at

    Returns:
        Compiled notes that were changed
    """
    removed = set(removed_ids)
    if not removed:
        return []

    changed: list[CompiledNote] = []
    for compiled in await store.list_compiled_notes(ctx):
        updated = strip_citations(compiled, removed, now=clock())
        if updated is None:
            continue
        if not await store.replace_compiled_note(updated, ctx):
            logger.warning(f"[cascade] compiled note {compiled.id} vanished during cascade")
            continue
        changed.append(updated)
        await emit_safely(
            events,
            NoteEvent(
                kind="compiled_note.citations_removed",
                user_id=ctx.user_id,
                subject_id=updated.id,
                occurred_at=updated.updated_at,
                payload={
                    "removed_ids": sorted(
                        str(nid) for nid in removed if nid in compiled.source_note_ids
                    )
                },
            ),
        )

    if changed:
        logger.info(
            f"[cascade] user_id={ctx.user_id} removed {len(removed)} source(s) "
            f"from {len(changed)} compiled note(s)"
        )
    return changed


async def cascade_note_deleted(
    store: NoteStore,
    ctx: RequestContext,
    note_id: UUID,
    events: EventSink | None = None,
    *,
    clock: Clock = utc_now,
) -> list[CompiledNote]:
    """Run the cascade for a note deleted by its owner."""
    return await remove_citations(store, ctx, [note_id], events, clock=clock)


async def cascade_friend_removed(
    store: NoteStore,
    ctx: RequestContext,
    friend_id: UUID,
    events: EventSink | None = None,
    *,
    clock: Clock = utc_now,
) -> list[CompiledNote]:
    """Run the cascade for a removed friend.

    Every note owned by the friend leaves the remover's citation pool. The
    friend's own compiled notes are untouched.
    """
    friend_notes = await store.list_notes(friend_id)
    return await remove_citations(
        store, ctx, [n.id for n in friend_notes], events, clock=clock
    )
