"""Note service - persistence-facing note operations with access checks and events."""

import logging
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from backend.notekit.db.context import RequestContext
from backend.notekit.db.repositories import NoteStore
from backend.notekit.errors import NoteNotFoundError
from backend.notekit.events import EventSink, emit_safely
from backend.notekit.models.events import EventKind, NoteEvent
from backend.notekit.models.friends import FriendshipStatus
from backend.notekit.models.notes import (
    Note,
    NoteDraft,
    Section,
    SectionsContent,
    parse_document_content,
)
from backend.notekit.notes.cascade import cascade_note_deleted
from backend.notekit.notes.sections import dedupe_sections

logger = logging.getLogger(__name__)


async def _emit(
    events: EventSink | None,
    kind: EventKind,
    ctx: RequestContext,
    subject_id: uuid.UUID,
    **payload: Any,
) -> None:
    await emit_safely(
        events,
        NoteEvent(
            kind=kind,
            user_id=ctx.user_id,
            subject_id=subject_id,
            occurred_at=datetime.now(UTC),
            payload=payload,
        ),
    )


def authored_sections(sections: Sequence[Section]) -> list[Section]:
    """Normalize sections written by a user.

    Authored sections carry no source ids, and exact duplicates are dropped.
    """
    return dedupe_sections(
        [s.model_copy(update={"source_ids": []}) if s.source_ids else s for s in sections]
    )


def _normalize_content_patch(patch: dict[str, Any]) -> dict[str, Any]:
    if "content" not in patch:
        return patch
    content = parse_document_content(patch["content"])
    if isinstance(content, SectionsContent):
        content = SectionsContent(sections=authored_sections(content.sections))
    return {**patch, "content": content.model_dump(mode="json")}


async def save_note(
    store: NoteStore,
    ctx: RequestContext,
    draft: NoteDraft,
    *,
    source_url: str | None = None,
    source_type: str | None = None,
    is_public: bool = False,
    events: EventSink | None = None,
) -> Note:
    """Persist a draft as a note owned by the acting user.

    Exact duplicate sections are dropped and source ids cleared before saving.
    """
    now = datetime.now(UTC)
    note = Note(
        id=uuid.uuid4(),
        owner_id=ctx.user_id,
        title=draft.title,
        content=SectionsContent(sections=authored_sections(draft.sections)),
        tags=draft.tags,
        source_url=source_url,
        source_type=source_type,
        is_public=is_public,
        created_at=now,
        updated_at=now,
    )
    note = await store.insert_note(note)
    logger.info(f"Saved note {note.id} for user {ctx.user_id} ({len(note.sections)} sections)")
    await _emit(events, "note.saved", ctx, note.id, source_type=source_type)
    return note


async def are_friends(store: NoteStore, user_id: uuid.UUID, other_id: uuid.UUID) -> bool:
    """Whether two users have an accepted friendship in either direction."""
    friendship = await store.find_friendship(user_id, other_id)
    return friendship is not None and friendship.status == FriendshipStatus.accepted


async def can_read(store: NoteStore, ctx: RequestContext, note: Note) -> bool:
    """Whether the acting user may read a note: owner, public, or accepted friend."""
    if note.owner_id == ctx.user_id or note.is_public:
        return True
    return await are_friends(store, ctx.user_id, note.owner_id)


async def get_readable_note(store: NoteStore, ctx: RequestContext, note_id: uuid.UUID) -> Note:
    """Get a note the acting user may read.

    Raises:
        NoteNotFoundError: If the note does not exist or is not readable
    """
    note = await store.get_note(note_id)
    if note is None or not await can_read(store, ctx, note):
        raise NoteNotFoundError(f"Note {note_id} not found")
    return note


async def resolve_sources(
    store: NoteStore, ctx: RequestContext, note_ids: Sequence[uuid.UUID]
) -> list[Note]:
    """Fetch compile sources in request order, checking read access.

    Duplicate ids are collapsed to their first occurrence.

    Raises:
        NoteNotFoundError: If any note is missing or not readable
    """
    unique_ids = list(dict.fromkeys(note_ids))
    notes = await store.get_notes(unique_ids)
    by_id = {n.id: n for n in notes}

    missing = [nid for nid in unique_ids if nid not in by_id]
    if missing:
        raise NoteNotFoundError(f"Notes not found: {', '.join(str(m) for m in missing)}")

    friends: dict[uuid.UUID, bool] = {}
    for note in notes:
        if note.owner_id == ctx.user_id or note.is_public:
            continue
        if note.owner_id not in friends:
            friends[note.owner_id] = await are_friends(store, ctx.user_id, note.owner_id)
        if not friends[note.owner_id]:
            raise NoteNotFoundError(f"Note {note.id} not found")

    return [by_id[nid] for nid in unique_ids]


async def update_note(
    store: NoteStore,
    ctx: RequestContext,
    note_id: uuid.UUID,
    patch: dict[str, Any],
    events: EventSink | None = None,
) -> Note:
    """Apply title, content, tags or visibility changes to an owned note.

    Section content is normalized the same way as on save.

    Raises:
        NoteNotFoundError: If the note does not exist or is not owned
        pydantic.ValidationError: If the content matches no known shape
    """
    note = await store.update_note(note_id, ctx, _normalize_content_patch(patch))
    if note is None:
        raise NoteNotFoundError(f"Note {note_id} not found")
    await _emit(events, "note.updated", ctx, note_id, fields=sorted(patch))
    return note


async def delete_note(
    store: NoteStore,
    ctx: RequestContext,
    note_id: uuid.UUID,
    events: EventSink | None = None,
) -> int:
    """Delete an owned note and strip it from the owner's compiled notes.

    Returns:
        Number of compiled notes whose citations were updated

    Raises:
        NoteNotFoundError: If the note does not exist or is not owned
    """
    if not await store.delete_note(note_id, ctx):
        raise NoteNotFoundError(f"Note {note_id} not found")

    changed = await cascade_note_deleted(store, ctx, note_id, events)
    logger.info(f"Deleted note {note_id}; updated {len(changed)} compiled note(s)")
    await _emit(events, "note.deleted", ctx, note_id, compiled_notes_updated=len(changed))
    return len(changed)
