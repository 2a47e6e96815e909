"""SQL implementation of the NoteStore protocol (SQLAlchemy async)."""

import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Select, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.notekit.db.context import RequestContext
from backend.notekit.db.models import CompiledNote as CompiledNoteDB
from backend.notekit.db.models import Friendship as FriendshipDB
from backend.notekit.db.models import Note as NoteDB
from backend.notekit.db.models import Profile
from backend.notekit.models.compiled import CompiledNote
from backend.notekit.models.friends import Friendship, FriendshipStatus
from backend.notekit.models.notes import Note, Section, parse_document_content

_MUTABLE_NOTE_FIELDS = {"title", "content", "tags", "is_public"}


def _aware(value: datetime) -> datetime:
    """SQLite returns naive datetimes; treat them as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _note_to_domain(row: NoteDB) -> Note:
    return Note(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title,
        content=row.content,
        tags=row.tags or [],
        source_url=row.source_url,
        source_type=row.source_type,
        is_public=row.is_public,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _compiled_to_domain(row: CompiledNoteDB) -> CompiledNote:
    return CompiledNote(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title,
        sections=[Section.model_validate(s) for s in row.sections or []],
        source_note_ids=[uuid.UUID(nid) for nid in row.source_note_ids or []],
        tags=row.tags or [],
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _friendship_to_domain(row: FriendshipDB) -> Friendship:
    return Friendship(
        id=row.id,
        user_id=row.user_id,
        friend_id=row.friend_id,
        status=FriendshipStatus(row.status),
        created_at=_aware(row.created_at),
    )


def _owned_compiled(ctx: RequestContext) -> Select[tuple[CompiledNoteDB]]:
    """Compiled note query with owner scoping enforced."""
    return select(CompiledNoteDB).where(CompiledNoteDB.owner_id == ctx.user_id)


def _between(user_id: uuid.UUID, friend_id: uuid.UUID) -> Any:
    return or_(
        (FriendshipDB.user_id == user_id) & (FriendshipDB.friend_id == friend_id),
        (FriendshipDB.user_id == friend_id) & (FriendshipDB.friend_id == user_id),
    )


class SqlNoteStore:
    """SQL implementation of NoteStore.

    Every mutating method commits before returning.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # Profiles

    async def ensure_profile(self, user_id: uuid.UUID) -> None:
        """Create an empty profile row for a user if none exists."""
        if await self._session.get(Profile, user_id) is None:
            self._session.add(Profile(id=user_id))
            await self._session.flush()

    # Notes

    async def insert_note(self, note: Note) -> Note:
        """Persist a new note."""
        self._session.add(
            NoteDB(
                id=note.id,
                owner_id=note.owner_id,
                title=note.title,
                content=note.content.model_dump(mode="json"),
                tags=list(note.tags),
                source_url=note.source_url,
                source_type=note.source_type,
                is_public=note.is_public,
                created_at=note.created_at,
                updated_at=note.updated_at,
            )
        )
        await self._session.commit()
        return note

    async def get_note(self, note_id: uuid.UUID) -> Note | None:
        """Get a note by ID regardless of owner."""
        row = await self._session.get(NoteDB, note_id)
        return _note_to_domain(row) if row is not None else None

    async def get_notes(self, note_ids: Sequence[uuid.UUID]) -> list[Note]:
        """Get existing notes among note_ids, in the order given."""
        ids = list(dict.fromkeys(note_ids))
        if not ids:
            return []
        result = await self._session.execute(select(NoteDB).where(NoteDB.id.in_(ids)))
        by_id = {row.id: _note_to_domain(row) for row in result.scalars()}
        return [by_id[nid] for nid in ids if nid in by_id]

    async def list_notes(self, owner_id: uuid.UUID) -> list[Note]:
        """List notes owned by a user, newest first."""
        result = await self._session.execute(
            select(NoteDB).where(NoteDB.owner_id == owner_id).order_by(NoteDB.created_at.desc())
        )
        return [_note_to_domain(row) for row in result.scalars()]

    async def update_note(
        self, note_id: uuid.UUID, ctx: RequestContext, patch: dict[str, Any]
    ) -> Note | None:
        """Apply a field patch to an owned note."""
        row = await self._session.get(NoteDB, note_id)

        # Enforce ownership
        if row is None or row.owner_id != ctx.user_id:
            return None

        for field, value in patch.items():
            if field not in _MUTABLE_NOTE_FIELDS:
                continue
            if field == "content":
                value = parse_document_content(value).model_dump(mode="json")
            setattr(row, field, value)
        row.updated_at = datetime.now(UTC)

        await self._session.commit()
        await self._session.refresh(row)
        return _note_to_domain(row)

    async def delete_note(self, note_id: uuid.UUID, ctx: RequestContext) -> bool:
        """Delete an owned note."""
        result = await self._session.execute(
            delete(NoteDB).where(NoteDB.id == note_id, NoteDB.owner_id == ctx.user_id)
        )
        await self._session.commit()
        return result.rowcount > 0

    # Compiled notes

    async def insert_compiled_note(self, note: CompiledNote) -> CompiledNote:
        """Persist a new compiled note."""
        self._session.add(
            CompiledNoteDB(
                id=note.id,
                owner_id=note.owner_id,
                title=note.title,
                sections=[s.model_dump(mode="json") for s in note.sections],
                source_note_ids=[str(nid) for nid in note.source_note_ids],
                tags=list(note.tags),
                created_at=note.created_at,
                updated_at=note.updated_at,
            )
        )
        await self._session.commit()
        return note

    async def get_compiled_note(
        self, note_id: uuid.UUID, ctx: RequestContext
    ) -> CompiledNote | None:
        """Get an owned compiled note."""
        result = await self._session.execute(
            _owned_compiled(ctx).where(CompiledNoteDB.id == note_id)
        )
        row = result.scalar_one_or_none()
        return _compiled_to_domain(row) if row is not None else None

    async def list_compiled_notes(
        self, ctx: RequestContext, *, created_since: datetime | None = None
    ) -> list[CompiledNote]:
        """List owned compiled notes, newest first."""
        query = _owned_compiled(ctx)
        if created_since is not None:
            query = query.where(CompiledNoteDB.created_at >= created_since)
        result = await self._session.execute(query.order_by(CompiledNoteDB.created_at.desc()))
        return [_compiled_to_domain(row) for row in result.scalars()]

    async def replace_compiled_note(self, note: CompiledNote, ctx: RequestContext) -> bool:
        """Overwrite title, sections, source ids and tags of an owned compiled note."""
        result = await self._session.execute(
            _owned_compiled(ctx).where(CompiledNoteDB.id == note.id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return False

        row.title = note.title
        row.sections = [s.model_dump(mode="json") for s in note.sections]
        row.source_note_ids = [str(nid) for nid in note.source_note_ids]
        row.tags = list(note.tags)
        row.updated_at = note.updated_at

        await self._session.commit()
        return True

    async def delete_compiled_note(self, note_id: uuid.UUID, ctx: RequestContext) -> bool:
        """Delete an owned compiled note."""
        result = await self._session.execute(
            delete(CompiledNoteDB).where(
                CompiledNoteDB.id == note_id, CompiledNoteDB.owner_id == ctx.user_id
            )
        )
        await self._session.commit()
        return result.rowcount > 0

    # Friendships

    async def insert_friendship(self, friendship: Friendship) -> Friendship:
        """Persist a new friendship request, creating missing profiles."""
        await self.ensure_profile(friendship.user_id)
        await self.ensure_profile(friendship.friend_id)
        self._session.add(
            FriendshipDB(
                id=friendship.id,
                user_id=friendship.user_id,
                friend_id=friendship.friend_id,
                status=friendship.status.value,
                created_at=friendship.created_at,
            )
        )
        await self._session.commit()
        return friendship

    async def get_friendship(self, friendship_id: uuid.UUID) -> Friendship | None:
        """Get a friendship record by ID."""
        row = await self._session.get(FriendshipDB, friendship_id)
        return _friendship_to_domain(row) if row is not None else None

    async def find_friendship(
        self, user_id: uuid.UUID, friend_id: uuid.UUID
    ) -> Friendship | None:
        """Get the friendship record between two users in either direction."""
        result = await self._session.execute(
            select(FriendshipDB).where(_between(user_id, friend_id)).limit(1)
        )
        row = result.scalar_one_or_none()
        return _friendship_to_domain(row) if row is not None else None

    async def list_friendships(
        self, user_id: uuid.UUID, *, status: FriendshipStatus | None = None
    ) -> list[Friendship]:
        """List friendship records the user takes part in."""
        query = select(FriendshipDB).where(
            or_(FriendshipDB.user_id == user_id, FriendshipDB.friend_id == user_id)
        )
        if status is not None:
            query = query.where(FriendshipDB.status == status.value)
        result = await self._session.execute(query.order_by(FriendshipDB.created_at))
        return [_friendship_to_domain(row) for row in result.scalars()]

    async def set_friendship_status(
        self, friendship_id: uuid.UUID, status: FriendshipStatus
    ) -> Friendship | None:
        """Update a friendship's status."""
        row = await self._session.get(FriendshipDB, friendship_id)
        if row is None:
            return None
        row.status = status.value
        updated = _friendship_to_domain(row)
        await self._session.commit()
        return updated

    async def delete_friendships_between(
        self, user_id: uuid.UUID, friend_id: uuid.UUID
    ) -> int:
        """Delete friendship records between two users in both directions."""
        result = await self._session.execute(
            delete(FriendshipDB).where(_between(user_id, friend_id))
        )
        await self._session.commit()
        return result.rowcount
