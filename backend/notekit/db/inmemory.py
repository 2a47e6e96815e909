"""In-memory implementation of the NoteStore protocol."""

import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from backend.notekit.db.context import RequestContext
from backend.notekit.models.compiled import CompiledNote
from backend.notekit.models.friends import Friendship, FriendshipStatus
from backend.notekit.models.notes import Note

_MUTABLE_NOTE_FIELDS = {"title", "content", "tags", "is_public"}


class InMemoryNoteStore:
    """In-memory implementation of NoteStore."""

    def __init__(self) -> None:
        self._notes: dict[uuid.UUID, Note] = {}
        self._compiled: dict[uuid.UUID, CompiledNote] = {}
        self._friendships: dict[uuid.UUID, Friendship] = {}

    # Notes

    async def insert_note(self, note: Note) -> Note:
        """Persist a new note."""
        self._notes[note.id] = note
        return note

    async def get_note(self, note_id: uuid.UUID) -> Note | None:
        """Get a note by ID regardless of owner."""
        return self._notes.get(note_id)

    async def get_notes(self, note_ids: Sequence[uuid.UUID]) -> list[Note]:
        """Get existing notes among note_ids, in the order given."""
        return [self._notes[nid] for nid in dict.fromkeys(note_ids) if nid in self._notes]

    async def list_notes(self, owner_id: uuid.UUID) -> list[Note]:
        """List notes owned by a user, newest first."""
        notes = [n for n in self._notes.values() if n.owner_id == owner_id]
        notes.sort(key=lambda n: n.created_at, reverse=True)
        return notes

    async def update_note(
        self, note_id: uuid.UUID, ctx: RequestContext, patch: dict[str, Any]
    ) -> Note | None:
        """Apply a field patch to an owned note."""
        note = self._notes.get(note_id)

        # Enforce ownership
        if note is None or note.owner_id != ctx.user_id:
            return None

        changes = {k: v for k, v in patch.items() if k in _MUTABLE_NOTE_FIELDS}
        updated = Note.model_validate(
            {**note.model_dump(), **changes, "updated_at": datetime.now(UTC)}
        )
        self._notes[note_id] = updated
        return updated

    async def delete_note(self, note_id: uuid.UUID, ctx: RequestContext) -> bool:
        """Delete an owned note."""
        note = self._notes.get(note_id)
        if note is None or note.owner_id != ctx.user_id:
            return False
        del self._notes[note_id]
        return True

    # Compiled notes

    async def insert_compiled_note(self, note: CompiledNote) -> CompiledNote:
        """Persist a new compiled note."""
        self._compiled[note.id] = note
        return note

    async def get_compiled_note(
        self, note_id: uuid.UUID, ctx: RequestContext
    ) -> CompiledNote | None:
        """Get an owned compiled note."""
        note = self._compiled.get(note_id)
        if note is None or note.owner_id != ctx.user_id:
            return None
        return note

    async def list_compiled_notes(
        self, ctx: RequestContext, *, created_since: datetime | None = None
    ) -> list[CompiledNote]:
        """List owned compiled notes, newest first."""
        notes = [
            n
            for n in self._compiled.values()
            if n.owner_id == ctx.user_id
            and (created_since is None or n.created_at >= created_since)
        ]
        notes.sort(key=lambda n: n.created_at, reverse=True)
        return notes

    async def replace_compiled_note(self, note: CompiledNote, ctx: RequestContext) -> bool:
        """Overwrite an owned compiled note."""
        current = self._compiled.get(note.id)
        if current is None or current.owner_id != ctx.user_id:
            return False
        self._compiled[note.id] = note.model_copy(
            update={"owner_id": current.owner_id, "created_at": current.created_at}
        )
        return True

    async def delete_compiled_note(self, note_id: uuid.UUID, ctx: RequestContext) -> bool:
        """Delete an owned compiled note."""
        note = self._compiled.get(note_id)
        if note is None or note.owner_id != ctx.user_id:
            return False
        del self._compiled[note_id]
        return True

    # Friendships

    async def insert_friendship(self, friendship: Friendship) -> Friendship:
        """Persist a new friendship request."""
        self._friendships[friendship.id] = friendship
        return friendship

    async def get_friendship(self, friendship_id: uuid.UUID) -> Friendship | None:
        """Get a friendship record by ID."""
        return self._friendships.get(friendship_id)

    async def find_friendship(
        self, user_id: uuid.UUID, friend_id: uuid.UUID
    ) -> Friendship | None:
        """Get the friendship record between two users in either direction."""
        for f in self._friendships.values():
            if {f.user_id, f.friend_id} == {user_id, friend_id}:
                return f
        return None

    async def list_friendships(
        self, user_id: uuid.UUID, *, status: FriendshipStatus | None = None
    ) -> list[Friendship]:
        """List friendship records the user takes part in."""
        return [
            f
            for f in self._friendships.values()
            if user_id in (f.user_id, f.friend_id) and (status is None or f.status == status)
        ]

    async def set_friendship_status(
        self, friendship_id: uuid.UUID, status: FriendshipStatus
    ) -> Friendship | None:
        """Update a friendship's status."""
        f = self._friendships.get(friendship_id)
        if f is None:
            return None
        updated = f.model_copy(update={"status": status})
        self._friendships[friendship_id] = updated
        return updated

    async def delete_friendships_between(
        self, user_id: uuid.UUID, friend_id: uuid.UUID
    ) -> int:
        """Delete friendship records between two users in both directions."""
        doomed = [
            fid
            for fid, f in self._friendships.items()
            if {f.user_id, f.friend_id} == {user_id, friend_id}
        ]
        for fid in doomed:
            del self._friendships[fid]
        return len(doomed)
