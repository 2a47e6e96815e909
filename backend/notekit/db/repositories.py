"""Repository protocol for note storage."""

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from backend.notekit.db.context import RequestContext
from backend.notekit.models.compiled import CompiledNote
from backend.notekit.models.friends import Friendship, FriendshipStatus
from backend.notekit.models.notes import Note


class NoteStore(Protocol):
    """Storage for notes, compiled notes and friendships.

    Owner-scoped operations take a RequestContext and never touch records
    owned by another user. Reads-your-writes consistency for the acting
    user is assumed; no multi-record transactions are.
    """

    # Notes

    async def insert_note(self, note: Note) -> Note:
        """Persist a new note."""
        ...

    async def get_note(self, note_id: UUID) -> Note | None:
        """Get a note by ID regardless of owner.

        Access checks (owner, public, friend) are the caller's responsibility.
        """
        ...

    async def get_notes(self, note_ids: Sequence[UUID]) -> list[Note]:
        """Get existing notes among note_ids, in the order given."""
        ...

    async def list_notes(self, owner_id: UUID) -> list[Note]:
        """List notes owned by a user, newest first."""
        ...

    async def update_note(
        self, note_id: UUID, ctx: RequestContext, patch: dict[str, Any]
    ) -> Note | None:
        """Apply a field patch to an owned note.

        Returns:
            Updated note, or None if not found / not owned
        """
        ...

    async def delete_note(self, note_id: UUID, ctx: RequestContext) -> bool:
        """Delete an owned note. Returns whether a note was deleted."""
        ...

    # Compiled notes

    async def insert_compiled_note(self, note: CompiledNote) -> CompiledNote:
        """Persist a new compiled note."""
        ...

    async def get_compiled_note(self, note_id: UUID, ctx: RequestContext) -> CompiledNote | None:
        """Get an owned compiled note."""
        ...

    async def list_compiled_notes(
        self, ctx: RequestContext, *, created_since: datetime | None = None
    ) -> list[CompiledNote]:
        """List owned compiled notes, newest first, optionally created at or after a time."""
        ...

    async def replace_compiled_note(self, note: CompiledNote, ctx: RequestContext) -> bool:
        """Overwrite title, sections, source ids and tags of an owned compiled note."""
        ...

    async def delete_compiled_note(self, note_id: UUID, ctx: RequestContext) -> bool:
        """Delete an owned compiled note."""
        ...

    # Friendships

    async def insert_friendship(self, friendship: Friendship) -> Friendship:
        """Persist a new friendship request."""
        ...

    async def get_friendship(self, friendship_id: UUID) -> Friendship | None:
        """Get a friendship record by ID."""
        ...

    async def find_friendship(self, user_id: UUID, friend_id: UUID) -> Friendship | None:
        """Get the friendship record between two users in either direction."""
        ...

    async def list_friendships(
        self, user_id: UUID, *, status: FriendshipStatus | None = None
    ) -> list[Friendship]:
        """List friendship records the user takes part in, in either direction."""
        ...

    async def set_friendship_status(
        self, friendship_id: UUID, status: FriendshipStatus
    ) -> Friendship | None:
        """Update a friendship's status."""
        ...

    async def delete_friendships_between(self, user_id: UUID, friend_id: UUID) -> int:
        """Delete friendship records between two users in both directions."""
        ...
