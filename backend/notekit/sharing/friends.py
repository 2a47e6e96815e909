"""Friendships - requests, acceptance and removal.

One record exists per pair of users; user_id is the requester. Removing a
friend deletes the record in both directions and strips the friend's notes
from the remover's compiled notes.
"""

import logging
import uuid
from datetime import UTC, datetime

from backend.notekit.db.context import RequestContext
from backend.notekit.db.repositories import NoteStore
from backend.notekit.errors import FriendshipError, FriendshipNotFoundError
from backend.notekit.events import EventSink, emit_safely
from backend.notekit.models.events import EventKind, NoteEvent
from backend.notekit.models.friends import Friendship, FriendshipStatus
from backend.notekit.notes.cascade import cascade_friend_removed

logger = logging.getLogger(__name__)


async def _emit(
    events: EventSink | None, kind: EventKind, ctx: RequestContext, friendship: Friendship
) -> None:
    await emit_safely(
        events,
        NoteEvent(
            kind=kind,
            user_id=ctx.user_id,
            subject_id=friendship.id,
            occurred_at=datetime.now(UTC),
            payload={"user_id": str(friendship.user_id), "friend_id": str(friendship.friend_id)},
        ),
    )


async def send_request(
    store: NoteStore,
    ctx: RequestContext,
    friend_id: uuid.UUID,
    events: EventSink | None = None,
) -> Friendship:
    """Send a friend request from the acting user.

    A previously rejected request is replaced by a new pending one.

    Raises:
        FriendshipError: If the target is the acting user or a request or
            friendship already exists
    """
    if friend_id == ctx.user_id:
        raise FriendshipError("Cannot send a friend request to yourself")

    existing = await store.find_friendship(ctx.user_id, friend_id)
    if existing is not None:
        if existing.status != FriendshipStatus.rejected:
            raise FriendshipError(f"Friendship already {existing.status.value}")
        await store.delete_friendships_between(ctx.user_id, friend_id)

    friendship = await store.insert_friendship(
        Friendship(
            id=uuid.uuid4(),
            user_id=ctx.user_id,
            friend_id=friend_id,
            status=FriendshipStatus.pending,
            created_at=datetime.now(UTC),
        )
    )
    logger.info(f"Friend request {friendship.id}: {ctx.user_id} -> {friend_id}")
    await _emit(events, "friendship.requested", ctx, friendship)
    return friendship


async def _pending_request_for(
    store: NoteStore, ctx: RequestContext, request_id: uuid.UUID
) -> Friendship:
    friendship = await store.get_friendship(request_id)

    # Only the recipient may answer a request
    if (
        friendship is None
        or friendship.friend_id != ctx.user_id
        or friendship.status != FriendshipStatus.pending
    ):
        raise FriendshipNotFoundError("Friend request not found or already processed")
    return friendship


async def accept_request(
    store: NoteStore,
    ctx: RequestContext,
    request_id: uuid.UUID,
    events: EventSink | None = None,
) -> Friendship:
    """Accept a pending request addressed to the acting user.

    Raises:
        FriendshipNotFoundError: If no such pending request exists
    """
    await _pending_request_for(store, ctx, request_id)
    friendship = await store.set_friendship_status(request_id, FriendshipStatus.accepted)
    if friendship is None:
        raise FriendshipNotFoundError("Friend request not found or already processed")
    logger.info(f"Friend request {request_id} accepted by {ctx.user_id}")
    await _emit(events, "friendship.accepted", ctx, friendship)
    return friendship


async def reject_request(
    store: NoteStore,
    ctx: RequestContext,
    request_id: uuid.UUID,
    events: EventSink | None = None,
) -> Friendship:
    """Reject a pending request addressed to the acting user.

    Raises:
        FriendshipNotFoundError: If no such pending request exists
    """
    await _pending_request_for(store, ctx, request_id)
    friendship = await store.set_friendship_status(request_id, FriendshipStatus.rejected)
    if friendship is None:
        raise FriendshipNotFoundError("Friend request not found or already processed")
    logger.info(f"Friend request {request_id} rejected by {ctx.user_id}")
    await _emit(events, "friendship.rejected", ctx, friendship)
    return friendship


async def list_friends(store: NoteStore, ctx: RequestContext) -> list[uuid.UUID]:
    """IDs of users with an accepted friendship with the acting user."""
    friendships = await store.list_friendships(ctx.user_id, status=FriendshipStatus.accepted)
    return [f.friend_id if f.user_id == ctx.user_id else f.user_id for f in friendships]


async def list_pending_requests(store: NoteStore, ctx: RequestContext) -> list[Friendship]:
    """Pending requests addressed to the acting user."""
    friendships = await store.list_friendships(ctx.user_id, status=FriendshipStatus.pending)
    return [f for f in friendships if f.friend_id == ctx.user_id]


async def remove_friend(
    store: NoteStore,
    ctx: RequestContext,
    friend_id: uuid.UUID,
    events: EventSink | None = None,
) -> int:
    """Remove a friend in both directions and cascade citation cleanup.

    The friend's notes are stripped from the acting user's compiled notes;
    the friend's own compiled notes are untouched.

    Returns:
        Number of compiled notes whose citations were updated

    Raises:
        FriendshipNotFoundError: If no friendship exists with friend_id
    """
    friendship = await store.find_friendship(ctx.user_id, friend_id)
    if friendship is None:
        raise FriendshipNotFoundError(f"No friendship with {friend_id}")

    changed = await cascade_friend_removed(store, ctx, friend_id, events)
    deleted = await store.delete_friendships_between(ctx.user_id, friend_id)
    logger.info(
        f"Removed friend {friend_id} for {ctx.user_id}: {deleted} record(s) deleted, "
        f"{len(changed)} compiled note(s) updated"
    )
    await _emit(events, "friendship.removed", ctx, friendship)
    return len(changed)
