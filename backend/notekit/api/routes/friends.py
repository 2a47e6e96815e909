"""Friendship endpoints - requests, acceptance, listing and removal."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from backend.notekit.api.auth import get_current_context
from backend.notekit.api.deps import get_note_store
from backend.notekit.db.context import RequestContext
from backend.notekit.db.repositories import NoteStore
from backend.notekit.errors import FriendshipError, FriendshipNotFoundError
from backend.notekit.events import EventSink, get_event_sink
from backend.notekit.models.friends import Friendship
from backend.notekit.sharing import friends

router = APIRouter(prefix="/friends", tags=["friends"])


class FriendRequestBody(BaseModel):
    """Request body for POST /friends/requests."""

    friend_id: uuid.UUID


class FriendListResponse(BaseModel):
    """Response for GET /friends."""

    friends: list[uuid.UUID]
    pending_requests: list[Friendship]


class RemoveFriendResponse(BaseModel):
    """Response for DELETE /friends/{friend_id}."""

    removed: bool
    compiled_notes_updated: int


def _friendship_http_error(e: FriendshipError) -> HTTPException:
    if isinstance(e, FriendshipNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/requests", response_model=Friendship, status_code=status.HTTP_201_CREATED)
async def send_request(
    body: FriendRequestBody,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
    events: Annotated[EventSink, Depends(get_event_sink)],
) -> Friendship:
    """Send a friend request to another user."""
    try:
        return await friends.send_request(store, ctx, body.friend_id, events)
    except FriendshipError as e:
        raise _friendship_http_error(e) from e


@router.post("/requests/{request_id}/accept", response_model=Friendship)
async def accept_request(
    request_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
    events: Annotated[EventSink, Depends(get_event_sink)],
) -> Friendship:
    """Accept a pending request addressed to the current user."""
    try:
        return await friends.accept_request(store, ctx, request_id, events)
    except FriendshipError as e:
        raise _friendship_http_error(e) from e


@router.post("/requests/{request_id}/reject", response_model=Friendship)
async def reject_request(
    request_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
    events: Annotated[EventSink, Depends(get_event_sink)],
) -> Friendship:
    """Reject a pending request addressed to the current user."""
    try:
        return await friends.reject_request(store, ctx, request_id, events)
    except FriendshipError as e:
        raise _friendship_http_error(e) from e


@router.get("", response_model=FriendListResponse)
async def list_friends(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
) -> FriendListResponse:
    """List accepted friends and incoming pending requests."""
    return FriendListResponse(
        friends=await friends.list_friends(store, ctx),
        pending_requests=await friends.list_pending_requests(store, ctx),
    )


@router.delete("/{friend_id}", response_model=RemoveFriendResponse)
async def remove_friend(
    friend_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    store: Annotated[NoteStore, Depends(get_note_store)],
    events: Annotated[EventSink, Depends(get_event_sink)],
) -> RemoveFriendResponse:
    """Remove a friend in both directions.

    The friend's notes are stripped from the current user's compiled notes.
    """
    try:
        updated = await friends.remove_friend(store, ctx, friend_id, events)
    except FriendshipError as e:
        raise _friendship_http_error(e) from e

    return RemoveFriendResponse(removed=True, compiled_notes_updated=updated)
