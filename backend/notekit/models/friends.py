"""Friendship models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class FriendshipStatus(str, Enum):
    """Friendship request status."""

    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class Friendship(BaseModel):
    """Directed friendship record; user_id sent the request to friend_id."""

    id: UUID
    user_id: UUID
    friend_id: UUID
    status: FriendshipStatus = FriendshipStatus.pending
    created_at: datetime
