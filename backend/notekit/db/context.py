"""Request context for ownership enforcement."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class RequestContext:
    """Request context carrying the acting user's identity.

    Passed explicitly to every store and engine call; the value is trusted
    as already authenticated.
    """

    user_id: UUID
