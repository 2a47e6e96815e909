"""Typed errors raised by the note engine."""


class NotekitError(Exception):
    """Base class for all note engine errors."""

    pass


class InsufficientSourcesError(NotekitError):
    """Compilation requested with fewer than two distinct source notes."""

    pass


class GenerationFailedError(NotekitError):
    """Text generation call errored, timed out, or is not configured."""

    pass


class MalformedGenerationResponseError(NotekitError):
    """Text generator returned output that does not parse into the expected shape."""

    def __init__(self, message: str, raw_text: str | None = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text


class CompilationFailedError(NotekitError):
    """Compiled note could not be synthesized; nothing was persisted."""

    pass


class NoteNotFoundError(NotekitError):
    """Note does not exist or is not readable by the acting user."""

    pass


class FriendshipError(NotekitError):
    """Friendship request is invalid for the acting user."""

    pass


class FriendshipNotFoundError(FriendshipError):
    """Friendship or friend request does not exist for the acting user."""

    pass
