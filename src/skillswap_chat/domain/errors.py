"""Error taxonomy for the chat session engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from skillswap_chat.domain.sessions import SessionRecord


class ChatError(Exception):
    """Base class for all chat engine errors."""


class ValidationError(ChatError):
    """Bad input rejected locally before any remote call."""


class EmptyContentError(ValidationError):
    """A text or reply message had no content."""


class SelfChatError(ValidationError):
    """A user tried to open a session with themselves."""


class StateConflictError(ChatError):
    """The operation is not allowed in the session's current state."""

    def __init__(self, message: str, session: SessionRecord) -> None:
        super().__init__(message)
        self.session = session


class SessionClosedError(StateConflictError):
    """Sending is disabled because the session is ended or closed."""


class AlreadyClosedError(StateConflictError):
    """The session is already closed."""


class AlreadyReviewedError(StateConflictError):
    """The reviewer already submitted a review for this session."""


class ForbiddenError(ChatError):
    """The requester is not allowed to perform the operation."""


class NotFoundError(ChatError):
    """A referenced session or message does not exist."""


class StoreUnavailableError(ChatError):
    """The data store could not be reached or rejected the request."""


class UniqueViolationError(StoreUnavailableError):
    """An insert collided with a uniqueness constraint."""
