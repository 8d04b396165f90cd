"""Domain models for chat sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from skillswap_chat.domain.messages import MessageRecord


class SessionStatus(str, Enum):
    """Lifecycle states of a chat session, in transition order."""

    ACTIVE = "active"
    ENDED = "ended"
    CLOSED = "closed"


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted two-party chat session."""

    id: UUID
    participant_a: UUID
    participant_b: UUID
    status: SessionStatus
    reviewed_by: frozenset[UUID]
    last_message_preview: str | None
    last_message_at: datetime | None
    created_at: datetime
    version: int = 0

    @property
    def participants(self) -> frozenset[UUID]:
        return frozenset({self.participant_a, self.participant_b})

    def has_participant(self, user_id: UUID) -> bool:
        return user_id in self.participants

    def other_participant(self, user_id: UUID) -> UUID:
        """Return the participant that is not ``user_id``."""
        if user_id == self.participant_a:
            return self.participant_b
        return self.participant_a

    @property
    def fully_reviewed(self) -> bool:
        return self.participants <= self.reviewed_by

    @property
    def sort_key(self) -> datetime:
        return self.last_message_at or self.created_at


def canonical_pair(user_a: UUID, user_b: UUID) -> tuple[UUID, UUID]:
    """Order a participant pair so the unordered pair has a single key."""
    if str(user_a) <= str(user_b):
        return user_a, user_b
    return user_b, user_a


def derive_status(
    participants: frozenset[UUID], reviewed_by: frozenset[UUID]
) -> SessionStatus:
    """Return the status implied by the set of reviewers."""
    if participants <= reviewed_by:
        return SessionStatus.CLOSED
    if reviewed_by:
        return SessionStatus.ENDED
    return SessionStatus.ACTIVE


@dataclass(frozen=True)
class SessionDetail:
    """A session as seen by one viewer, with its reconciled message log."""

    session: SessionRecord
    viewer_id: UUID
    messages: list[MessageRecord]
    unread_count: int

    @property
    def can_send(self) -> bool:
        return self.session.status is SessionStatus.ACTIVE

    @property
    def viewer_reviewed(self) -> bool:
        return self.viewer_id in self.session.reviewed_by

    @property
    def awaiting_other_review(self) -> bool:
        return self.session.status is SessionStatus.ENDED and self.viewer_reviewed
