"""Domain models for presence and typing indicators."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class PresenceEntry:
    """Last known liveness of a user."""

    user_id: UUID
    is_online: bool
    last_seen_at: datetime


@dataclass(frozen=True)
class TypingSignal:
    """Broadcast event telling a session that a user started or stopped typing."""

    session_id: UUID
    user_id: UUID
    is_typing: bool
