"""Chat session lifecycle: opening sessions and listing a user's active chats."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from skillswap_chat.domain.errors import (
    NotFoundError,
    SelfChatError,
    UniqueViolationError,
)
from skillswap_chat.domain.sessions import SessionRecord, SessionStatus

logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Persistence interface for chat sessions."""

    def find_open_between(self, user_a: UUID, user_b: UUID) -> SessionRecord | None:
        """Return the non-closed session for the pair, if present."""

    def create_session(self, user_a: UUID, user_b: UUID) -> SessionRecord:
        """Create an active session; raises UniqueViolationError on a race."""

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""

    def list_open_for_user(self, user_id: UUID) -> list[SessionRecord]:
        """Return every non-closed session the user participates in."""

    def update_preview(self, session_id: UUID, preview: str, at: datetime) -> None:
        """Store the last message preview and timestamp."""

    def compare_and_set_review_state(
        self,
        session_id: UUID,
        expected_version: int,
        reviewed_by: frozenset[UUID],
        status: SessionStatus,
    ) -> SessionRecord | None:
        """Persist review state if the version matches; None when it does not."""


@dataclass
class SessionService:
    """Opens sessions and lists the sessions a user can still act on."""

    repository: SessionRepository

    def start_session(self, user_a: UUID, user_b: UUID) -> SessionRecord:
        """Return the open session between two users, creating it if needed."""
        if user_a == user_b:
            raise SelfChatError("Cannot start a chat with yourself")
        existing = self.repository.find_open_between(user_a, user_b)
        if existing is not None:
            return existing
        try:
            created = self.repository.create_session(user_a, user_b)
        except UniqueViolationError:
            winner = self.repository.find_open_between(user_a, user_b)
            if winner is None:
                raise
            logger.info(
                "Concurrent session start resolved to existing session",
                extra={"session_id": str(winner.id)},
            )
            return winner
        logger.info("Session started", extra={"session_id": str(created.id)})
        return created

    def get_session(self, session_id: UUID) -> SessionRecord:
        """Return a session or raise NotFoundError."""
        session = self.repository.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session

    def list_sessions(self, user_id: UUID) -> list[SessionRecord]:
        """Return the user's sessions, most recent activity first.

        Sessions every participant has already reviewed are hidden even if the
        status has not been advanced to ``closed`` yet.
        """
        sessions = [
            session
            for session in self.repository.list_open_for_user(user_id)
            if session.status is not SessionStatus.CLOSED
            and not session.fully_reviewed
        ]
        return sorted(sessions, key=lambda session: session.sort_key, reverse=True)
