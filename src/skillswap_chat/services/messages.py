"""Message log synchronization, read receipts and sending."""

import logging
from dataclasses import dataclass, field, replace
from typing import Protocol
from uuid import UUID

from skillswap_chat.domain.errors import (
    EmptyContentError,
    ForbiddenError,
    NotFoundError,
    SessionClosedError,
    ValidationError,
)
from skillswap_chat.domain.messages import (
    TEXTUAL_KINDS,
    MessageKind,
    MessageRecord,
    display_text,
)
from skillswap_chat.domain.sessions import SessionDetail, SessionRecord, SessionStatus
from skillswap_chat.services.media import MediaStore, kind_for_content_type
from skillswap_chat.services.sessions import SessionRepository

logger = logging.getLogger(__name__)


class MessageRepository(Protocol):
    """Persistence interface for session message logs."""

    def list_for_session(self, session_id: UUID) -> list[MessageRecord]:
        """Return the full log ordered by creation time, then id."""

    def get_message(self, message_id: int) -> MessageRecord | None:
        """Return a message by id, if present."""

    def create_message(
        self, session_id: UUID, sender_id: UUID, kind: MessageKind, content: str
    ) -> MessageRecord:
        """Append a message and return it."""

    def mark_read(self, session_id: UUID, viewer_id: UUID) -> None:
        """Mark messages from the other participant as read."""

    def set_reactions(self, message_id: int, reactions: dict[str, int]) -> None:
        """Replace a message's reaction map."""

    def delete_message(self, message_id: int) -> None:
        """Hard-delete a message."""


@dataclass
class MessageLog:
    """A viewer's ordered, deduplicated copy of a session's message log."""

    _messages: dict[int, MessageRecord] = field(default_factory=dict)

    def merge_snapshot(self, snapshot: list[MessageRecord]) -> bool:
        """Replace the view with an authoritative snapshot.

        Returns True when the visible sequence changed.
        """
        merged = {
            message.id: _merge(self._messages.get(message.id), message)
            for message in snapshot
        }
        changed = merged != self._messages
        self._messages = merged
        return changed

    def apply_event(self, message: MessageRecord) -> None:
        """Merge a pushed insert or update; duplicates update in place."""
        self._messages[message.id] = _merge(self._messages.get(message.id), message)

    def discard(self, message_id: int) -> None:
        self._messages.pop(message_id, None)

    def get(self, message_id: int) -> MessageRecord | None:
        return self._messages.get(message_id)

    def messages(self) -> list[MessageRecord]:
        return sorted(self._messages.values(), key=lambda message: message.order_key)

    def __len__(self) -> int:
        return len(self._messages)


def _merge(existing: MessageRecord | None, incoming: MessageRecord) -> MessageRecord:
    if existing is None or incoming.is_read or not existing.is_read:
        return incoming
    return replace(incoming, is_read=True)


def unread_count(messages: list[MessageRecord], viewer_id: UUID) -> int:
    """Count messages from the other participant the viewer has not read."""
    return sum(
        1
        for message in messages
        if not message.is_read and message.sender_id != viewer_id
    )


def search(messages: list[MessageRecord], term: str) -> list[MessageRecord]:
    """Filter messages whose visible text contains ``term``, ignoring case."""
    needle = term.strip().lower()
    if not needle:
        return list(messages)
    return [message for message in messages if needle in display_text(message).lower()]


def preview_for(kind: MessageKind, content: str) -> str:
    """Return the session-list preview for a newly sent message."""
    if kind is MessageKind.TEXT:
        return content
    return f"[{kind.value.capitalize()}]"


@dataclass
class MessageSyncService:
    """Reconciles message logs and appends new messages."""

    session_repository: SessionRepository
    message_repository: MessageRepository
    media_store: MediaStore | None = None

    def reconcile(
        self, session_id: UUID, viewer_id: UUID, log: MessageLog | None = None
    ) -> list[MessageRecord]:
        """Fetch the log, mark incoming messages read and merge into ``log``."""
        snapshot = self.message_repository.list_for_session(session_id)
        if unread_count(snapshot, viewer_id):
            self.message_repository.mark_read(session_id, viewer_id)
            snapshot = self.message_repository.list_for_session(session_id)
        target = log if log is not None else MessageLog()
        if target.merge_snapshot(snapshot):
            logger.debug(
                "Message log changed",
                extra={"session_id": str(session_id), "count": len(target)},
            )
        return target.messages()

    def send(
        self, session_id: UUID, sender_id: UUID, kind: MessageKind | str, content: str
    ) -> MessageRecord:
        """Append a message if the session is still active."""
        message_kind = _parse_kind(kind)
        if message_kind in TEXTUAL_KINDS and not content.strip():
            raise EmptyContentError("Message content must not be empty")
        session = self.require_sendable(session_id, sender_id)
        message = self.message_repository.create_message(
            session.id, sender_id, message_kind, content
        )
        self.session_repository.update_preview(
            session.id, preview_for(message_kind, content), message.created_at
        )
        logger.info(
            "Message sent",
            extra={
                "session_id": str(session.id),
                "message_id": message.id,
                "kind": message_kind.value,
            },
        )
        return message

    async def send_media(  # noqa: PLR0913
        self,
        session_id: UUID,
        sender_id: UUID,
        data: bytes,
        filename: str,
        content_type: str,
    ) -> MessageRecord:
        """Upload a file and send its URL as an image, video or link message."""
        if self.media_store is None:
            raise ValidationError("Media uploads are not configured")
        self.require_sendable(session_id, sender_id)
        url = await self.media_store.upload(data, filename, content_type)
        kind = kind_for_content_type(content_type)
        return self.send(session_id, sender_id, kind, url)

    def require_sendable(self, session_id: UUID, sender_id: UUID) -> SessionRecord:
        """Return the session if ``sender_id`` may post to it right now."""
        session = self.session_repository.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        if not session.has_participant(sender_id):
            raise ForbiddenError("Sender is not a participant of this session")
        if session.status is not SessionStatus.ACTIVE:
            raise SessionClosedError(
                f"Session is {session.status.value}; sending is disabled", session
            )
        return session

    def detail(
        self, session_id: UUID, viewer_id: UUID, log: MessageLog | None = None
    ) -> SessionDetail:
        """Return the session as seen by ``viewer_id`` after reconciling."""
        session = self.session_repository.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        if not session.has_participant(viewer_id):
            raise ForbiddenError("Viewer is not a participant of this session")
        messages = self.reconcile(session_id, viewer_id, log)
        return SessionDetail(
            session=session,
            viewer_id=viewer_id,
            messages=messages,
            unread_count=unread_count(messages, viewer_id),
        )


def _parse_kind(kind: MessageKind | str) -> MessageKind:
    try:
        return MessageKind(kind)
    except ValueError as exc:
        raise ValidationError(f"Unknown message kind: {kind}") from exc
