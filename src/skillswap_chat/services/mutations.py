"""Reactions, replies and deletion applied to individual messages."""

import logging
from dataclasses import dataclass, replace
from uuid import UUID

from skillswap_chat.domain.errors import (
    EmptyContentError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from skillswap_chat.domain.messages import MessageKind, MessageRecord, encode_reply
from skillswap_chat.services.messages import MessageRepository, MessageSyncService

logger = logging.getLogger(__name__)

QUICK_REACTIONS = ("😍", "😂", "😢", "😡", "👍", "👋")


def toggled_reactions(reactions: dict[str, int], emoji: str) -> dict[str, int]:
    """Return the reaction map with ``emoji`` switched on or off.

    Reactions are shared by the room: whoever toggles an emoji that is on turns
    it off for everyone.
    """
    updated = dict(reactions)
    if updated.get(emoji):
        del updated[emoji]
    else:
        updated[emoji] = 1
    return updated


@dataclass
class MessageMutator:
    """Applies reaction toggles, replies and deletions."""

    message_repository: MessageRepository
    sync_service: MessageSyncService

    def toggle_reaction(self, message_id: int, emoji: str) -> MessageRecord:
        """Flip an emoji reaction on a message and persist it immediately."""
        if not emoji.strip():
            raise ValidationError("Emoji must not be empty")
        message = self._require_message(message_id)
        reactions = toggled_reactions(message.reactions, emoji)
        self.message_repository.set_reactions(message_id, reactions)
        return replace(message, reactions=reactions)

    def reply(
        self, session_id: UUID, sender_id: UUID, target_message_id: int, text: str
    ) -> MessageRecord:
        """Send a reply embedding a snapshot of the target message."""
        if not text.strip():
            raise EmptyContentError("Reply text must not be empty")
        target = self._require_message(target_message_id)
        if target.session_id != session_id:
            raise ValidationError("Reply target belongs to another session")
        return self.sync_service.send(
            session_id, sender_id, MessageKind.REPLY, encode_reply(text, target)
        )

    def delete_message(self, message_id: int, requester_id: UUID) -> None:
        """Hard-delete a message; only its sender may do so."""
        message = self._require_message(message_id)
        if message.sender_id != requester_id:
            raise ForbiddenError("Only the sender can delete a message")
        self.message_repository.delete_message(message_id)
        logger.info(
            "Message deleted",
            extra={"session_id": str(message.session_id), "message_id": message_id},
        )

    def _require_message(self, message_id: int) -> MessageRecord:
        message = self.message_repository.get_message(message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        return message
