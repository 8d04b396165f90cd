"""Message repository on top of the data store port."""

from dataclasses import dataclass
from uuid import UUID

from skillswap_chat.adapters.rows import EPOCH, parse_timestamp
from skillswap_chat.domain.messages import MessageKind, MessageRecord
from skillswap_chat.services.messages import MessageRepository
from skillswap_chat.services.store import DataStore, Order, eq

TABLE = "messages"
MARK_READ_FUNCTION = "mark_messages_as_read"


@dataclass
class StoreMessageRepository(MessageRepository):
    """Maps ``messages`` rows to message records."""

    store: DataStore

    def list_for_session(self, session_id: UUID) -> list[MessageRecord]:
        """Return the session's log ordered by creation time, then id."""
        rows = self.store.query(
            TABLE,
            [eq("chat_id", session_id)],
            order=[Order("created_at"), Order("id")],
        )
        return [_parse_row(row) for row in rows]

    def get_message(self, message_id: int) -> MessageRecord | None:
        rows = self.store.query(TABLE, [eq("id", message_id)], limit=1)
        return _parse_row(rows[0]) if rows else None

    def create_message(
        self, session_id: UUID, sender_id: UUID, kind: MessageKind, content: str
    ) -> MessageRecord:
        row = self.store.insert(
            TABLE,
            {
                "chat_id": str(session_id),
                "sender_id": str(sender_id),
                "kind": kind.value,
                "content": content,
                "is_read": False,
            },
        )
        return _parse_row(row)

    def mark_read(self, session_id: UUID, viewer_id: UUID) -> None:
        """Mark every message not sent by the viewer as read, server-side."""
        self.store.call_aggregate(
            MARK_READ_FUNCTION,
            {"chat_id_param": str(session_id), "user_id_param": str(viewer_id)},
        )

    def set_reactions(self, message_id: int, reactions: dict[str, int]) -> None:
        self.store.update(
            TABLE,
            [eq("id", message_id)],
            {"reactions": reactions or None},
        )

    def delete_message(self, message_id: int) -> None:
        self.store.delete(TABLE, [eq("id", message_id)])


def _parse_row(row: dict[str, object]) -> MessageRecord:
    reactions_raw = row.get("reactions") or {}
    return MessageRecord(
        id=int(row["id"]),
        session_id=UUID(str(row["chat_id"])),
        sender_id=UUID(str(row["sender_id"])),
        kind=MessageKind(row.get("kind", MessageKind.TEXT.value)),
        content=str(row.get("content") or ""),
        created_at=parse_timestamp(row.get("created_at")) or EPOCH,
        reactions={
            str(emoji): int(count)
            for emoji, count in dict(reactions_raw).items()
            if count
        },
        is_read=bool(row.get("is_read", False)),
    )
