"""Domain models for chat messages."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID


class MessageKind(str, Enum):
    """Kinds of message a participant can append to the log."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    LINK = "link"
    REPLY = "reply"


TEXTUAL_KINDS = frozenset({MessageKind.TEXT, MessageKind.REPLY})


@dataclass(frozen=True)
class MessageRecord:
    """A single entry of a session's append-only message log."""

    id: int
    session_id: UUID
    sender_id: UUID
    kind: MessageKind
    content: str
    created_at: datetime
    reactions: dict[str, int] = field(default_factory=dict)
    is_read: bool = False

    @property
    def order_key(self) -> tuple[datetime, int]:
        return self.created_at, self.id


@dataclass(frozen=True)
class ReplyTarget:
    """Snapshot of the message being replied to."""

    id: int
    content: str
    sender_id: UUID


@dataclass(frozen=True)
class ReplyEnvelope:
    """Decoded content of a ``reply`` message."""

    text: str
    reply_to: ReplyTarget


def encode_reply(text: str, target: MessageRecord) -> str:
    """Build the JSON content of a reply, snapshotting the target message."""
    return json.dumps(
        {
            "text": text,
            "reply_to": {
                "id": target.id,
                "content": target.content,
                "sender_id": str(target.sender_id),
            },
        },
        ensure_ascii=False,
    )


def parse_reply(content: str) -> ReplyEnvelope | None:
    """Decode reply content, returning None when it is not a reply envelope."""
    try:
        data = json.loads(content)
    except ValueError:
        return None
    if not isinstance(data, dict) or not isinstance(data.get("reply_to"), dict):
        return None
    target = data["reply_to"]
    try:
        return ReplyEnvelope(
            text=str(data.get("text", "")),
            reply_to=ReplyTarget(
                id=int(target["id"]),
                content=str(target.get("content", "")),
                sender_id=UUID(str(target["sender_id"])),
            ),
        )
    except (KeyError, TypeError, ValueError):
        return None


def display_text(message: MessageRecord) -> str:
    """Return the text a reader sees for the message."""
    if message.kind is MessageKind.REPLY:
        envelope = parse_reply(message.content)
        if envelope is not None:
            return envelope.text
    return message.content
