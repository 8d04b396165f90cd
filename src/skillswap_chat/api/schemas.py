"""Pydantic request and response models for the chat API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from skillswap_chat.domain.messages import MessageKind, MessageRecord, parse_reply
from skillswap_chat.domain.presence import PresenceEntry
from skillswap_chat.domain.reviews import MAX_RATING, MIN_RATING, RatingSummary
from skillswap_chat.domain.sessions import SessionDetail, SessionRecord


class StartSessionRequest(BaseModel):
    """Open (or reopen) the chat between two users."""

    user_a: UUID
    user_b: UUID


class SendMessageRequest(BaseModel):
    sender_id: UUID
    kind: MessageKind = MessageKind.TEXT
    content: str


class ReplyRequest(BaseModel):
    sender_id: UUID
    reply_to_id: int
    text: str


class ReactionRequest(BaseModel):
    emoji: str = Field(min_length=1)


class ReviewRequest(BaseModel):
    """Rating of the other participant; dimension scores are optional."""

    reviewer_id: UUID
    rating: int = Field(ge=MIN_RATING, le=MAX_RATING)
    comment: str = ""
    dimension_scores: dict[str, int | None] = Field(default_factory=dict)


class TypingRequest(BaseModel):
    user_id: UUID
    is_typing: bool


class HeartbeatRequest(BaseModel):
    user_id: UUID


class ReplyToModel(BaseModel):
    id: int
    content: str
    sender_id: UUID


class MessageModel(BaseModel):
    id: int
    session_id: UUID
    sender_id: UUID
    kind: MessageKind
    content: str
    reactions: dict[str, int]
    is_read: bool
    created_at: datetime
    reply_to: ReplyToModel | None = None
    text: str | None = None

    @classmethod
    def from_record(cls, message: MessageRecord) -> "MessageModel":
        reply = (
            parse_reply(message.content)
            if message.kind is MessageKind.REPLY
            else None
        )
        return cls(
            id=message.id,
            session_id=message.session_id,
            sender_id=message.sender_id,
            kind=message.kind,
            content=message.content,
            reactions=message.reactions,
            is_read=message.is_read,
            created_at=message.created_at,
            reply_to=(
                ReplyToModel(
                    id=reply.reply_to.id,
                    content=reply.reply_to.content,
                    sender_id=reply.reply_to.sender_id,
                )
                if reply
                else None
            ),
            text=reply.text if reply else None,
        )


class SessionModel(BaseModel):
    id: UUID
    participants: list[UUID]
    status: str
    reviewed_by: list[UUID]
    last_message_preview: str | None
    last_message_at: datetime | None
    created_at: datetime

    @classmethod
    def from_record(cls, session: SessionRecord) -> "SessionModel":
        return cls(
            id=session.id,
            participants=[session.participant_a, session.participant_b],
            status=session.status.value,
            reviewed_by=sorted(session.reviewed_by, key=str),
            last_message_preview=session.last_message_preview,
            last_message_at=session.last_message_at,
            created_at=session.created_at,
        )


class SessionDetailModel(BaseModel):
    session: SessionModel
    messages: list[MessageModel]
    unread_count: int
    can_send: bool
    viewer_reviewed: bool
    awaiting_other_review: bool

    @classmethod
    def from_detail(cls, detail: SessionDetail) -> "SessionDetailModel":
        return cls(
            session=SessionModel.from_record(detail.session),
            messages=[MessageModel.from_record(message) for message in detail.messages],
            unread_count=detail.unread_count,
            can_send=detail.can_send,
            viewer_reviewed=detail.viewer_reviewed,
            awaiting_other_review=detail.awaiting_other_review,
        )


class RatingModel(BaseModel):
    user_id: UUID
    average_rating: float
    review_count: int
    dimension_averages: dict[str, float]

    @classmethod
    def from_summary(cls, summary: RatingSummary) -> "RatingModel":
        return cls(
            user_id=summary.user_id,
            average_rating=summary.average_rating,
            review_count=summary.review_count,
            dimension_averages=summary.dimension_averages,
        )


class PresenceModel(BaseModel):
    user_id: UUID
    is_online: bool
    last_seen_at: datetime | None

    @classmethod
    def from_entry(cls, user_id: UUID, entry: PresenceEntry | None) -> "PresenceModel":
        if entry is None:
            return cls(user_id=user_id, is_online=False, last_seen_at=None)
        return cls(
            user_id=user_id, is_online=entry.is_online, last_seen_at=entry.last_seen_at
        )
