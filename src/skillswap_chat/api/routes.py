"""Chat API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    Header,
    HTTPException,
    Request,
    Response,
    UploadFile,
    status,
)

from skillswap_chat.api.schemas import (
    HeartbeatRequest,
    MessageModel,
    PresenceModel,
    RatingModel,
    ReactionRequest,
    ReplyRequest,
    ReviewRequest,
    SendMessageRequest,
    SessionDetailModel,
    SessionModel,
    StartSessionRequest,
    TypingRequest,
)
from skillswap_chat.domain.errors import ForbiddenError
from skillswap_chat.domain.presence import TypingSignal
from skillswap_chat.services.mutations import QUICK_REACTIONS

if TYPE_CHECKING:
    from skillswap_chat.containers import AppContainer


def _get_api_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.api_token


async def require_token(
    x_api_token: str | None = Header(default=None),
    api_token: str = Depends(_get_api_token),
) -> None:
    """Ensure requests include a valid API token."""
    if not x_api_token or x_api_token != api_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


router = APIRouter(tags=["chat"], dependencies=[Depends(require_token)])


def _container(request: Request) -> AppContainer:
    return request.app.state.container


def _require_participant(
    container: AppContainer, session_id: UUID, user_id: UUID
) -> None:
    session = container.session_service.get_session(session_id)
    if not session.has_participant(user_id):
        raise ForbiddenError("User is not a participant of this session")


@router.post("/sessions", status_code=status.HTTP_201_CREATED)
async def start_session(body: StartSessionRequest, request: Request) -> SessionModel:
    """Open the chat between two users, reusing an open one."""
    service = _container(request).session_service
    session = service.start_session(body.user_a, body.user_b)
    return SessionModel.from_record(session)


@router.get("/users/{user_id}/sessions")
async def list_sessions(user_id: UUID, request: Request) -> dict[str, object]:
    """Return the user's chats that are not closed, newest activity first."""
    sessions = _container(request).session_service.list_sessions(user_id)
    return {"sessions": [SessionModel.from_record(session) for session in sessions]}


@router.get("/sessions/{session_id}")
async def session_detail(
    session_id: UUID, viewer_id: UUID, request: Request
) -> SessionDetailModel:
    """Return messages and state; marks the other party's messages read."""
    detail = _container(request).sync_service.detail(session_id, viewer_id)
    return SessionDetailModel.from_detail(detail)


@router.post("/sessions/{session_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
    session_id: UUID, body: SendMessageRequest, request: Request
) -> MessageModel:
    message = _container(request).sync_service.send(
        session_id, body.sender_id, body.kind, body.content
    )
    return MessageModel.from_record(message)


@router.post("/sessions/{session_id}/replies", status_code=status.HTTP_201_CREATED)
async def reply(session_id: UUID, body: ReplyRequest, request: Request) -> MessageModel:
    message = _container(request).mutator.reply(
        session_id, body.sender_id, body.reply_to_id, body.text
    )
    return MessageModel.from_record(message)


@router.post("/sessions/{session_id}/media", status_code=status.HTTP_201_CREATED)
async def send_media(
    session_id: UUID,
    request: Request,
    sender_id: UUID = Form(...),
    file: UploadFile = File(...),
) -> MessageModel:
    """Upload a file and post it as an image, video or link message."""
    data = await file.read()
    message = await _container(request).sync_service.send_media(
        session_id,
        sender_id,
        data,
        file.filename or "upload",
        file.content_type or "application/octet-stream",
    )
    return MessageModel.from_record(message)


@router.get("/reactions")
async def quick_reactions() -> dict[str, list[str]]:
    return {"reactions": list(QUICK_REACTIONS)}


@router.post("/messages/{message_id}/reactions")
async def toggle_reaction(
    message_id: int, body: ReactionRequest, request: Request
) -> MessageModel:
    message = _container(request).mutator.toggle_reaction(message_id, body.emoji)
    return MessageModel.from_record(message)


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(
    message_id: int, requester_id: UUID, request: Request
) -> Response:
    _container(request).mutator.delete_message(message_id, requester_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sessions/{session_id}/reviews")
async def submit_review(
    session_id: UUID, body: ReviewRequest, request: Request
) -> SessionModel:
    """Rate the other participant and advance the session state."""
    session = _container(request).review_gate.submit_review(
        session_id,
        body.reviewer_id,
        body.rating,
        body.comment,
        dict(body.dimension_scores),
    )
    return SessionModel.from_record(session)


@router.post("/sessions/{session_id}/reviews/reconcile")
async def reconcile_reviews(session_id: UUID, request: Request) -> SessionModel:
    """Re-derive the review state from stored reviews."""
    session = _container(request).review_gate.reconcile_review_state(session_id)
    return SessionModel.from_record(session)


@router.get("/users/{user_id}/rating")
async def rating(user_id: UUID, request: Request) -> RatingModel:
    summary = _container(request).review_gate.rating_summary(user_id)
    return RatingModel.from_summary(summary)


@router.post("/sessions/{session_id}/typing", status_code=status.HTTP_202_ACCEPTED)
async def publish_typing(
    session_id: UUID, body: TypingRequest, request: Request
) -> dict[str, str]:
    container = _container(request)
    _require_participant(container, session_id, body.user_id)
    await container.typing_monitor.publish(
        TypingSignal(
            session_id=session_id, user_id=body.user_id, is_typing=body.is_typing
        )
    )
    return {"status": "ok"}


@router.get("/sessions/{session_id}/typing")
async def typing_users(
    session_id: UUID, viewer_id: UUID, request: Request
) -> dict[str, object]:
    container = _container(request)
    _require_participant(container, session_id, viewer_id)
    users = await container.typing_monitor.typing_users(session_id, viewer_id)
    return {"typing": sorted(str(user_id) for user_id in users)}


@router.post("/presence/heartbeat", status_code=status.HTTP_202_ACCEPTED)
async def heartbeat(body: HeartbeatRequest, request: Request) -> dict[str, str]:
    await _container(request).presence_service.heartbeat(body.user_id)
    return {"status": "ok"}


@router.get("/users/{user_id}/presence")
async def presence(user_id: UUID, request: Request) -> PresenceModel:
    tracker = _container(request).presence_service.tracker
    return PresenceModel.from_entry(user_id, tracker.entry(user_id))
