"""Client-side runtime for one user looking at their chats."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from uuid import UUID

from skillswap_chat.domain.messages import MessageKind, MessageRecord
from skillswap_chat.domain.sessions import SessionRecord
from skillswap_chat.services.messages import (
    MessageLog,
    MessageSyncService,
    unread_count,
)
from skillswap_chat.services.mutations import MessageMutator, toggled_reactions
from skillswap_chat.services.presence import (
    TYPING_EVENT,
    PresenceService,
    TypingNotifier,
    TypingTracker,
    typing_topic,
)
from skillswap_chat.services.realtime import RealtimeChannel
from skillswap_chat.services.reviews import ReviewGate
from skillswap_chat.services.sessions import SessionService

logger = logging.getLogger(__name__)


@dataclass
class ChatView:
    """Polls the session list and the open session, and owns realtime state.

    Every timer and subscription started by the view is torn down by
    ``close()``; use it as an async context manager.
    """

    viewer_id: UUID
    session_service: SessionService
    sync_service: MessageSyncService
    mutator: MessageMutator
    review_gate: ReviewGate
    channel: RealtimeChannel
    presence: PresenceService
    poll_interval_seconds: float = 2.0
    typing_decay_seconds: float = 3.0
    heartbeat_interval_seconds: float = 10.0
    sessions: list[SessionRecord] = field(default_factory=list)
    active_session_id: UUID | None = None
    log: MessageLog = field(default_factory=MessageLog)
    typing: TypingTracker | None = None
    notifier: TypingNotifier | None = None
    _tasks: list[asyncio.Task] = field(default_factory=list)
    _session_tasks: list[asyncio.Task] = field(default_factory=list)
    _unsubscribe_typing: Callable[[], Awaitable[None]] | None = None
    _failures_logged: set[str] = field(default_factory=set)

    async def __aenter__(self) -> "ChatView":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def start(self) -> None:
        """Start presence and the session-list timer."""
        await self.presence.start()
        self._tasks.append(
            asyncio.create_task(
                self._every(self.heartbeat_interval_seconds, self._heartbeat)
            )
        )
        self._tasks.append(
            asyncio.create_task(
                self._every(self.poll_interval_seconds, self.refresh_sessions)
            )
        )

    async def open_session(self, session_id: UUID) -> None:
        """Switch the view to a session and start reconciling its log."""
        await self._leave_session()
        self.active_session_id = session_id
        self.log = MessageLog()
        self.typing = TypingTracker(
            session_id=session_id,
            viewer_id=self.viewer_id,
            decay_seconds=self.typing_decay_seconds,
        )
        self.notifier = TypingNotifier(
            channel=self.channel,
            session_id=session_id,
            user_id=self.viewer_id,
            debounce_seconds=self.typing_decay_seconds,
        )
        self._unsubscribe_typing = await self.channel.subscribe(
            typing_topic(session_id), TYPING_EVENT, self.typing.handle_payload
        )
        self._session_tasks.append(
            asyncio.create_task(
                self._every(self.poll_interval_seconds, self.refresh_messages)
            )
        )

    async def refresh_sessions(self) -> list[SessionRecord]:
        self.sessions = await asyncio.to_thread(
            self.session_service.list_sessions, self.viewer_id
        )
        return self.sessions

    async def refresh_messages(self) -> list[MessageRecord]:
        if self.active_session_id is None:
            return []
        return await asyncio.to_thread(
            self.sync_service.reconcile,
            self.active_session_id,
            self.viewer_id,
            self.log,
        )

    def messages(self) -> list[MessageRecord]:
        return self.log.messages()

    def unread_count(self) -> int:
        return unread_count(self.log.messages(), self.viewer_id)

    def apply_event(self, message: MessageRecord) -> None:
        """Merge a pushed insert or update for the open session."""
        if message.session_id == self.active_session_id:
            self.log.apply_event(message)

    async def send(
        self, content: str, kind: MessageKind = MessageKind.TEXT
    ) -> MessageRecord:
        session_id = self._require_open()
        message = await asyncio.to_thread(
            self.sync_service.send, session_id, self.viewer_id, kind, content
        )
        self.log.apply_event(message)
        if self.notifier is not None:
            await self.notifier.submitted()
        return message

    async def send_media(
        self, data: bytes, filename: str, content_type: str
    ) -> MessageRecord:
        """Upload a file and post it to the open session."""
        session_id = self._require_open()
        message = await self.sync_service.send_media(
            session_id, self.viewer_id, data, filename, content_type
        )
        self.log.apply_event(message)
        return message

    async def reply(self, target_message_id: int, text: str) -> MessageRecord:
        session_id = self._require_open()
        message = await asyncio.to_thread(
            self.mutator.reply, session_id, self.viewer_id, target_message_id, text
        )
        self.log.apply_event(message)
        if self.notifier is not None:
            await self.notifier.submitted()
        return message

    async def toggle_reaction(self, message_id: int, emoji: str) -> MessageRecord:
        """Show the toggle immediately, then persist it."""
        local = self.log.get(message_id)
        if local is not None:
            self.log.apply_event(
                replace(local, reactions=toggled_reactions(local.reactions, emoji))
            )
        try:
            message = await asyncio.to_thread(
                self.mutator.toggle_reaction, message_id, emoji
            )
        except Exception:
            if local is not None:
                self.log.apply_event(local)
            raise
        self.log.apply_event(message)
        return message

    async def delete(self, message_id: int) -> None:
        await asyncio.to_thread(self.mutator.delete_message, message_id, self.viewer_id)
        self.log.discard(message_id)

    async def submit_review(
        self,
        rating: int,
        comment: str = "",
        dimension_scores: dict[str, object] | None = None,
    ) -> SessionRecord:
        session_id = self._require_open()
        session = await asyncio.to_thread(
            self.review_gate.submit_review,
            session_id,
            self.viewer_id,
            rating,
            comment,
            dimension_scores,
        )
        await self.refresh_sessions()
        return session

    async def keystroke(self, draft: str) -> None:
        if self.notifier is not None:
            await self.notifier.keystroke(draft)

    def someone_typing(self) -> bool:
        return self.typing is not None and self.typing.is_anyone_typing()

    async def close(self) -> None:
        """Cancel timers and drop every subscription owned by the view."""
        try:
            await self._leave_session()
        finally:
            await _cancel_all(self._tasks)
            await self.presence.stop()

    async def _leave_session(self) -> None:
        await _cancel_all(self._session_tasks)
        if self._unsubscribe_typing is not None:
            await self._unsubscribe_typing()
            self._unsubscribe_typing = None
        if self.notifier is not None:
            await self.notifier.close()
            self.notifier = None
        self.typing = None
        self.active_session_id = None

    async def _heartbeat(self) -> None:
        await self.presence.heartbeat(self.viewer_id)

    async def _every(
        self, interval: float, tick: Callable[[], Awaitable[object]]
    ) -> None:
        name = getattr(tick, "__name__", "tick")
        while True:
            try:
                await tick()
            except Exception:
                if name not in self._failures_logged:
                    logger.exception("Periodic %s failed; retrying next tick", name)
                    self._failures_logged.add(name)
            else:
                self._failures_logged.discard(name)
            await asyncio.sleep(interval)

    def _require_open(self) -> UUID:
        if self.active_session_id is None:
            raise RuntimeError("No session is open in this view")
        return self.active_session_id


async def _cancel_all(tasks: list[asyncio.Task]) -> None:
    for task in tasks:
        task.cancel()
    for task in tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Background task failed before shutdown")
    tasks.clear()
