"""Presence heartbeats and typing indicators over the realtime channel."""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID

from skillswap_chat.domain.presence import PresenceEntry, TypingSignal
from skillswap_chat.services.realtime import Payload, RealtimeChannel, Unsubscribe

logger = logging.getLogger(__name__)

PRESENCE_TOPIC = "online-users"
HEARTBEAT_EVENT = "heartbeat"
TYPING_EVENT = "typing"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def typing_topic(session_id: UUID) -> str:
    return f"typing:{session_id}"


def heartbeat_payload(user_id: UUID, online_at: datetime) -> Payload:
    return {"user_id": str(user_id), "online_at": online_at.isoformat()}


def typing_payload(signal: TypingSignal) -> Payload:
    return {
        "session_id": str(signal.session_id),
        "user_id": str(signal.user_id),
        "is_typing": signal.is_typing,
    }


@dataclass
class PresenceTracker:
    """Merges heartbeats into a liveness table keyed by user id.

    Entries are last-write-wins on ``online_at``; a user counts as online while
    the newest heartbeat is younger than ``ttl_seconds``. Timestamps without an
    offset are read as UTC. Entries older than ``retention_seconds`` are dropped.
    """

    ttl_seconds: float = 30.0
    retention_seconds: float = 3600.0
    clock: Clock = utc_now
    _last_seen: dict[UUID, datetime] = field(default_factory=dict)

    def apply_heartbeat(self, payload: Payload) -> None:
        try:
            user_id = UUID(str(payload["user_id"]))
            online_at = datetime.fromisoformat(str(payload["online_at"]))
        except (KeyError, ValueError):
            logger.warning("Ignoring malformed heartbeat", extra={"payload": payload})
            return
        if online_at.tzinfo is None:
            online_at = online_at.replace(tzinfo=UTC)
        current = self._last_seen.get(user_id)
        if current is None or online_at > current:
            self._last_seen[user_id] = online_at
        self._prune()

    def entry(self, user_id: UUID) -> PresenceEntry | None:
        last_seen = self._last_seen.get(user_id)
        if last_seen is None:
            return None
        return PresenceEntry(
            user_id=user_id,
            is_online=self._is_fresh(last_seen),
            last_seen_at=last_seen,
        )

    def is_online(self, user_id: UUID) -> bool:
        last_seen = self._last_seen.get(user_id)
        return last_seen is not None and self._is_fresh(last_seen)

    def online_users(self) -> set[UUID]:
        return {
            user_id
            for user_id, last_seen in self._last_seen.items()
            if self._is_fresh(last_seen)
        }

    def _is_fresh(self, last_seen: datetime) -> bool:
        return self.clock() - last_seen <= timedelta(seconds=self.ttl_seconds)

    def _prune(self) -> None:
        cutoff = self.clock() - timedelta(seconds=self.retention_seconds)
        for user_id, last_seen in list(self._last_seen.items()):
            if last_seen < cutoff:
                del self._last_seen[user_id]


@dataclass
class PresenceService:
    """Publishes heartbeats and keeps a tracker fed from the presence topic."""

    channel: RealtimeChannel
    tracker: PresenceTracker
    _unsubscribe: Callable | None = None

    async def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = await self.channel.subscribe(
                PRESENCE_TOPIC, HEARTBEAT_EVENT, self.tracker.apply_heartbeat
            )

    async def heartbeat(self, user_id: UUID) -> None:
        """Announce that ``user_id`` is online now."""
        await self.channel.publish(
            PRESENCE_TOPIC,
            HEARTBEAT_EVENT,
            heartbeat_payload(user_id, self.tracker.clock()),
        )

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            await self._unsubscribe()
            self._unsubscribe = None


@dataclass
class TypingTracker:
    """Receiver-side typing flags for one session.

    A ``true`` signal raises the flag for ``decay_seconds``; it drops on an
    explicit ``false`` or when the window passes without a new signal.
    """

    session_id: UUID
    viewer_id: UUID | None = None
    decay_seconds: float = 3.0
    clock: Clock = utc_now
    _typing_since: dict[UUID, datetime] = field(default_factory=dict)

    def apply(self, signal: TypingSignal) -> None:
        if signal.session_id != self.session_id or signal.user_id == self.viewer_id:
            return
        if signal.is_typing:
            self._typing_since[signal.user_id] = self.clock()
        else:
            self._typing_since.pop(signal.user_id, None)

    def handle_payload(self, payload: Payload) -> None:
        try:
            signal = TypingSignal(
                session_id=UUID(str(payload["session_id"])),
                user_id=UUID(str(payload["user_id"])),
                is_typing=bool(payload["is_typing"]),
            )
        except (KeyError, ValueError):
            logger.warning("Ignoring malformed typing signal")
            return
        self.apply(signal)

    def typing_users(self) -> set[UUID]:
        window = timedelta(seconds=self.decay_seconds)
        now = self.clock()
        for user_id, since in list(self._typing_since.items()):
            if now - since >= window:
                del self._typing_since[user_id]
        return set(self._typing_since)

    def is_anyone_typing(self) -> bool:
        return bool(self.typing_users())


@dataclass
class TypingNotifier:
    """Sender-side typing broadcasts with a stop-typing debounce."""

    channel: RealtimeChannel
    session_id: UUID
    user_id: UUID
    debounce_seconds: float = 3.0
    _stop_task: asyncio.Task | None = None

    async def keystroke(self, text: str) -> None:
        """Announce typing state for the current draft."""
        is_typing = bool(text)
        await self.publish(is_typing)
        self._cancel_pending()
        if is_typing:
            self._stop_task = asyncio.create_task(self._stop_after_debounce())

    async def submitted(self) -> None:
        """Announce that the draft was sent."""
        self._cancel_pending()
        await self.publish(False)

    async def publish(self, is_typing: bool) -> None:
        signal = TypingSignal(self.session_id, self.user_id, is_typing)
        await self.channel.publish(
            typing_topic(self.session_id), TYPING_EVENT, typing_payload(signal)
        )

    async def close(self) -> None:
        task = self._stop_task
        self._cancel_pending()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _stop_after_debounce(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        self._stop_task = None
        await self.publish(False)

    def _cancel_pending(self) -> None:
        if self._stop_task is not None and not self._stop_task.done():
            self._stop_task.cancel()
        self._stop_task = None


@dataclass
class TypingMonitor:
    """Server-side typing state for the sessions someone has asked about.

    A session nobody has touched for ``idle_seconds`` is unsubscribed and its
    tracker dropped; the next request subscribes again.
    """

    channel: RealtimeChannel
    decay_seconds: float = 3.0
    idle_seconds: float = 60.0
    clock: Clock = utc_now
    _trackers: dict[UUID, TypingTracker] = field(default_factory=dict)
    _unsubscribers: dict[UUID, Unsubscribe] = field(default_factory=dict)
    _last_used: dict[UUID, datetime] = field(default_factory=dict)

    async def watch(self, session_id: UUID) -> TypingTracker:
        """Return the session's tracker, subscribing on first use."""
        await self.expire_idle()
        self._last_used[session_id] = self.clock()
        tracker = self._trackers.get(session_id)
        if tracker is None:
            tracker = TypingTracker(
                session_id=session_id,
                decay_seconds=self.decay_seconds,
                clock=self.clock,
            )
            self._unsubscribers[session_id] = await self.channel.subscribe(
                typing_topic(session_id), TYPING_EVENT, tracker.handle_payload
            )
            self._trackers[session_id] = tracker
        return tracker

    async def publish(self, signal: TypingSignal) -> None:
        await self.watch(signal.session_id)
        await self.channel.publish(
            typing_topic(signal.session_id), TYPING_EVENT, typing_payload(signal)
        )

    async def typing_users(self, session_id: UUID, viewer_id: UUID) -> set[UUID]:
        """Return who is typing in the session, other than the viewer."""
        tracker = await self.watch(session_id)
        return tracker.typing_users() - {viewer_id}

    async def expire_idle(self) -> None:
        cutoff = self.clock() - timedelta(seconds=self.idle_seconds)
        idle = [
            session_id
            for session_id, used_at in self._last_used.items()
            if used_at < cutoff
        ]
        for session_id in idle:
            await self._release(session_id)

    def watched_sessions(self) -> set[UUID]:
        return set(self._trackers)

    async def close(self) -> None:
        for session_id in list(self._trackers):
            await self._release(session_id)

    async def _release(self, session_id: UUID) -> None:
        self._last_used.pop(session_id, None)
        self._trackers.pop(session_id, None)
        unsubscribe = self._unsubscribers.pop(session_id, None)
        if unsubscribe is not None:
            await unsubscribe()
