"""Realtime publish/subscribe port and an in-process broadcast hub."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)

Payload = dict[str, object]
Handler = Callable[[Payload], Awaitable[None] | None]
Unsubscribe = Callable[[], Awaitable[None]]


class RealtimeChannel(Protocol):
    """Fire-and-forget broadcast primitive used for typing and presence."""

    async def publish(self, topic: str, event: str, payload: Payload) -> None:
        """Broadcast an event to every subscriber of a topic."""

    async def subscribe(self, topic: str, event: str, handler: Handler) -> Unsubscribe:
        """Register a handler and return a coroutine function that removes it."""


@dataclass
class LocalBroadcastHub(RealtimeChannel):
    """Single-process broadcast domain.

    Delivery is synchronous with ``publish``; a failing handler is logged and
    does not prevent delivery to the others.
    """

    _handlers: dict[tuple[str, str], list[Handler]] = field(default_factory=dict)

    async def publish(self, topic: str, event: str, payload: Payload) -> None:
        for handler in list(self._handlers.get((topic, event), [])):
            try:
                result = handler(dict(payload))
                if result is not None:
                    await result
            except Exception:
                logger.exception(
                    "Broadcast handler failed", extra={"topic": topic, "event": event}
                )

    async def subscribe(self, topic: str, event: str, handler: Handler) -> Unsubscribe:
        key = (topic, event)
        self._handlers.setdefault(key, []).append(handler)

        async def unsubscribe() -> None:
            handlers = self._handlers.get(key, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._handlers.pop(key, None)

        return unsubscribe

    def subscriber_count(self, topic: str, event: str) -> int:
        return len(self._handlers.get((topic, event), []))
