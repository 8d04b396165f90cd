"""Supabase Realtime broadcast adapter."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from supabase import AsyncClient, acreate_client

from skillswap_chat.services.realtime import (
    Handler,
    Payload,
    RealtimeChannel,
    Unsubscribe,
)

logger = logging.getLogger(__name__)


@dataclass
class SupabaseRealtimeChannel(RealtimeChannel):
    """Realtime channel backed by Supabase broadcast.

    The async Supabase client is created on first use because realtime needs a
    running event loop.
    """

    supabase_url: str
    supabase_key: str
    _client: AsyncClient | None = None
    _publishers: dict[str, Any] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @classmethod
    def create(cls, supabase_url: str, supabase_key: str) -> "SupabaseRealtimeChannel":
        """Create an adapter that connects lazily."""
        return cls(supabase_url=supabase_url, supabase_key=supabase_key)

    async def publish(self, topic: str, event: str, payload: Payload) -> None:
        """Send a broadcast on the topic's channel."""
        channel = await self._publisher(topic)
        await channel.send_broadcast(event, payload)

    async def subscribe(self, topic: str, event: str, handler: Handler) -> Unsubscribe:
        """Join a dedicated channel for the handler."""
        client = await self._connect()
        loop = asyncio.get_running_loop()

        def on_broadcast(message: dict[str, Any]) -> None:
            body = message.get("payload", message)
            result = handler(dict(body) if isinstance(body, dict) else {})
            if result is not None:
                asyncio.run_coroutine_threadsafe(result, loop)

        channel = client.channel(topic)
        channel.on_broadcast(event, on_broadcast)
        await channel.subscribe()

        async def unsubscribe() -> None:
            await client.remove_channel(channel)

        return unsubscribe

    async def close(self) -> None:
        """Leave every channel and drop the connection."""
        if self._client is None:
            return
        await self._client.remove_all_channels()
        self._publishers.clear()
        self._client = None

    async def _connect(self) -> AsyncClient:
        async with self._lock:
            if self._client is None:
                self._client = await acreate_client(
                    self.supabase_url, self.supabase_key
                )
                logger.info("Connected to Supabase realtime")
            return self._client

    async def _publisher(self, topic: str):  # type: ignore[no-untyped-def]
        channel = self._publishers.get(topic)
        if channel is None:
            client = await self._connect()
            channel = client.channel(topic)
            await channel.subscribe()
            self._publishers[topic] = channel
        return channel
