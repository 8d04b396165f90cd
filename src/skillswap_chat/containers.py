"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from uuid import UUID

from supabase import create_client

from skillswap_chat.adapters.cloudinary_media_store import HttpxCloudinaryMediaStore
from skillswap_chat.adapters.store_message_repository import StoreMessageRepository
from skillswap_chat.adapters.store_review_repository import StoreReviewRepository
from skillswap_chat.adapters.store_session_repository import StoreSessionRepository
from skillswap_chat.adapters.supabase_realtime import SupabaseRealtimeChannel
from skillswap_chat.adapters.supabase_store import SupabaseDataStore
from skillswap_chat.config import Settings
from skillswap_chat.services.chat_view import ChatView
from skillswap_chat.services.messages import MessageSyncService
from skillswap_chat.services.mutations import MessageMutator
from skillswap_chat.services.presence import (
    PresenceService,
    PresenceTracker,
    TypingMonitor,
)
from skillswap_chat.services.realtime import LocalBroadcastHub, RealtimeChannel
from skillswap_chat.services.reviews import ReviewGate
from skillswap_chat.services.sessions import SessionService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_service: SessionService
    sync_service: MessageSyncService
    mutator: MessageMutator
    review_gate: ReviewGate
    realtime: RealtimeChannel
    presence_service: PresenceService
    typing_monitor: TypingMonitor
    close_resources: Callable[[], Awaitable[None]]

    def chat_view(self, viewer_id: UUID) -> ChatView:
        """Build a client runtime for one user sharing this container's services."""
        return ChatView(
            viewer_id=viewer_id,
            session_service=self.session_service,
            sync_service=self.sync_service,
            mutator=self.mutator,
            review_gate=self.review_gate,
            channel=self.realtime,
            presence=PresenceService(
                channel=self.realtime,
                tracker=PresenceTracker(ttl_seconds=self.settings.presence_ttl_seconds),
            ),
            poll_interval_seconds=self.settings.poll_interval_seconds,
            typing_decay_seconds=self.settings.typing_decay_seconds,
            heartbeat_interval_seconds=self.settings.presence_heartbeat_seconds,
        )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    store = SupabaseDataStore(supabase_client)
    session_repository = StoreSessionRepository(store)
    message_repository = StoreMessageRepository(store)
    review_repository = StoreReviewRepository(store)

    media_store = None
    if resolved_settings.media_uploads_enabled:
        media_store = HttpxCloudinaryMediaStore.create(
            cloud_name=str(resolved_settings.cloudinary_cloud_name),
            upload_preset=str(resolved_settings.cloudinary_upload_preset),
        )

    realtime: RealtimeChannel
    supabase_realtime = None
    if resolved_settings.realtime_backend == "local":
        realtime = LocalBroadcastHub()
    else:
        supabase_realtime = SupabaseRealtimeChannel.create(
            resolved_settings.supabase_url, resolved_settings.supabase_service_key
        )
        realtime = supabase_realtime

    session_service = SessionService(session_repository)
    sync_service = MessageSyncService(
        session_repository=session_repository,
        message_repository=message_repository,
        media_store=media_store,
    )
    mutator = MessageMutator(
        message_repository=message_repository, sync_service=sync_service
    )
    review_gate = ReviewGate(
        session_service=session_service,
        repository=review_repository,
        cas_attempts=resolved_settings.review_cas_attempts,
    )
    presence_service = PresenceService(
        channel=realtime,
        tracker=PresenceTracker(ttl_seconds=resolved_settings.presence_ttl_seconds),
    )
    typing_monitor = TypingMonitor(
        channel=realtime, decay_seconds=resolved_settings.typing_decay_seconds
    )

    async def close_resources() -> None:
        await typing_monitor.close()
        await presence_service.stop()
        if media_store is not None:
            await media_store.close()
        if supabase_realtime is not None:
            await supabase_realtime.close()

    return AppContainer(
        settings=resolved_settings,
        session_service=session_service,
        sync_service=sync_service,
        mutator=mutator,
        review_gate=review_gate,
        realtime=realtime,
        presence_service=presence_service,
        typing_monitor=typing_monitor,
        close_resources=close_resources,
    )
