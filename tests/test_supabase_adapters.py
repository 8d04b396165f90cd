"""Tests for Supabase adapter implementations."""

import asyncio
from dataclasses import dataclass, field
from uuid import UUID, uuid4

import httpx
import pytest
from postgrest.exceptions import APIError

from skillswap_chat.adapters.store_message_repository import StoreMessageRepository
from skillswap_chat.adapters.store_review_repository import StoreReviewRepository
from skillswap_chat.adapters.store_session_repository import StoreSessionRepository
from skillswap_chat.adapters.supabase_realtime import SupabaseRealtimeChannel
from skillswap_chat.adapters.supabase_store import SupabaseDataStore
from skillswap_chat.domain.errors import StoreUnavailableError, UniqueViolationError
from skillswap_chat.domain.messages import MessageKind
from skillswap_chat.domain.sessions import SessionStatus
from skillswap_chat.services.store import Order, eq, in_, neq


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "insert": [], "update": [], "delete": []}
    )
    last_payload: object | None = None
    last_filters: list[tuple[str, str, object]] = field(default_factory=list)
    orders: list[tuple[str, bool]] = field(default_factory=list)
    error: Exception | None = None

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def insert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "insert"
        self.last_payload = payload
        return self

    def update(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "update"
        self.last_payload = payload
        return self

    def delete(self) -> "FakeTable":
        self._action = "delete"
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("eq", column, value))
        return self

    def neq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("neq", column, value))
        return self

    def in_(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("in", column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def order(self, column: str, desc: bool = False) -> "FakeTable":
        self.orders.append((column, desc))
        return self

    def execute(self) -> FakeResponse:
        if self.error is not None:
            raise self.error
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeRpc:
    data: object

    def execute(self) -> FakeResponse:
        return FakeResponse(data=self.data)  # type: ignore[arg-type]


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)
    rpc_results: dict[str, object] = field(default_factory=dict)
    rpc_calls: list[tuple[str, dict[str, object]]] = field(default_factory=list)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]

    def rpc(self, name: str, params: dict[str, object]) -> FakeRpc:
        self.rpc_calls.append((name, params))
        return FakeRpc(self.rpc_results.get(name))


def _chat_row(session_id: str, a: UUID, b: UUID, **overrides: object) -> dict:
    row: dict[str, object] = {
        "id": session_id,
        "participant_a": str(a),
        "participant_b": str(b),
        "status": "active",
        "reviewed_by": [],
        "last_message_preview": None,
        "last_message_at": None,
        "created_at": "2024-05-01T12:00:00+00:00",
        "version": 0,
    }
    row.update(overrides)
    return row


def test_data_store_applies_filters_and_order() -> None:
    client = FakeSupabaseClient()
    table = client.table("chats")
    table.queue("select", [{"id": 1}])
    store = SupabaseDataStore(client)
    user_id = uuid4()

    rows = store.query(
        "chats",
        [eq("participant_a", user_id), neq("status", "closed"), in_("id", [1, 2])],
        order=[Order("created_at", desc=True)],
        limit=1,
    )

    assert rows == [{"id": 1}]
    assert table.last_filters == [
        ("eq", "participant_a", str(user_id)),
        ("neq", "status", "closed"),
        ("in", "id", [1, 2]),
    ]
    assert table.orders == [("created_at", True)]


def test_data_store_maps_unique_violation() -> None:
    client = FakeSupabaseClient()
    client.table("chats").error = APIError(
        {"message": "duplicate key", "code": "23505", "hint": None, "details": None}
    )
    store = SupabaseDataStore(client)

    with pytest.raises(UniqueViolationError):
        store.insert("chats", {"participant_a": "a"})


def test_data_store_maps_other_api_errors() -> None:
    client = FakeSupabaseClient()
    client.table("messages").error = APIError(
        {"message": "permission denied", "code": "42501", "hint": None, "details": None}
    )
    store = SupabaseDataStore(client)

    with pytest.raises(StoreUnavailableError) as excinfo:
        store.query("messages", [])

    assert not isinstance(excinfo.value, UniqueViolationError)


def test_data_store_maps_transport_errors() -> None:
    client = FakeSupabaseClient()
    client.table("messages").error = httpx.ConnectError("offline")
    store = SupabaseDataStore(client)

    with pytest.raises(StoreUnavailableError):
        store.delete("messages", [eq("id", 1)])


def test_session_repository_uses_canonical_pair() -> None:
    client = FakeSupabaseClient()
    table = client.table("chats")
    user_a, user_b = uuid4(), uuid4()
    first, second = sorted((user_a, user_b), key=str)
    session_id = str(uuid4())
    table.queue("insert", [_chat_row(session_id, first, second)])
    repository = StoreSessionRepository(SupabaseDataStore(client))

    created = repository.create_session(second, first)

    assert isinstance(table.last_payload, dict)
    assert table.last_payload["participant_a"] == str(first)
    assert table.last_payload["participant_b"] == str(second)
    assert created.status is SessionStatus.ACTIVE


def test_session_repository_compare_and_set() -> None:
    client = FakeSupabaseClient()
    table = client.table("chats")
    user_a, user_b = uuid4(), uuid4()
    session_id = str(uuid4())
    table.queue(
        "update",
        [
            _chat_row(
                session_id,
                user_a,
                user_b,
                status="ended",
                reviewed_by=[str(user_a)],
                version=4,
            )
        ],
    )
    table.queue("update", [])
    repository = StoreSessionRepository(SupabaseDataStore(client))

    written = repository.compare_and_set_review_state(
        UUID(session_id), 3, frozenset({user_a}), SessionStatus.ENDED
    )
    stale = repository.compare_and_set_review_state(
        UUID(session_id), 3, frozenset({user_a}), SessionStatus.ENDED
    )

    assert written is not None
    assert written.version == 4
    assert written.reviewed_by == {user_a}
    assert stale is None
    assert ("eq", "version", 3) in table.last_filters
    assert isinstance(table.last_payload, dict)
    assert table.last_payload["version"] == 4


def test_message_repository_roundtrip() -> None:
    client = FakeSupabaseClient()
    table = client.table("messages")
    session_id, sender_id = uuid4(), uuid4()
    row = {
        "id": 7,
        "chat_id": str(session_id),
        "sender_id": str(sender_id),
        "kind": "image",
        "content": "https://cdn.example.com/a.png",
        "reactions": {"👍": 1, "😂": 0},
        "is_read": False,
        "created_at": "2024-05-01T12:00:00+00:00",
    }
    table.queue("insert", [row])
    table.queue("select", [row])
    repository = StoreMessageRepository(SupabaseDataStore(client))

    created = repository.create_message(
        session_id, sender_id, MessageKind.IMAGE, row["content"]
    )
    listed = repository.list_for_session(session_id)
    repository.mark_read(session_id, sender_id)

    assert created.id == 7
    assert created.kind is MessageKind.IMAGE
    assert listed[0].reactions == {"👍": 1}
    assert table.orders == [("created_at", False), ("id", False)]
    assert client.rpc_calls == [
        (
            "mark_messages_as_read",
            {"chat_id_param": str(session_id), "user_id_param": str(sender_id)},
        )
    ]


def test_review_repository_dimension_averages() -> None:
    client = FakeSupabaseClient(
        rpc_results={
            "get_review_dimension_averages": [
                {"avg_politeness": 4.5, "avg_creativity": None}
            ]
        }
    )
    repository = StoreReviewRepository(SupabaseDataStore(client))

    averages = repository.dimension_averages(uuid4())

    assert averages["politeness"] == 4.5
    assert averages["creativity"] == 0.0
    assert len(averages) == 7


def test_review_repository_writes_dimension_columns() -> None:
    client = FakeSupabaseClient()
    table = client.table("reviews")
    reviewer, reviewee, session_id = uuid4(), uuid4(), uuid4()
    table.queue(
        "insert",
        [
            {
                "id": 1,
                "reviewer_id": str(reviewer),
                "reviewee_id": str(reviewee),
                "chat_id": str(session_id),
                "rating": 5,
                "text": "great",
                "politeness": 5,
                "created_at": "2024-05-01T12:00:00+00:00",
            }
        ],
    )
    repository = StoreReviewRepository(SupabaseDataStore(client))

    review = repository.create_review(
        reviewer_id=reviewer,
        reviewee_id=reviewee,
        session_id=session_id,
        overall_rating=5,
        comment="great",
        dimension_scores={"politeness": 5},
    )

    assert isinstance(table.last_payload, dict)
    assert table.last_payload["politeness"] == 5
    assert table.last_payload["creativity"] is None
    assert review.per_dimension_scores["politeness"] == 5
    assert review.per_dimension_scores["voice_tone"] is None


@dataclass
class FakeRealtimeChannel:
    topic: str
    client: "FakeRealtimeClient"
    callbacks: dict[str, list] = field(default_factory=dict)
    subscribed: bool = False

    def on_broadcast(  # type: ignore[no-untyped-def]
        self, event: str, callback
    ) -> "FakeRealtimeChannel":
        self.callbacks.setdefault(event, []).append(callback)
        return self

    async def subscribe(self) -> "FakeRealtimeChannel":
        self.subscribed = True
        return self

    async def send_broadcast(self, event: str, data: dict[str, object]) -> None:
        for channel in self.client.channels:
            if channel.topic == self.topic and channel.subscribed:
                for callback in channel.callbacks.get(event, []):
                    callback({"event": event, "payload": data})


@dataclass
class FakeRealtimeClient:
    channels: list[FakeRealtimeChannel] = field(default_factory=list)

    def channel(self, topic: str) -> FakeRealtimeChannel:
        channel = FakeRealtimeChannel(topic=topic, client=self)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel: FakeRealtimeChannel) -> None:
        self.channels.remove(channel)

    async def remove_all_channels(self) -> None:
        self.channels.clear()


def test_supabase_realtime_channel_broadcasts() -> None:
    fake_client = FakeRealtimeClient()
    adapter = SupabaseRealtimeChannel(
        supabase_url="https://example.supabase.co",
        supabase_key="service-key",
        _client=fake_client,  # type: ignore[arg-type]
    )
    received: list[dict[str, object]] = []

    async def scenario() -> None:
        unsubscribe = await adapter.subscribe("typing:1", "typing", received.append)
        await adapter.publish("typing:1", "typing", {"is_typing": True})
        await unsubscribe()
        await adapter.publish("typing:1", "typing", {"is_typing": False})
        await adapter.close()

    asyncio.run(scenario())

    assert received == [{"is_typing": True}]
    assert fake_client.channels == []
