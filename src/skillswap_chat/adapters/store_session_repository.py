"""Session repository on top of the data store port."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from skillswap_chat.adapters.rows import EPOCH, parse_timestamp
from skillswap_chat.domain.sessions import (
    SessionRecord,
    SessionStatus,
    canonical_pair,
)
from skillswap_chat.services.sessions import SessionRepository
from skillswap_chat.services.store import DataStore, Order, eq, neq

TABLE = "chats"


@dataclass
class StoreSessionRepository(SessionRepository):
    """Maps ``chats`` rows to session records."""

    store: DataStore

    def find_open_between(self, user_a: UUID, user_b: UUID) -> SessionRecord | None:
        """Return the newest non-closed session for the unordered pair."""
        first, second = canonical_pair(user_a, user_b)
        rows = self.store.query(
            TABLE,
            [
                eq("participant_a", first),
                eq("participant_b", second),
                neq("status", SessionStatus.CLOSED.value),
            ],
            order=[Order("created_at", desc=True)],
            limit=1,
        )
        return _parse_row(rows[0]) if rows else None

    def create_session(self, user_a: UUID, user_b: UUID) -> SessionRecord:
        """Insert an active session for the pair."""
        first, second = canonical_pair(user_a, user_b)
        row = self.store.insert(
            TABLE,
            {
                "participant_a": str(first),
                "participant_b": str(second),
                "status": SessionStatus.ACTIVE.value,
                "reviewed_by": [],
                "version": 0,
            },
        )
        return _parse_row(row)

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        rows = self.store.query(TABLE, [eq("id", session_id)], limit=1)
        return _parse_row(rows[0]) if rows else None

    def list_open_for_user(self, user_id: UUID) -> list[SessionRecord]:
        """Return non-closed sessions where the user is either participant."""
        sessions: dict[UUID, SessionRecord] = {}
        for column in ("participant_a", "participant_b"):
            rows = self.store.query(
                TABLE,
                [eq(column, user_id), neq("status", SessionStatus.CLOSED.value)],
            )
            for row in rows:
                record = _parse_row(row)
                sessions[record.id] = record
        return list(sessions.values())

    def update_preview(self, session_id: UUID, preview: str, at: datetime) -> None:
        self.store.update(
            TABLE,
            [eq("id", session_id)],
            {"last_message_preview": preview, "last_message_at": at.isoformat()},
        )

    def compare_and_set_review_state(
        self,
        session_id: UUID,
        expected_version: int,
        reviewed_by: frozenset[UUID],
        status: SessionStatus,
    ) -> SessionRecord | None:
        """Write review state only if the row still has ``expected_version``."""
        rows = self.store.update(
            TABLE,
            [eq("id", session_id), eq("version", expected_version)],
            {
                "reviewed_by": sorted(str(user_id) for user_id in reviewed_by),
                "status": status.value,
                "version": expected_version + 1,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            },
        )
        return _parse_row(rows[0]) if rows else None


def _parse_row(row: dict[str, object]) -> SessionRecord:
    reviewed_raw = row.get("reviewed_by") or []
    return SessionRecord(
        id=UUID(str(row["id"])),
        participant_a=UUID(str(row["participant_a"])),
        participant_b=UUID(str(row["participant_b"])),
        status=SessionStatus(row.get("status", SessionStatus.ACTIVE.value)),
        reviewed_by=frozenset(UUID(str(value)) for value in reviewed_raw),
        last_message_preview=row.get("last_message_preview"),
        last_message_at=parse_timestamp(row.get("last_message_at")),
        created_at=parse_timestamp(row.get("created_at")) or EPOCH,
        version=int(row.get("version") or 0),
    )

