"""Review repository on top of the data store port."""

from dataclasses import dataclass
from uuid import UUID

from skillswap_chat.adapters.rows import EPOCH, parse_timestamp
from skillswap_chat.domain.reviews import REVIEW_DIMENSIONS, ReviewRecord
from skillswap_chat.services.reviews import ReviewRepository
from skillswap_chat.services.store import DataStore, Order, eq

TABLE = "reviews"
PROFILES_TABLE = "profiles"
DIMENSION_AVERAGES_FUNCTION = "get_review_dimension_averages"


@dataclass
class StoreReviewRepository(ReviewRepository):
    """Maps ``reviews`` rows to review records and writes profile ratings."""

    store: DataStore

    def create_review(  # noqa: PLR0913
        self,
        reviewer_id: UUID,
        reviewee_id: UUID,
        session_id: UUID,
        overall_rating: int,
        comment: str,
        dimension_scores: dict[str, int | None],
    ) -> ReviewRecord:
        """Insert a review row; one column per dimension."""
        payload: dict[str, object] = {
            "reviewer_id": str(reviewer_id),
            "reviewee_id": str(reviewee_id),
            "chat_id": str(session_id),
            "rating": overall_rating,
            "text": comment,
        }
        for dimension in REVIEW_DIMENSIONS:
            payload[dimension] = dimension_scores.get(dimension)
        return _parse_row(self.store.insert(TABLE, payload))

    def list_for_reviewee(self, reviewee_id: UUID) -> list[ReviewRecord]:
        rows = self.store.query(
            TABLE, [eq("reviewee_id", reviewee_id)], order=[Order("created_at")]
        )
        return [_parse_row(row) for row in rows]

    def list_for_session(self, session_id: UUID) -> list[ReviewRecord]:
        rows = self.store.query(
            TABLE, [eq("chat_id", session_id)], order=[Order("created_at")]
        )
        return [_parse_row(row) for row in rows]

    def update_profile_rating(
        self, user_id: UUID, average_rating: float, review_count: int
    ) -> None:
        self.store.update(
            PROFILES_TABLE,
            [eq("id", user_id)],
            {"average_rating": average_rating, "review_count": review_count},
        )

    def dimension_averages(self, user_id: UUID) -> dict[str, float]:
        """Return per-dimension averages computed by the store."""
        result = self.store.call_aggregate(
            DIMENSION_AVERAGES_FUNCTION, {"p_user_id": str(user_id)}
        )
        row = result[0] if isinstance(result, list) and result else result
        if not isinstance(row, dict):
            return {}
        averages: dict[str, float] = {}
        for dimension in REVIEW_DIMENSIONS:
            value = row.get(f"avg_{dimension}", row.get(dimension))
            averages[dimension] = float(value) if value is not None else 0.0
        return averages


def _parse_row(row: dict[str, object]) -> ReviewRecord:
    scores: dict[str, int | None] = {}
    for dimension in REVIEW_DIMENSIONS:
        value = row.get(dimension)
        scores[dimension] = int(value) if value is not None else None
    return ReviewRecord(
        id=int(row["id"]),
        reviewer_id=UUID(str(row["reviewer_id"])),
        reviewee_id=UUID(str(row["reviewee_id"])),
        session_id=UUID(str(row["chat_id"])),
        overall_rating=int(row["rating"]),
        comment=str(row.get("text") or ""),
        per_dimension_scores=scores,
        created_at=parse_timestamp(row.get("created_at")) or EPOCH,
    )
