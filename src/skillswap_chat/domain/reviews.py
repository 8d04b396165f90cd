"""Domain models for mutual reviews."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

REVIEW_DIMENSIONS = (
    "voice_tone",
    "relevance",
    "politeness",
    "open_mindedness",
    "friendliness",
    "creativity",
    "problem_solving",
)

MIN_RATING = 1
MAX_RATING = 5


@dataclass(frozen=True)
class ReviewRecord:
    """A rating left by one participant for the other."""

    id: int
    reviewer_id: UUID
    reviewee_id: UUID
    session_id: UUID
    overall_rating: int
    comment: str
    per_dimension_scores: dict[str, int | None]
    created_at: datetime


@dataclass(frozen=True)
class RatingSummary:
    """Aggregate rating of a user across all reviews received."""

    user_id: UUID
    average_rating: float
    review_count: int
    dimension_averages: dict[str, float]
