"""Mutual-review gate that moves sessions from active to ended to closed."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from skillswap_chat.domain.errors import (
    AlreadyClosedError,
    AlreadyReviewedError,
    ForbiddenError,
    StateConflictError,
    ValidationError,
)
from skillswap_chat.domain.reviews import (
    MAX_RATING,
    MIN_RATING,
    REVIEW_DIMENSIONS,
    RatingSummary,
    ReviewRecord,
)
from skillswap_chat.domain.sessions import SessionRecord, SessionStatus, derive_status
from skillswap_chat.services.sessions import SessionService

logger = logging.getLogger(__name__)


class ReviewRepository(Protocol):
    """Persistence interface for reviews and profile ratings."""

    def create_review(  # noqa: PLR0913
        self,
        reviewer_id: UUID,
        reviewee_id: UUID,
        session_id: UUID,
        overall_rating: int,
        comment: str,
        dimension_scores: dict[str, int | None],
    ) -> ReviewRecord:
        """Insert a review and return it."""

    def list_for_reviewee(self, reviewee_id: UUID) -> list[ReviewRecord]:
        """Return every review a user received."""

    def list_for_session(self, session_id: UUID) -> list[ReviewRecord]:
        """Return every review left in a session."""

    def update_profile_rating(
        self, user_id: UUID, average_rating: float, review_count: int
    ) -> None:
        """Store the aggregate rating on the user's profile."""

    def dimension_averages(self, user_id: UUID) -> dict[str, float]:
        """Return per-dimension score averages for a user."""


@dataclass
class ReviewGate:
    """Records reviews and advances session state exactly once per reviewer.

    The session row is updated with a compare-and-swap on its ``version``
    column, so two participants reviewing at the same time cannot overwrite
    each other's entry in ``reviewed_by``.
    """

    session_service: SessionService
    repository: ReviewRepository
    cas_attempts: int = 5

    def submit_review(  # noqa: PLR0913
        self,
        session_id: UUID,
        reviewer_id: UUID,
        rating: int,
        comment: str = "",
        dimension_scores: dict[str, object] | None = None,
    ) -> SessionRecord:
        """Record a review and return the session with its advanced state."""
        overall = _validate_rating(rating)
        scores = _normalize_dimensions(dimension_scores or {})
        session = self.session_service.get_session(session_id)
        if not session.has_participant(reviewer_id):
            raise ForbiddenError("Reviewer is not a participant of this session")
        if session.status is SessionStatus.CLOSED:
            raise AlreadyClosedError("Session is already closed", session)
        if (
            reviewer_id in session.reviewed_by
            and session.status is SessionStatus.ENDED
        ):
            raise AlreadyReviewedError(
                "You already reviewed this session; waiting for the other party",
                session,
            )

        reviewee_id = session.other_participant(reviewer_id)
        self.repository.create_review(
            reviewer_id=reviewer_id,
            reviewee_id=reviewee_id,
            session_id=session_id,
            overall_rating=overall,
            comment=comment,
            dimension_scores=scores,
        )
        self.refresh_rating(reviewee_id)
        updated = self._add_reviewers(session_id, frozenset({reviewer_id}))
        logger.info(
            "Review submitted",
            extra={"session_id": str(session_id), "status": updated.status.value},
        )
        return updated

    def refresh_rating(self, user_id: UUID) -> tuple[float, int]:
        """Recompute and store a user's mean rating over every review received.

        Duplicate reviews from the same reviewer all count toward the mean.
        """
        average, count = _mean(self.repository.list_for_reviewee(user_id))
        self.repository.update_profile_rating(user_id, average, count)
        return average, count

    def reconcile_review_state(self, session_id: UUID) -> SessionRecord:
        """Re-derive ``reviewed_by`` and status from the stored reviews.

        Repairs sessions left behind when a review was recorded but the session
        update did not complete. Never removes reviewers.
        """
        session = self.session_service.get_session(session_id)
        reviewers = frozenset(
            review.reviewer_id
            for review in self.repository.list_for_session(session_id)
            if session.has_participant(review.reviewer_id)
        )
        return self._add_reviewers(session_id, reviewers)

    def rating_summary(self, user_id: UUID) -> RatingSummary:
        average, count = _mean(self.repository.list_for_reviewee(user_id))
        return RatingSummary(
            user_id=user_id,
            average_rating=average,
            review_count=count,
            dimension_averages=self.repository.dimension_averages(user_id),
        )

    def _add_reviewers(
        self, session_id: UUID, reviewers: frozenset[UUID]
    ) -> SessionRecord:
        repository = self.session_service.repository
        for _ in range(self.cas_attempts):
            current = self.session_service.get_session(session_id)
            reviewed_by = current.reviewed_by | reviewers
            status = derive_status(current.participants, reviewed_by)
            if reviewed_by == current.reviewed_by and status is current.status:
                return current
            written = repository.compare_and_set_review_state(
                session_id, current.version, reviewed_by, status
            )
            if written is not None:
                return written
            logger.info(
                "Session changed concurrently; retrying review update",
                extra={"session_id": str(session_id)},
            )
        raise StateConflictError(
            "Session kept changing while recording the review",
            self.session_service.get_session(session_id),
        )


def _mean(reviews: list[ReviewRecord]) -> tuple[float, int]:
    count = len(reviews)
    if not count:
        return 0.0, 0
    return sum(review.overall_rating for review in reviews) / count, count


def _validate_rating(rating: object) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("Rating must be a whole number of stars")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}"
        )
    return rating


def _normalize_dimensions(scores: dict[str, object]) -> dict[str, int | None]:
    unknown = set(scores) - set(REVIEW_DIMENSIONS)
    if unknown:
        names = ", ".join(sorted(unknown))
        raise ValidationError(f"Unknown review dimensions: {names}")
    normalized: dict[str, int | None] = {}
    for dimension in REVIEW_DIMENSIONS:
        value = scores.get(dimension)
        in_range = (
            isinstance(value, int)
            and not isinstance(value, bool)
            and MIN_RATING <= value <= MAX_RATING
        )
        normalized[dimension] = value if in_range else None
    return normalized
