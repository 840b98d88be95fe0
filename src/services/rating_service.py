"""Post-session ratings."""

import logging
from typing import Any
from uuid import UUID

from postgrest.exceptions import APIError as PostgrestAPIError

from src.api.middleware.error_handler import (
    AlreadyRatedError,
    InvalidStateError,
    NotAuthorizedError,
    NotFoundError,
    UnavailableError,
    ValidationError,
)
from src.core.supabase import get_supabase_client, is_unique_violation, run_read, run_write
from src.schemas.auth import CallerContext
from src.schemas.rating import MAX_SCORE, MIN_SCORE
from src.services.statistics_service import StatisticsService

logger = logging.getLogger(__name__)


def validate_score(score: Any) -> int:
    """Check a rating score is an integer in 1..5.

    Raises:
        ValidationError: If the score is not an integer or out of range.
    """
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValidationError(
            "Rating must be a whole number",
            details=[{"loc": ["body", "score"], "msg": "Not an integer", "type": "int_type"}],
        )
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError(
            f"Rating must be between {MIN_SCORE} and {MAX_SCORE}",
            details=[{"loc": ["body", "score"], "msg": f"Got {score}", "type": "value_error"}],
        )
    return score


class RatingService:
    """Service for submitting and reading session ratings.

    At most one rating exists per session (unique session_id); it is
    written once by the session's student and never changed.
    """

    def __init__(self, statistics: StatisticsService | None = None) -> None:
        self.client = get_supabase_client()
        self.statistics = statistics or StatisticsService()

    async def submit(
        self,
        caller: CallerContext,
        session_id: UUID,
        score: Any,
        comment: str | None = None,
    ) -> dict[str, Any]:
        """Rate a completed session.

        Args:
            caller: Must be the session's student.
            session_id: Session being rated.
            score: Integer from 1 to 5.
            comment: Optional free text.

        Returns:
            dict: The stored rating row.

        Raises:
            ValidationError: If the score is malformed.
            NotFoundError: If the session does not exist.
            NotAuthorizedError: If the caller is not the session's student.
            InvalidStateError: If the session is not completed.
            AlreadyRatedError: If the session already has a rating.
        """
        score = validate_score(score)

        response = run_read(
            self.client.table("sessions")
            .select("*")
            .eq("id", str(session_id))
            .maybe_single()
        )
        if response is None or not response.data:
            raise NotFoundError(f"Session {session_id} not found")
        session = response.data

        if str(session["student_id"]) != str(caller.profile_id):
            raise NotAuthorizedError("Only the session's student can rate it")
        if session["status"] != "completed":
            raise InvalidStateError(f"Cannot rate a session that is {session['status']}")

        if await self.get_rating(session_id):
            raise AlreadyRatedError()

        rating_data = {
            "session_id": str(session_id),
            "student_id": str(session["student_id"]),
            "teacher_id": str(session["teacher_id"]),
            "rating": score,
            "comment": comment.strip() if comment and comment.strip() else None,
        }
        try:
            response = run_write(
                self.client.table("ratings")
                .insert(rating_data)
            )
        except PostgrestAPIError as e:
            if is_unique_violation(e):
                raise AlreadyRatedError() from e
            raise

        rating = response.data[0]
        logger.info("Session %s rated %d by student %s", session_id, score, caller.profile_id)

        try:
            await self.statistics.recompute()
        except UnavailableError:
            logger.warning("Statistics not recomputed after rating of session %s", session_id)

        return rating

    async def get_rating(self, session_id: UUID) -> dict[str, Any] | None:
        response = run_read(
            self.client.table("ratings")
            .select("*")
            .eq("session_id", str(session_id))
            .limit(1)
        )
        return response.data[0] if response.data else None

    async def ratings_for_sessions(self, session_ids: list[str]) -> dict[str, int]:
        """Map session id to rating score for the given sessions."""
        if not session_ids:
            return {}
        response = run_read(
            self.client.table("ratings")
            .select("session_id, rating")
            .in_("session_id", session_ids)
        )
        return {str(row["session_id"]): int(row["rating"]) for row in response.data or []}
