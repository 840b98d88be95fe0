"""Rating and statistics schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

MIN_SCORE = 1
MAX_SCORE = 5


class RatingCreate(BaseModel):
    """Body of POST /sessions/{id}/rating.

    The score is validated by the rating service as well, so a malformed
    score is reported as a typed ValidationError from any entry point.
    """

    score: int = Field(description="Integer score from 1 to 5")
    comment: str | None = Field(default=None, max_length=2000, description="Optional free-text comment")


class RatingResponse(BaseModel):
    """A stored rating."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    student_id: UUID
    teacher_id: UUID
    rating: int
    comment: str | None = None
    created_at: datetime | None = None


class AggregateStats(BaseModel):
    """Platform-wide counters derived from sessions and ratings."""

    model_config = ConfigDict(from_attributes=True)

    total_completed_sessions: int = Field(description="Sessions with status completed")
    average_rating: float = Field(description="Mean of all rating scores, 0 when none exist")
    updated_at: datetime | None = Field(default=None, description="Last recomputation")


class TeacherStats(BaseModel):
    """Per-teacher figures shown on the teacher dashboard."""

    teacher_id: UUID
    total_completed_sessions: int
    average_rating: float
    rating_count: int


class PlatformOverview(AggregateStats):
    """Aggregate statistics plus the number of teachers online."""

    teachers_online: int = Field(description="Open advertisements right now")
