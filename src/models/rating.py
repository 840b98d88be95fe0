"""Rating and statistics row definitions."""

from datetime import datetime
from typing import TypedDict
from uuid import UUID


class Rating(TypedDict):
    """ratings table row representation (unique session_id)."""

    id: UUID
    session_id: UUID
    student_id: UUID
    teacher_id: UUID
    rating: int
    comment: str | None
    created_at: datetime


class AppStats(TypedDict):
    """Singleton app_stats row, derived from sessions and ratings."""

    id: UUID
    total_sessions: int
    average_rating: float
    updated_at: datetime
