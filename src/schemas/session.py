"""Tutoring session Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

SessionStatus = Literal["pending", "active", "completed", "cancelled"]
EndReason = Literal["manual", "time_limit", "cancelled"]


class ClaimRequest(BaseModel):
    """Body of POST /sessions/claim."""

    advertisement_id: UUID = Field(description="Advertisement instance the student saw")


class SessionResponse(BaseModel):
    """A tutoring session."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Session identifier")
    advertisement_id: UUID | None = Field(default=None, description="Advertisement this session was claimed from")
    student_id: UUID = Field(description="Student profile id")
    teacher_id: UUID = Field(description="Teacher profile id")
    subject_id: UUID = Field(description="Subject")
    topic_id: UUID | None = Field(default=None, description="Topic, if narrowed")
    status: SessionStatus = Field(description="Lifecycle state")
    started_at: datetime | None = Field(default=None, description="Set when the session becomes active")
    ended_at: datetime | None = Field(default=None, description="Set on entering a terminal state")
    duration_minutes: int | None = Field(default=None, description="Whole minutes, derived on completion")
    end_reason: EndReason | None = Field(default=None, description="manual hang-up, time limit, or cancellation")
    created_at: datetime | None = Field(default=None, description="Row creation time")


class CompletionResponse(BaseModel):
    """Outcome of ending a session."""

    session: SessionResponse = Field(description="The session in its terminal state")
    end_reason: EndReason = Field(description="Why the session ended")
    time_limit_reached: bool = Field(description="True when the one-hour cap forced completion")
    already_ended: bool = Field(description="True when another trigger had already ended it")
    rating_prompt: bool = Field(description="Offer the one-time rating prompt to this caller")


class SessionHistoryItem(SessionResponse):
    """A terminal session with its rating, for the history view."""

    rating: int | None = Field(default=None, description="Student's score, if rated")
