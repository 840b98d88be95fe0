"""Tutoring session row definitions."""

from datetime import datetime
from typing import Literal, TypedDict
from uuid import UUID

# Matches the session_status database enum
SessionStatus = Literal["pending", "active", "completed", "cancelled"]

# Why a session reached a terminal state
EndReason = Literal["manual", "time_limit", "cancelled"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "cancelled"})


class TutoringSession(TypedDict):
    """sessions table row representation."""

    id: UUID
    advertisement_id: UUID | None
    student_id: UUID
    teacher_id: UUID
    subject_id: UUID
    topic_id: UUID | None
    status: SessionStatus
    started_at: datetime | None
    ended_at: datetime | None
    duration_minutes: int | None
    end_reason: EndReason | None
    created_at: datetime


class TutoringSessionCreate(TypedDict, total=False):
    """Data written when a claim creates a session."""

    advertisement_id: str
    student_id: str
    teacher_id: str
    subject_id: str
    topic_id: str | None
    status: SessionStatus
    started_at: str | None


class TutoringSessionTransition(TypedDict, total=False):
    """Fields changed by a lifecycle transition."""

    status: SessionStatus
    started_at: str
    ended_at: str
    duration_minutes: int
    end_reason: EndReason
