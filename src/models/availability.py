"""Availability advertisement row definitions."""

from datetime import datetime
from typing import TypedDict
from uuid import UUID


class Advertisement(TypedDict):
    """teacher_availability table row representation.

    At most one row exists per teacher (unique teacher_id). Publishing
    again replaces the row, including its id, so a claim against the
    previous instance cannot succeed.
    """

    id: UUID
    teacher_id: UUID
    subject_id: UUID
    topic_id: UUID | None
    is_available: bool
    started_at: datetime


class AdvertisementUpsert(TypedDict, total=False):
    """Payload written by publish."""

    id: str
    teacher_id: str
    subject_id: str
    topic_id: str | None
    is_available: bool
    started_at: str
