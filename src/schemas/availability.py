"""Availability advertisement schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.schemas.profile import ProfileSummary


class PublishRequest(BaseModel):
    """Body of PUT /availability/me."""

    model_config = ConfigDict(from_attributes=True)

    subject_id: UUID = Field(description="Subject the teacher is free to teach")
    topic_id: UUID | None = Field(default=None, description="Optional topic within the subject")


class AdvertisementFilter(BaseModel):
    """Conjunctive filter for listing open advertisements."""

    subject_id: UUID | None = Field(default=None, description="Only this subject")
    topic_id: UUID | None = Field(default=None, description="Only this topic")
    text_query: str | None = Field(
        default=None,
        max_length=200,
        description="Case-insensitive match on teacher name or subject name",
    )


class AdvertisementResponse(BaseModel):
    """An open advertisement as shown on a student dashboard."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Advertisement instance identifier")
    teacher_id: UUID = Field(description="Advertising teacher's profile id")
    subject_id: UUID = Field(description="Subject on offer")
    topic_id: UUID | None = Field(default=None, description="Topic on offer, if narrowed")
    is_available: bool = Field(default=True, description="Open flag")
    started_at: datetime = Field(description="When the teacher went available")
    teacher: ProfileSummary | None = Field(default=None, description="Teacher display data")
    subject_name: str | None = Field(default=None, description="Subject display name")
    subject_icon: str | None = Field(default=None, description="Subject display icon")
    topic_name: str | None = Field(default=None, description="Topic display name")


class WithdrawResponse(BaseModel):
    """Result of DELETE /availability/me."""

    withdrawn: bool = Field(description="Whether an open advertisement was removed")
