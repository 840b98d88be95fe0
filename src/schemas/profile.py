"""Profile Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProfileUpdate(BaseModel):
    """Schema for the owner updating their profile.

    Role and verification are not part of this schema; they can only be
    changed through the admin endpoints.
    """

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    full_name: str | None = Field(default=None, min_length=1, max_length=255, description="New display name")
    avatar_url: str | None = Field(default=None, description="New avatar URL")
    bio: str | None = Field(default=None, max_length=2000, description="Short biography")


class ProfileResponse(BaseModel):
    """Schema for profile API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Profile unique identifier")
    user_id: UUID = Field(description="Associated auth user ID")
    role: Literal["student", "teacher"] = Field(description="Platform role")
    full_name: str = Field(description="Display name")
    avatar_url: str | None = Field(default=None, description="URL to user's avatar image")
    bio: str | None = Field(default=None, description="Short biography")
    is_verified: bool = Field(default=False, description="Teacher verification flag")
    created_at: datetime = Field(description="Profile creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")


class ProfileSummary(BaseModel):
    """Public subset of a profile embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    avatar_url: str | None = None
    is_verified: bool = False


class RoleChangeRequest(BaseModel):
    """Admin request to change a profile's role."""

    role: Literal["student", "teacher"] = Field(description="New platform role")


class VerificationChangeRequest(BaseModel):
    """Admin request to set a teacher's verification flag."""

    is_verified: bool = Field(description="New verification flag")
