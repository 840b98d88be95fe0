"""Profile model type definitions for database operations."""

from datetime import datetime
from typing import Literal, TypedDict
from uuid import UUID

# Matches the user_role database enum
UserRole = Literal["student", "teacher"]


class Profile(TypedDict):
    """Profile table row representation.

    One row per authenticated identity. The role is assigned once at
    creation and can only be changed by a privileged actor afterwards.
    """

    id: UUID
    user_id: UUID
    role: UserRole
    full_name: str
    avatar_url: str | None
    bio: str | None
    is_verified: bool
    created_at: datetime
    updated_at: datetime


class ProfileCreate(TypedDict, total=False):
    """Data required to create a new profile."""

    user_id: UUID
    role: UserRole
    full_name: str
    avatar_url: str | None


class ProfileUpdate(TypedDict, total=False):
    """Fields the owning identity may change (never role or verification)."""

    full_name: str
    avatar_url: str | None
    bio: str | None
