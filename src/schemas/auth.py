"""Authentication schemas for JWT tokens, user context and caller context."""

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UserContext(BaseModel):
    """Authenticated identity extracted from a JWT token.

    Populated by the auth middleware from the validated JWT. It carries
    the identity only; the platform role lives on the Profile.
    """

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID = Field(description="Unique identifier for the user (from JWT sub claim)")
    email: str | None = Field(default=None, description="User's email address if available")
    role: str | None = Field(default=None, description="Token role claim (e.g. 'authenticated')")
    full_name: str | None = Field(default=None, description="Display name from user metadata")


class TokenPayload(BaseModel):
    """JWT token payload structure for Supabase tokens."""

    model_config = ConfigDict(from_attributes=True)

    sub: str = Field(description="Subject - the user's UUID")
    email: str | None = Field(default=None, description="User's email address")
    role: str | None = Field(default=None, description="User's role")
    exp: int = Field(description="Expiration timestamp (Unix epoch)")
    iat: int = Field(description="Issued at timestamp (Unix epoch)")
    aud: str | None = Field(default=None, description="Audience - intended recipient")
    iss: str | None = Field(default=None, description="Issuer - token issuer URL")
    user_metadata: dict | None = Field(default=None, description="Supabase user metadata")

    def to_user_context(self) -> UserContext:
        """Convert token payload to UserContext.

        Returns:
            UserContext: User context derived from token claims.
        """
        metadata = self.user_metadata or {}
        return UserContext(
            user_id=UUID(self.sub),
            email=self.email,
            role=self.role,
            full_name=metadata.get("full_name"),
        )


class CallerContext(BaseModel):
    """Who is invoking a core operation.

    Passed explicitly into every service call so authorization checks do
    not depend on ambient request state.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    user_id: UUID = Field(description="Auth identity")
    profile_id: UUID = Field(description="Profile acting in the marketplace")
    role: Literal["student", "teacher"] = Field(description="Platform role, authoritative once issued")
    display_name: str = Field(description="Profile full name")
    is_verified: bool = Field(default=False, description="Teacher verification flag")
    is_admin: bool = Field(default=False, description="Privileged actor (role and verification changes)")

    @property
    def is_student(self) -> bool:
        return self.role == "student"

    @property
    def is_teacher(self) -> bool:
        return self.role == "teacher"


class AuthenticatedResponse(BaseModel):
    """Response for authenticated health endpoint."""

    model_config = ConfigDict(from_attributes=True)

    authenticated: bool = Field(default=True, description="Authentication status")
    user_id: str = Field(description="Authenticated user ID")
    email: str | None = Field(default=None, description="User email if available")
    role: str | None = Field(default=None, description="User role if available")
