"""Profile business logic service."""

import logging
from typing import Any
from uuid import UUID

from postgrest.exceptions import APIError as PostgrestAPIError

from src.api.middleware.error_handler import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from src.core.supabase import get_supabase_client, is_unique_violation, run_read, run_write
from src.models.profile import UserRole
from src.schemas.auth import CallerContext, UserContext
from src.schemas.profile import ProfileUpdate
from src.services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

# Role given to every identity on first sign-in; only an admin can change it
DEFAULT_ROLE: UserRole = "student"


class ProfileService:
    """Service for managing user profiles."""

    def __init__(self) -> None:
        """Initialize profile service with Supabase client."""
        self.client = get_supabase_client()

    async def get_or_create_profile(self, user: UserContext) -> dict[str, Any]:
        """Get the identity's profile, creating it on first sign-in.

        The role of a new profile is always the default; whatever the
        client put in its sign-up metadata is not consulted.

        Args:
            user: The authenticated identity.

        Returns:
            dict: The profile data.
        """
        profile = await self.get_profile(user.user_id)
        if profile:
            return profile

        profile_data = {
            "user_id": str(user.user_id),
            "role": DEFAULT_ROLE,
            "full_name": user.full_name or _name_from_email(user.email),
        }

        try:
            response = run_write(
                self.client.table("profiles")
                .insert(profile_data)
            )
        except PostgrestAPIError as e:
            if not is_unique_violation(e):
                raise
            # Created concurrently by another request of the same identity
            profile = await self.get_profile(user.user_id)
            if profile is None:
                raise
            return profile

        logger.info("Created %s profile for user %s", DEFAULT_ROLE, user.user_id)
        return response.data[0]

    async def get_profile(self, user_id: UUID) -> dict[str, Any] | None:
        """Get a profile by auth user ID.

        Args:
            user_id: The auth user ID.

        Returns:
            dict | None: The profile data or None if not found.
        """
        response = run_read(
            self.client.table("profiles")
            .select("*")
            .eq("user_id", str(user_id))
            .limit(1)
        )
        return response.data[0] if response.data else None

    async def get_profile_by_id(self, profile_id: UUID) -> dict[str, Any]:
        """Get a profile by profile ID.

        Raises:
            NotFoundError: If no such profile exists.
        """
        response = run_read(
            self.client.table("profiles")
            .select("*")
            .eq("id", str(profile_id))
            .limit(1)
        )
        if not response.data:
            raise NotFoundError(f"Profile {profile_id} not found")
        return response.data[0]

    async def is_admin(self, user_id: UUID) -> bool:
        """Check whether the identity holds the admin role in user_roles."""
        response = run_read(
            self.client.table("user_roles")
            .select("role")
            .eq("user_id", str(user_id))
            .eq("role", "admin")
            .limit(1)
        )
        return bool(response.data)

    async def get_caller_context(self, user: UserContext) -> CallerContext:
        """Resolve the authenticated identity into the context passed to services."""
        profile = await self.get_or_create_profile(user)
        return CallerContext(
            user_id=user.user_id,
            profile_id=profile["id"],
            role=profile["role"],
            display_name=profile.get("full_name") or "",
            is_verified=bool(profile.get("is_verified")),
            is_admin=await self.is_admin(user.user_id),
        )

    async def update_profile(self, caller: CallerContext, data: ProfileUpdate) -> dict[str, Any]:
        """Update the caller's own profile.

        Only display fields are written; role and verification are not
        part of ProfileUpdate.

        Args:
            caller: The profile owner.
            data: The fields to update.

        Returns:
            dict: The updated profile data.
        """
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)

        if not update_data:
            return await self.get_profile_by_id(caller.profile_id)

        response = run_write(
            self.client.table("profiles")
            .update(update_data)
            .eq("id", str(caller.profile_id))
        )
        if not response.data:
            raise NotFoundError("Profile not found")
        return response.data[0]

    async def set_role(self, caller: CallerContext, profile_id: UUID, role: UserRole) -> dict[str, Any]:
        """Change a profile's role (admin only).

        Demoting a teacher withdraws their open advertisement and clears
        their verification flag.

        Raises:
            AuthorizationError: If the caller is not an admin.
            NotFoundError: If the profile does not exist.
        """
        self._require_admin(caller)
        profile = await self.get_profile_by_id(profile_id)
        if profile["role"] == role:
            return profile

        update_data: dict[str, Any] = {"role": role}
        if role == "student":
            update_data["is_verified"] = False

        response = run_write(
            self.client.table("profiles")
            .update(update_data)
            .eq("id", str(profile_id))
        )

        if profile["role"] == "teacher":
            await AvailabilityService().remove_for_teacher(profile_id)

        logger.info(
            "Admin %s changed role of profile %s from %s to %s",
            caller.profile_id,
            profile_id,
            profile["role"],
            role,
        )
        return response.data[0]

    async def set_verified(self, caller: CallerContext, profile_id: UUID, is_verified: bool) -> dict[str, Any]:
        """Set a teacher's verification flag (admin only).

        Raises:
            AuthorizationError: If the caller is not an admin.
            NotFoundError: If the profile does not exist.
            ValidationError: If the profile is not a teacher.
        """
        self._require_admin(caller)
        profile = await self.get_profile_by_id(profile_id)
        if profile["role"] != "teacher":
            raise ValidationError("Only teacher profiles can be verified")

        response = run_write(
            self.client.table("profiles")
            .update({"is_verified": is_verified})
            .eq("id", str(profile_id))
        )
        logger.info("Admin %s set verified=%s on profile %s", caller.profile_id, is_verified, profile_id)
        return response.data[0]

    @staticmethod
    def _require_admin(caller: CallerContext) -> None:
        if not caller.is_admin:
            raise AuthorizationError("Administrator privileges required")


def _name_from_email(email: str | None) -> str:
    if not email:
        return "New user"
    return email.split("@", 1)[0]
