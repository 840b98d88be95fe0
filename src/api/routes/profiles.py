"""Profile API routes."""

from uuid import UUID

from fastapi import APIRouter

from src.api.deps import AdminCaller, Caller
from src.schemas.profile import (
    ProfileResponse,
    ProfileUpdate,
    RoleChangeRequest,
    VerificationChangeRequest,
)
from src.services.profile_service import ProfileService

router = APIRouter(prefix="/profiles", tags=["profiles"])

admin_router = APIRouter(prefix="/admin/profiles", tags=["admin"])


@router.get(
    "/me",
    response_model=ProfileResponse,
    summary="Get current user's profile",
    description="Returns the authenticated user's profile, creating it with the student role on first sign-in.",
)
async def get_my_profile(caller: Caller) -> ProfileResponse:
    """Get the authenticated user's profile.

    Args:
        caller: The resolved caller context.

    Returns:
        ProfileResponse: The user's profile data.
    """
    service = ProfileService()
    profile = await service.get_profile_by_id(caller.profile_id)
    return ProfileResponse(**profile)


@router.put(
    "/me",
    response_model=ProfileResponse,
    summary="Update current user's profile",
    description="Updates display fields. Role and verification cannot be changed here.",
)
async def update_my_profile(data: ProfileUpdate, caller: Caller) -> ProfileResponse:
    """Update the authenticated user's profile.

    Args:
        data: Fields to update.
        caller: The resolved caller context.

    Returns:
        ProfileResponse: The updated profile data.
    """
    service = ProfileService()
    profile = await service.update_profile(caller, data)
    return ProfileResponse(**profile)


@admin_router.put(
    "/{profile_id}/role",
    response_model=ProfileResponse,
    summary="Change a profile's role",
    description="Admin only. Demoting a teacher withdraws their availability.",
)
async def change_role(profile_id: UUID, data: RoleChangeRequest, caller: AdminCaller) -> ProfileResponse:
    service = ProfileService()
    profile = await service.set_role(caller, profile_id, data.role)
    return ProfileResponse(**profile)


@admin_router.put(
    "/{profile_id}/verification",
    response_model=ProfileResponse,
    summary="Set a teacher's verification flag",
    description="Admin only.",
)
async def change_verification(
    profile_id: UUID,
    data: VerificationChangeRequest,
    caller: AdminCaller,
) -> ProfileResponse:
    service = ProfileService()
    profile = await service.set_verified(caller, profile_id, data.is_verified)
    return ProfileResponse(**profile)
