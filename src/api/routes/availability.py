"""Teacher availability routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query

from src.api.deps import Caller, CurrentUser, WriteRateLimit
from src.schemas.availability import (
    AdvertisementFilter,
    AdvertisementResponse,
    PublishRequest,
    WithdrawResponse,
)
from src.services.availability_service import AvailabilityService

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get(
    "",
    response_model=list[AdvertisementResponse],
    summary="List open advertisements",
    description="Teachers currently available, filtered by subject, topic and a name search.",
)
async def list_open_advertisements(
    user: CurrentUser,
    subject_id: UUID | None = None,
    topic_id: UUID | None = None,
    q: Annotated[str | None, Query(max_length=200, description="Teacher or subject name")] = None,
) -> list[AdvertisementResponse]:
    """List open advertisements for the student dashboard.

    Args:
        user: Any authenticated user.
        subject_id: Optional subject filter.
        topic_id: Optional topic filter.
        q: Optional case-insensitive text query.

    Returns:
        list[AdvertisementResponse]: Matching advertisements.
    """
    service = AvailabilityService()
    advertisements = await service.list_open(
        AdvertisementFilter(subject_id=subject_id, topic_id=topic_id, text_query=q)
    )
    return [AdvertisementResponse(**ad) for ad in advertisements]


@router.get(
    "/me",
    response_model=AdvertisementResponse | None,
    summary="Get my advertisement",
    description="The calling teacher's current advertisement, or null.",
)
async def get_my_advertisement(caller: Caller) -> AdvertisementResponse | None:
    service = AvailabilityService()
    advertisement = await service.get_for_teacher(caller.profile_id)
    return AdvertisementResponse(**advertisement) if advertisement else None


@router.put(
    "/me",
    response_model=AdvertisementResponse,
    summary="Go available",
    description="Publish or replace the calling teacher's advertisement.",
)
async def publish_availability(
    data: PublishRequest,
    caller: Caller,
    _rate_limit: WriteRateLimit,
) -> AdvertisementResponse:
    """Publish the calling teacher's availability.

    Replaces any previous advertisement of the teacher.

    Args:
        data: Subject and optional topic.
        caller: Must be a teacher.

    Returns:
        AdvertisementResponse: The new advertisement.
    """
    service = AvailabilityService()
    advertisement = await service.publish(caller, data.subject_id, data.topic_id)
    return AdvertisementResponse(**advertisement)


@router.delete(
    "/me",
    response_model=WithdrawResponse,
    summary="Go unavailable",
    description="Withdraw the calling teacher's advertisement. Idempotent.",
)
async def withdraw_availability(caller: Caller) -> WithdrawResponse:
    service = AvailabilityService()
    withdrawn = await service.withdraw(caller)
    return WithdrawResponse(withdrawn=withdrawn)
