"""Subject and topic catalog routes."""

from uuid import UUID

from fastapi import APIRouter

from src.api.deps import CurrentUser
from src.schemas.catalog import SubjectResponse, TopicResponse
from src.services.catalog_service import CatalogService

router = APIRouter(prefix="/subjects", tags=["catalog"])


@router.get(
    "",
    response_model=list[SubjectResponse],
    summary="List subjects",
    description="All subjects ordered by name.",
)
async def list_subjects(user: CurrentUser) -> list[SubjectResponse]:
    subjects = await CatalogService().list_subjects()
    return [SubjectResponse(**subject) for subject in subjects]


@router.get(
    "/{subject_id}/topics",
    response_model=list[TopicResponse],
    summary="List topics of a subject",
    description="Topics of one subject ordered by name.",
)
async def list_topics(subject_id: UUID, user: CurrentUser) -> list[TopicResponse]:
    topics = await CatalogService().list_topics(subject_id)
    return [TopicResponse(**topic) for topic in topics]
