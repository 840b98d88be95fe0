"""Statistics routes."""

from uuid import UUID

from fastapi import APIRouter

from src.schemas.rating import AggregateStats, PlatformOverview, TeacherStats
from src.services.statistics_service import StatisticsService

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get(
    "",
    response_model=AggregateStats,
    summary="Platform statistics",
    description="Completed sessions and mean rating. World-readable.",
)
async def get_stats() -> AggregateStats:
    stats = await StatisticsService().get_stats()
    return AggregateStats(**stats)


@router.get(
    "/overview",
    response_model=PlatformOverview,
    summary="Landing page figures",
    description="Platform statistics plus the number of teachers online.",
)
async def get_overview() -> PlatformOverview:
    overview = await StatisticsService().overview()
    return PlatformOverview(**overview)


@router.get(
    "/teachers/{teacher_id}",
    response_model=TeacherStats,
    summary="Teacher statistics",
    description="Completed sessions and mean rating of one teacher.",
)
async def get_teacher_stats(teacher_id: UUID) -> TeacherStats:
    stats = await StatisticsService().teacher_stats(teacher_id)
    return TeacherStats(**stats)
