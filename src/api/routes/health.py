"""Liveness, readiness and token-check endpoints."""

import time

from fastapi import APIRouter, Response, status

from src.api.deps import CurrentUser
from src.core.relay import get_relay
from src.core.supabase import check_database_connection
from src.schemas.auth import AuthenticatedResponse
from src.schemas.common import DependencyCheck, HealthResponse, HealthStatus, ReadinessResponse
from src.services.session_sweeper import get_sweeper

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse, summary="Liveness check")
async def health_check() -> HealthResponse:
    return HealthResponse(status=HealthStatus.HEALTHY)


async def _database_check() -> DependencyCheck:
    started = time.perf_counter()
    result = await check_database_connection()
    return DependencyCheck(
        name="database",
        healthy=result["healthy"],
        latency_ms=round((time.perf_counter() - started) * 1000, 2),
        error=result.get("error"),
    )


def _sweeper_check() -> DependencyCheck:
    sweeper = get_sweeper()
    if sweeper.running:
        return DependencyCheck(name="session_sweeper", healthy=True)
    if sweeper.interval_seconds <= 0:
        # Disabled by configuration; the check-on-read guard still applies
        return DependencyCheck(name="session_sweeper", healthy=True, error="disabled")
    return DependencyCheck(name="session_sweeper", healthy=False, error="not running")


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={503: {"description": "Datastore unreachable"}},
    summary="Readiness check",
)
async def readiness_check(response: Response) -> ReadinessResponse:
    """Probe the datastore and the time-limit sweeper.

    Only an unreachable datastore makes the instance unready (503); a
    stopped sweeper is reported but sessions are still capped on read.
    """
    database = await _database_check()
    checks = [database, _sweeper_check()]

    if not database.healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status=HealthStatus.HEALTHY if all(c.healthy for c in checks) else HealthStatus.UNHEALTHY,
        checks=checks,
        feed_subscribers=get_relay().subscriber_count(),
    )


@router.get(
    "/health/auth",
    response_model=AuthenticatedResponse,
    summary="Token check",
    responses={401: {"description": "Missing, expired or invalid token"}},
)
async def authenticated_check(user: CurrentUser) -> AuthenticatedResponse:
    """Echo the identity carried by the bearer token."""
    return AuthenticatedResponse(user_id=str(user.user_id), email=user.email, role=user.role)
