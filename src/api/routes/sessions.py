"""Tutoring session routes: claim, lifecycle transitions, history and rating."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from src.api.deps import Caller, WriteRateLimit
from src.schemas.rating import RatingCreate, RatingResponse
from src.schemas.session import (
    ClaimRequest,
    CompletionResponse,
    SessionHistoryItem,
    SessionResponse,
)
from src.services.claim_service import ClaimService
from src.services.rating_service import RatingService
from src.services.session_service import CompletionResult, SessionService

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _completion_response(result: CompletionResult) -> CompletionResponse:
    return CompletionResponse(
        session=SessionResponse(**result.session),
        end_reason=result.end_reason,
        time_limit_reached=result.time_limit_reached,
        already_ended=result.already_ended,
        rating_prompt=result.rating_prompt,
    )


@router.post(
    "/claim",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Connect with an available teacher",
    description=(
        "Atomically claims an open advertisement and starts an active session. "
        "A lost race returns 409 already_claimed with the refreshed open advertisements."
    ),
    responses={
        403: {"description": "Caller is not a student"},
        404: {"description": "Advertisement withdrawn or superseded"},
        409: {"description": "Another student claimed this teacher first"},
    },
)
async def claim_advertisement(
    data: ClaimRequest,
    caller: Caller,
    _rate_limit: WriteRateLimit,
) -> SessionResponse:
    """Claim an advertisement for the calling student.

    Args:
        data: The advertisement id the student selected.
        caller: Must be a student.

    Returns:
        SessionResponse: The new active session.
    """
    service = ClaimService()
    session = await service.claim(caller, data.advertisement_id)
    return SessionResponse(**session)


@router.get(
    "/active",
    response_model=SessionResponse | None,
    summary="Get my active session",
    description="The caller's active session, or null. Sessions past the time cap are completed first.",
)
async def get_active_session(caller: Caller) -> SessionResponse | None:
    session = await SessionService().get_active_session(caller)
    return SessionResponse(**session) if session else None


@router.get(
    "/history",
    response_model=list[SessionHistoryItem],
    summary="List my past sessions",
    description="Completed and cancelled sessions, newest first, with the rating if any.",
)
async def list_session_history(
    caller: Caller,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> list[SessionHistoryItem]:
    sessions = await SessionService().list_history(caller, limit=limit)
    return [SessionHistoryItem(**session) for session in sessions]


@router.get(
    "/{session_id}",
    response_model=SessionResponse,
    summary="Get a session",
    description="Participants only.",
)
async def get_session(session_id: UUID, caller: Caller) -> SessionResponse:
    session = await SessionService().get_session(caller, session_id)
    return SessionResponse(**session)


@router.post(
    "/{session_id}/activate",
    response_model=SessionResponse,
    summary="Start a pending session",
)
async def activate_session(session_id: UUID, caller: Caller) -> SessionResponse:
    session = await SessionService().activate(caller, session_id)
    return SessionResponse(**session)


@router.post(
    "/{session_id}/complete",
    response_model=CompletionResponse,
    summary="End a session",
    description=(
        "Ends an active session. Repeating the call is a no-op. "
        "end_reason tells a hang-up apart from the time limit."
    ),
)
async def complete_session(session_id: UUID, caller: Caller) -> CompletionResponse:
    """End a session on behalf of a participant.

    Args:
        session_id: The session to end.
        caller: A participant of the session.

    Returns:
        CompletionResponse: The terminal session and whether to prompt for a rating.
    """
    result = await SessionService().complete(caller, session_id)
    return _completion_response(result)


@router.post(
    "/{session_id}/cancel",
    response_model=SessionResponse,
    summary="Cancel a session",
)
async def cancel_session(session_id: UUID, caller: Caller) -> SessionResponse:
    session = await SessionService().cancel(caller, session_id)
    return SessionResponse(**session)


@router.post(
    "/{session_id}/rating",
    response_model=RatingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Rate a completed session",
    description="Student only, once per session.",
)
async def rate_session(session_id: UUID, data: RatingCreate, caller: Caller) -> RatingResponse:
    rating = await RatingService().submit(caller, session_id, data.score, data.comment)
    return RatingResponse(**rating)
