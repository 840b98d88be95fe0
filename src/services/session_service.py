"""Tutoring session lifecycle: activation, completion, cancellation and the time cap."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from src.api.middleware.error_handler import (
    InvalidStateError,
    NotAuthorizedError,
    NotFoundError,
    UnavailableError,
)
from src.core.clock import Clock, parse_timestamp, utcnow
from src.core.config import get_settings
from src.core.relay import SESSIONS_TABLE, NotificationRelay, get_relay
from src.core.supabase import get_supabase_client, run_read, run_write
from src.models.session import TERMINAL_STATUSES
from src.schemas.auth import CallerContext
from src.schemas.events import ChangeEvent
from src.services.rating_service import RatingService
from src.services.statistics_service import StatisticsService

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    """Outcome of ending a session."""

    session: dict[str, Any]
    end_reason: str
    already_ended: bool
    rating_prompt: bool = False

    @property
    def time_limit_reached(self) -> bool:
        return self.end_reason == "time_limit"


def compute_duration_minutes(started_at: datetime, ended_at: datetime) -> int:
    """Whole minutes between start and end, never negative."""
    elapsed = (ended_at - started_at).total_seconds()
    return max(0, int(elapsed // 60))


class SessionService:
    """Service owning the session state machine.

    pending -> active -> completed, and pending/active -> cancelled.
    completed and cancelled are terminal. Every transition is a
    conditional update on the expected current status, so concurrent
    triggers (a manual hang-up racing the time cap) apply at most once
    and the loser observes the winner's result.
    """

    def __init__(
        self,
        relay: NotificationRelay | None = None,
        statistics: StatisticsService | None = None,
        ratings: RatingService | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.client = get_supabase_client()
        self.settings = get_settings()
        self.relay = relay or get_relay()
        self.statistics = statistics or StatisticsService(relay=self.relay)
        self.ratings = ratings or RatingService(statistics=self.statistics)
        self.clock = clock

    @property
    def max_duration(self) -> timedelta:
        return timedelta(seconds=self.settings.session_max_duration_seconds)

    # Reads

    async def get_session(self, caller: CallerContext, session_id: UUID) -> dict[str, Any]:
        """Get a session the caller participates in.

        An active session past the time cap is completed before it is
        returned.

        Raises:
            NotFoundError: If the session does not exist.
            NotAuthorizedError: If the caller is not a participant.
        """
        session = self._require_participant(caller, self._fetch(session_id))
        if self.is_expired(session):
            result = await self._complete(session, caller=None)
            return result.session
        return session

    async def get_active_session(self, caller: CallerContext) -> dict[str, Any] | None:
        """The caller's current active session, if any."""
        response = run_read(
            self.client.table(SESSIONS_TABLE)
            .select("*")
            .eq(self._participant_column(caller), str(caller.profile_id))
            .eq("status", "active")
            .order("started_at", desc=True)
            .limit(1)
        )
        if not response.data:
            return None

        session = response.data[0]
        if self.is_expired(session):
            await self._complete(session, caller=None)
            return None
        return session

    async def list_history(self, caller: CallerContext, limit: int = 50) -> list[dict[str, Any]]:
        """The caller's terminal sessions, newest first, with their rating."""
        response = run_read(
            self.client.table(SESSIONS_TABLE)
            .select("*")
            .eq(self._participant_column(caller), str(caller.profile_id))
            .in_("status", sorted(TERMINAL_STATUSES))
            .order("created_at", desc=True)
            .limit(limit)
        )
        sessions = response.data or []
        scores = await self.ratings.ratings_for_sessions([str(s["id"]) for s in sessions])
        return [{**session, "rating": scores.get(str(session["id"]))} for session in sessions]

    # Transitions

    async def activate(self, caller: CallerContext, session_id: UUID) -> dict[str, Any]:
        """Move a pending session to active, stamping started_at.

        Activating an already active session is a no-op.

        Raises:
            InvalidStateError: If the session is terminal.
        """
        session = self._require_participant(caller, self._fetch(session_id))
        if session["status"] == "active":
            return session
        if session["status"] != "pending":
            raise InvalidStateError(f"Cannot activate a session that is {session['status']}")

        response = run_write(
            self.client.table(SESSIONS_TABLE)
            .update({"status": "active", "started_at": self.clock().isoformat()})
            .eq("id", str(session_id))
            .eq("status", "pending")
        )
        if not response.data:
            current = self._fetch(session_id)
            if current["status"] == "active":
                return current
            raise InvalidStateError(f"Cannot activate a session that is {current['status']}")

        activated = response.data[0]
        logger.info("Session %s activated", session_id)
        self._notify(activated, session)
        return activated

    async def complete(self, caller: CallerContext, session_id: UUID) -> CompletionResult:
        """End an active session on behalf of a participant.

        Idempotent: completing an already completed session returns it
        unchanged with already_ended set. If the time cap has passed the
        session is ended at the cap with end_reason "time_limit".

        Raises:
            NotFoundError: If the session does not exist.
            NotAuthorizedError: If the caller is not a participant.
            InvalidStateError: If the session is pending or cancelled.
        """
        session = self._require_participant(caller, self._fetch(session_id))
        return await self._complete(session, caller=caller)

    async def cancel(self, caller: CallerContext, session_id: UUID) -> dict[str, Any]:
        """Abandon a pending or active session.

        Cancelling an already cancelled session is a no-op. No duration is
        recorded for cancelled sessions.

        Raises:
            InvalidStateError: If the session is already completed.
        """
        session = self._require_participant(caller, self._fetch(session_id))
        if session["status"] == "cancelled":
            return session
        if session["status"] == "completed":
            raise InvalidStateError("Cannot cancel a completed session")

        response = run_write(
            self.client.table(SESSIONS_TABLE)
            .update(
                {
                    "status": "cancelled",
                    "ended_at": self.clock().isoformat(),
                    "end_reason": "cancelled",
                }
            )
            .eq("id", str(session_id))
            .in_("status", ["pending", "active"])
        )
        if not response.data:
            current = self._fetch(session_id)
            if current["status"] == "cancelled":
                return current
            raise InvalidStateError(f"Cannot cancel a session that is {current['status']}")

        cancelled = response.data[0]
        logger.info("Session %s cancelled by %s", session_id, caller.profile_id)
        self._notify(cancelled, session, reason="cancelled")
        return cancelled

    # Time cap

    def is_expired(self, session: dict[str, Any], now: datetime | None = None) -> bool:
        """Whether an active session has reached the time cap."""
        if session["status"] != "active" or not session.get("started_at"):
            return False
        now = now or self.clock()
        return now - parse_timestamp(session["started_at"]) >= self.max_duration

    async def enforce_time_limit(self, session: dict[str, Any]) -> CompletionResult | None:
        """Complete a session if it is past the cap, otherwise do nothing."""
        if not self.is_expired(session):
            return None
        return await self._complete(session, caller=None)

    async def sweep(self) -> int:
        """Complete every active session that has reached the time cap.

        Returns:
            int: Number of sessions this sweep completed.
        """
        cutoff = self.clock() - self.max_duration
        response = run_read(
            self.client.table(SESSIONS_TABLE)
            .select("*")
            .eq("status", "active")
            .lte("started_at", cutoff.isoformat())
        )

        completed = 0
        for session in response.data or []:
            try:
                result = await self.enforce_time_limit(session)
            except InvalidStateError:
                # Cancelled between the read and the update
                continue
            if result and not result.already_ended:
                completed += 1

        if completed:
            logger.info("Time limit sweep completed %d sessions", completed)
        return completed

    # Internals

    async def _complete(self, session: dict[str, Any], caller: CallerContext | None) -> CompletionResult:
        session_id = session["id"]

        if session["status"] == "completed":
            return await self._result(session, caller, already_ended=True)
        if session["status"] != "active":
            raise InvalidStateError(f"Cannot complete a session that is {session['status']}")

        now = self.clock()
        started_at = parse_timestamp(session["started_at"]) if session.get("started_at") else now
        if now - started_at >= self.max_duration:
            ended_at = started_at + self.max_duration
            end_reason = "time_limit"
        else:
            ended_at = now
            end_reason = "manual"

        response = run_write(
            self.client.table(SESSIONS_TABLE)
            .update(
                {
                    "status": "completed",
                    "ended_at": ended_at.isoformat(),
                    "duration_minutes": compute_duration_minutes(started_at, ended_at),
                    "end_reason": end_reason,
                }
            )
            .eq("id", str(session_id))
            .eq("status", "active")
        )

        if not response.data:
            # Another trigger got there first
            current = self._fetch(session_id)
            if current["status"] == "completed":
                return await self._result(current, caller, already_ended=True)
            raise InvalidStateError(f"Cannot complete a session that is {current['status']}")

        completed = response.data[0]
        logger.info(
            "Session %s completed (%s) after %s minutes",
            session_id,
            end_reason,
            completed.get("duration_minutes"),
        )
        self._notify(completed, session, reason=end_reason)

        try:
            await self.statistics.recompute()
        except UnavailableError:
            logger.warning("Statistics not recomputed after completion of session %s", session_id)

        return await self._result(completed, caller, already_ended=False)

    async def _result(
        self,
        session: dict[str, Any],
        caller: CallerContext | None,
        already_ended: bool,
    ) -> CompletionResult:
        rating_prompt = False
        if caller is not None and caller.is_student and str(session["student_id"]) == str(caller.profile_id):
            rating_prompt = await self.ratings.get_rating(session["id"]) is None

        return CompletionResult(
            session=session,
            end_reason=session.get("end_reason") or "manual",
            already_ended=already_ended,
            rating_prompt=rating_prompt,
        )

    def _fetch(self, session_id: UUID | str) -> dict[str, Any]:
        response = run_read(
            self.client.table(SESSIONS_TABLE)
            .select("*")
            .eq("id", str(session_id))
            .maybe_single()
        )
        if response is None or not response.data:
            raise NotFoundError(f"Session {session_id} not found")
        return response.data

    @staticmethod
    def _require_participant(caller: CallerContext, session: dict[str, Any]) -> dict[str, Any]:
        profile_id = str(caller.profile_id)
        if profile_id not in (str(session["student_id"]), str(session["teacher_id"])):
            raise NotAuthorizedError("Only the session's participants can access it")
        return session

    @staticmethod
    def _participant_column(caller: CallerContext) -> str:
        return "teacher_id" if caller.is_teacher else "student_id"

    def _notify(self, record: dict[str, Any], old_record: dict[str, Any], reason: str | None = None) -> None:
        self.relay.publish(
            ChangeEvent(
                table=SESSIONS_TABLE,
                type="UPDATE",
                record=record,
                old_record=old_record,
                reason=reason,
            )
        )
