"""Claim coordination: turning an open advertisement into a session."""

import logging
from typing import Any
from uuid import UUID

from postgrest.exceptions import APIError as PostgrestAPIError

from src.api.middleware.error_handler import (
    AlreadyClaimedError,
    NotAStudentError,
    NotFoundError,
    UnavailableError,
)
from src.core.clock import Clock, utcnow
from src.core.relay import AVAILABILITY_TABLE, SESSIONS_TABLE, NotificationRelay, get_relay
from src.core.supabase import get_supabase_client, is_unique_violation, run_read, run_write
from src.schemas.auth import CallerContext
from src.schemas.events import ChangeEvent
from src.services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)


class ClaimService:
    """Atomically converts an open advertisement into an active session.

    The claim is a compare-and-set on the advertisement row followed by
    the session insert and the removal of the advertisement:

    1. close:  UPDATE ... SET is_available = false WHERE id = ? AND is_available
    2. insert: the session, whose advertisement_id column is unique
    3. retire: DELETE the closed advertisement

    Step 1 is a single conditional statement, so among concurrent callers
    exactly one gets the row back; everyone else sees zero rows and reports
    AlreadyClaimed. The unique advertisement_id column backs this up at the
    storage layer. If step 2 fails the advertisement is reopened.
    """

    def __init__(
        self,
        relay: NotificationRelay | None = None,
        availability: AvailabilityService | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.client = get_supabase_client()
        self.relay = relay or get_relay()
        self.availability = availability or AvailabilityService(relay=self.relay, clock=clock)
        self.clock = clock

    async def claim(self, caller: CallerContext, advertisement_id: UUID) -> dict[str, Any]:
        """Claim an advertisement for the calling student.

        Args:
            caller: Must be acting as a student.
            advertisement_id: The advertisement instance the student saw.

        Returns:
            dict: The new session row, status active.

        Raises:
            NotAStudentError: If the caller is not a student.
            AlreadyClaimedError: If another claim won, carrying the
                refreshed list of open advertisements.
            NotFoundError: If the advertisement was withdrawn or superseded.
            UnavailableError: If the datastore could not be reached.
        """
        if not caller.is_student:
            raise NotAStudentError()

        response = run_write(
            self.client.table(AVAILABILITY_TABLE)
            .update({"is_available": False})
            .eq("id", str(advertisement_id))
            .eq("is_available", True)
        )
        if not response.data:
            await self._raise_claim_failure(advertisement_id)

        advertisement = response.data[0]
        session_data = {
            "advertisement_id": str(advertisement["id"]),
            "student_id": str(caller.profile_id),
            "teacher_id": str(advertisement["teacher_id"]),
            "subject_id": str(advertisement["subject_id"]),
            "topic_id": str(advertisement["topic_id"]) if advertisement.get("topic_id") else None,
            "status": "active",
            "started_at": self.clock().isoformat(),
        }

        try:
            response = run_write(
                self.client.table(SESSIONS_TABLE)
                .insert(session_data)
            )
        except PostgrestAPIError as e:
            self._reopen(advertisement)
            if is_unique_violation(e):
                await self._raise_claim_failure(advertisement_id)
            raise
        except UnavailableError:
            # The insert may have landed even though the response was lost
            session = self._find_session(advertisement_id)
            if session is None or str(session["student_id"]) != str(caller.profile_id):
                self._reopen(advertisement)
                raise
        else:
            session = response.data[0]

        self._retire(advertisement)

        logger.info(
            "Student %s claimed advertisement %s of teacher %s, session %s",
            caller.profile_id,
            advertisement_id,
            advertisement["teacher_id"],
            session["id"],
        )
        self.relay.publish(ChangeEvent(table=SESSIONS_TABLE, type="INSERT", record=session))
        return session

    async def _raise_claim_failure(self, advertisement_id: UUID) -> None:
        """Explain a claim that matched no open advertisement.

        Raises:
            AlreadyClaimedError: If the advertisement is closed or already
                recorded on a session.
            NotFoundError: If it no longer exists at all.
        """
        closed = run_read(
            self.client.table(AVAILABILITY_TABLE)
            .select("id")
            .eq("id", str(advertisement_id))
            .limit(1)
        )
        if closed.data or self._find_session(advertisement_id) is not None:
            logger.warning("Lost claim race for advertisement %s", advertisement_id)
            raise AlreadyClaimedError(
                advertisement_id=str(advertisement_id),
                open_advertisements=await self._open_advertisements(),
            )
        raise NotFoundError("This teacher is no longer available")

    async def _open_advertisements(self) -> list[dict[str, Any]] | None:
        try:
            return await self.availability.list_open()
        except UnavailableError:
            logger.warning("Could not refresh open advertisements after a lost claim")
            return None

    def _find_session(self, advertisement_id: UUID | str) -> dict[str, Any] | None:
        response = run_read(
            self.client.table(SESSIONS_TABLE)
            .select("*")
            .eq("advertisement_id", str(advertisement_id))
            .limit(1)
        )
        return response.data[0] if response.data else None

    def _retire(self, advertisement: dict[str, Any]) -> None:
        try:
            run_write(
                self.client.table(AVAILABILITY_TABLE)
                .delete()
                .eq("id", str(advertisement["id"]))
            )
        except (UnavailableError, PostgrestAPIError) as e:
            # A closed row is invisible to listings and cannot be claimed again
            logger.warning("Closed advertisement %s was not deleted: %s", advertisement["id"], e)

        self.relay.publish(ChangeEvent(table=AVAILABILITY_TABLE, type="DELETE", old_record=advertisement))

    def _reopen(self, advertisement: dict[str, Any]) -> None:
        logger.warning("Session insert failed, reopening advertisement %s", advertisement["id"])
        try:
            run_write(
                self.client.table(AVAILABILITY_TABLE)
                .update({"is_available": True})
                .eq("id", str(advertisement["id"]))
                .eq("is_available", False)
            )
        except (UnavailableError, PostgrestAPIError) as e:
            logger.error("Could not reopen advertisement %s: %s", advertisement["id"], e)
