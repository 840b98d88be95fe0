"""Availability registry: teachers advertising that they are free to teach."""

import logging
from typing import Any
from uuid import UUID, uuid4

from src.api.middleware.error_handler import AuthorizationError
from src.core.clock import Clock, utcnow
from src.core.config import get_settings
from src.core.relay import AVAILABILITY_TABLE, NotificationRelay, get_relay
from src.core.supabase import get_supabase_client, run_read, run_write
from src.schemas.auth import CallerContext
from src.schemas.availability import AdvertisementFilter
from src.schemas.events import ChangeEvent
from src.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Service for publishing, withdrawing and listing advertisements.

    A teacher has at most one advertisement. Publishing upserts on the
    unique teacher_id column with a fresh id, so the previous instance is
    superseded and any claim still holding its id fails.
    """

    def __init__(
        self,
        relay: NotificationRelay | None = None,
        catalog: CatalogService | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.client = get_supabase_client()
        self.settings = get_settings()
        self.relay = relay or get_relay()
        self.catalog = catalog or CatalogService()
        self.clock = clock

    async def publish(
        self,
        caller: CallerContext,
        subject_id: UUID,
        topic_id: UUID | None = None,
    ) -> dict[str, Any]:
        """Advertise the calling teacher as available.

        Args:
            caller: Must be a teacher acting as themselves.
            subject_id: Subject on offer.
            topic_id: Optional topic, must belong to the subject.

        Returns:
            dict: The stored advertisement row.

        Raises:
            AuthorizationError: If the caller is not a teacher, or is
                unverified while verification is required.
            NotFoundError: If the subject or topic does not exist.
            ValidationError: If the topic belongs to another subject.
        """
        if not caller.is_teacher:
            raise AuthorizationError("Only teachers can advertise availability")
        if self.settings.require_verified_teacher_to_publish and not caller.is_verified:
            raise AuthorizationError(
                "Only verified teachers can advertise availability",
                error_type="teacher_not_verified",
            )

        await self.catalog.get_subject(subject_id)
        if topic_id is not None:
            await self.catalog.get_topic(topic_id, subject_id=subject_id)

        previous = await self.get_for_teacher(caller.profile_id)

        row = {
            "id": str(uuid4()),
            "teacher_id": str(caller.profile_id),
            "subject_id": str(subject_id),
            "topic_id": str(topic_id) if topic_id else None,
            "is_available": True,
            "started_at": self.clock().isoformat(),
        }
        response = run_write(
            self.client.table(AVAILABILITY_TABLE)
            .upsert(row, on_conflict="teacher_id")
        )
        advertisement = response.data[0] if response.data else row

        logger.info(
            "Teacher %s published availability %s for subject %s",
            caller.profile_id,
            advertisement["id"],
            subject_id,
        )
        self.relay.publish(
            ChangeEvent(
                table=AVAILABILITY_TABLE,
                type="UPDATE" if previous else "INSERT",
                record=advertisement,
                old_record=previous,
            )
        )
        return advertisement

    async def withdraw(self, caller: CallerContext) -> bool:
        """Remove the calling teacher's open advertisement.

        Idempotent: withdrawing with nothing open is a no-op.

        Returns:
            bool: True if an advertisement was removed.
        """
        if not caller.is_teacher:
            raise AuthorizationError("Only teachers can withdraw availability")
        return await self.remove_for_teacher(caller.profile_id)

    async def remove_for_teacher(self, teacher_id: UUID) -> bool:
        """Delete a teacher's open advertisement without a role check.

        Only open rows are removed; a row closed by an in-flight claim is
        left for the claim to retire.
        """
        response = run_write(
            self.client.table(AVAILABILITY_TABLE)
            .delete()
            .eq("teacher_id", str(teacher_id))
            .eq("is_available", True)
        )
        removed = response.data or []
        for row in removed:
            self.relay.publish(ChangeEvent(table=AVAILABILITY_TABLE, type="DELETE", old_record=row))

        if removed:
            logger.info("Teacher %s withdrew availability", teacher_id)
        return bool(removed)

    async def get_for_teacher(self, teacher_id: UUID) -> dict[str, Any] | None:
        """Get a teacher's current advertisement, if any."""
        response = run_read(
            self.client.table(AVAILABILITY_TABLE)
            .select("*")
            .eq("teacher_id", str(teacher_id))
            .limit(1)
        )
        return response.data[0] if response.data else None

    async def get_open(self, advertisement_id: UUID) -> dict[str, Any] | None:
        response = run_read(
            self.client.table(AVAILABILITY_TABLE)
            .select("*")
            .eq("id", str(advertisement_id))
            .eq("is_available", True)
            .limit(1)
        )
        return response.data[0] if response.data else None

    async def list_open(self, filters: AdvertisementFilter | None = None) -> list[dict[str, Any]]:
        """List open advertisements with teacher and catalog display data.

        Subject and topic filters are applied by the datastore; the text
        query matches the teacher's name or the subject's name, case
        insensitively, after the display data is joined in.

        Args:
            filters: Optional conjunctive filter.

        Returns:
            list[dict]: Open advertisements, oldest first.
        """
        filters = filters or AdvertisementFilter()

        query = (
            self.client.table(AVAILABILITY_TABLE)
            .select("*")
            .eq("is_available", True)
        )
        if filters.subject_id:
            query = query.eq("subject_id", str(filters.subject_id))
        if filters.topic_id:
            query = query.eq("topic_id", str(filters.topic_id))

        rows = run_read(query.order("started_at")).data or []
        if not rows:
            return []

        teachers = self._index_by_id(
            "profiles",
            "id, full_name, avatar_url, is_verified",
            {row["teacher_id"] for row in rows},
        )
        subjects = self._index_by_id("subjects", "id, name, icon", {row["subject_id"] for row in rows})
        topics = self._index_by_id(
            "topics",
            "id, name",
            {row["topic_id"] for row in rows if row.get("topic_id")},
        )

        text = (filters.text_query or "").strip().lower()
        advertisements = []
        for row in rows:
            teacher = teachers.get(str(row["teacher_id"]))
            subject = subjects.get(str(row["subject_id"]), {})
            topic = topics.get(str(row.get("topic_id")), {})

            if text:
                teacher_name = (teacher or {}).get("full_name") or ""
                subject_name = subject.get("name") or ""
                if text not in teacher_name.lower() and text not in subject_name.lower():
                    continue

            advertisements.append(
                {
                    **row,
                    "teacher": teacher,
                    "subject_name": subject.get("name"),
                    "subject_icon": subject.get("icon"),
                    "topic_name": topic.get("name"),
                }
            )

        return advertisements

    async def count_open(self) -> int:
        """Count open advertisements ("teachers online")."""
        response = run_read(
            self.client.table(AVAILABILITY_TABLE)
            .select("id", count="exact")
            .eq("is_available", True)
        )
        if response.count is not None:
            return response.count
        return len(response.data or [])

    def _index_by_id(self, table: str, columns: str, ids: set[Any]) -> dict[str, dict[str, Any]]:
        if not ids:
            return {}
        response = run_read(
            self.client.table(table)
            .select(columns)
            .in_("id", sorted(str(i) for i in ids))
        )
        return {str(row["id"]): row for row in response.data or []}
