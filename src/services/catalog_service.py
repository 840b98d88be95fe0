"""Subject and topic catalog lookups."""

from typing import Any
from uuid import UUID

from src.api.middleware.error_handler import NotFoundError, ValidationError
from src.core.supabase import get_supabase_client, run_read


class CatalogService:
    """Read-only access to the seeded subject/topic catalog."""

    def __init__(self) -> None:
        self.client = get_supabase_client()

    async def list_subjects(self) -> list[dict[str, Any]]:
        """List all subjects ordered by name."""
        response = run_read(
            self.client.table("subjects")
            .select("*")
            .order("name")
        )
        return response.data or []

    async def list_topics(self, subject_id: UUID) -> list[dict[str, Any]]:
        """List the topics of a subject ordered by name.

        Raises:
            NotFoundError: If the subject does not exist.
        """
        await self.get_subject(subject_id)
        response = run_read(
            self.client.table("topics")
            .select("*")
            .eq("subject_id", str(subject_id))
            .order("name")
        )
        return response.data or []

    async def get_subject(self, subject_id: UUID) -> dict[str, Any]:
        response = run_read(
            self.client.table("subjects")
            .select("*")
            .eq("id", str(subject_id))
            .maybe_single()
        )
        if response is None or not response.data:
            raise NotFoundError(f"Subject {subject_id} not found")
        return response.data

    async def get_topic(self, topic_id: UUID, subject_id: UUID | None = None) -> dict[str, Any]:
        """Get a topic, optionally checking it belongs to a subject.

        Raises:
            NotFoundError: If the topic does not exist.
            ValidationError: If the topic belongs to another subject.
        """
        response = run_read(
            self.client.table("topics")
            .select("*")
            .eq("id", str(topic_id))
            .maybe_single()
        )
        if response is None or not response.data:
            raise NotFoundError(f"Topic {topic_id} not found")

        topic = response.data
        if subject_id is not None and str(topic["subject_id"]) != str(subject_id):
            raise ValidationError(
                "Topic does not belong to the selected subject",
                details=[
                    {
                        "loc": ["body", "topic_id"],
                        "msg": "Topic belongs to another subject",
                        "type": "value_error",
                    }
                ],
            )
        return topic
