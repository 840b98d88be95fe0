"""Aggregate statistics derived from sessions and ratings."""

import logging
from typing import Any
from uuid import UUID

from src.core.relay import STATS_TABLE, NotificationRelay, get_relay
from src.core.supabase import get_supabase_client, run_read, run_write
from src.schemas.events import ChangeEvent
from src.services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)


class StatisticsService:
    """Recomputes and serves the singleton app_stats record.

    Counting and averaging happen in the database (recompute_app_stats,
    teacher_rating_summary) so the figures cover every row rather than one
    PostgREST page, and a recount is a single locked statement that cannot
    interleave with another.
    """

    def __init__(self, relay: NotificationRelay | None = None) -> None:
        self.client = get_supabase_client()
        self.relay = relay or get_relay()

    async def recompute(self) -> dict[str, Any]:
        """Recount completed sessions and the mean rating and store them.

        Returns:
            dict: total_completed_sessions, average_rating and updated_at.
        """
        response = run_write(self.client.rpc("recompute_app_stats"))
        record = response.data[0]

        self.relay.publish(ChangeEvent(table=STATS_TABLE, type="UPDATE", record=record))

        stats = _stats_from_row(record)
        logger.info(
            "Statistics recomputed: %d completed sessions, average rating %.2f",
            stats["total_completed_sessions"],
            stats["average_rating"],
        )
        return stats

    async def get_stats(self) -> dict[str, Any]:
        """Read the stored aggregate record (zeros before the first recompute)."""
        response = run_read(
            self.client.table(STATS_TABLE)
            .select("*")
            .limit(1)
        )
        if not response.data:
            return {"total_completed_sessions": 0, "average_rating": 0.0, "updated_at": None}
        return _stats_from_row(response.data[0])

    async def teacher_stats(self, teacher_id: UUID) -> dict[str, Any]:
        """Completed-session count and mean rating for one teacher."""
        response = run_read(
            self.client.rpc("teacher_rating_summary", {"p_teacher_id": str(teacher_id)})
        )
        row = response.data[0] if response.data else {}
        return {
            "teacher_id": teacher_id,
            "total_completed_sessions": int(row.get("total_completed_sessions") or 0),
            "average_rating": float(row.get("average_rating") or 0),
            "rating_count": int(row.get("rating_count") or 0),
        }

    async def overview(self) -> dict[str, Any]:
        """Aggregate statistics plus the number of open advertisements."""
        stats = await self.get_stats()
        availability = AvailabilityService(relay=self.relay)
        stats["teachers_online"] = await availability.count_open()
        return stats


def _stats_from_row(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "total_completed_sessions": row.get("total_sessions") or 0,
        "average_rating": float(row.get("average_rating") or 0),
        "updated_at": row.get("updated_at"),
    }
