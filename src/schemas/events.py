"""Change event schema pushed through the notification relay."""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

ChangeType = Literal["INSERT", "UPDATE", "DELETE"]


class ChangeEvent(BaseModel):
    """A row change on one of the watched tables.

    Mirrors the shape of a Postgres change-feed payload: `record` is the row
    after the change (None for deletes), `old_record` the row before it
    (None for inserts).
    """

    table: str = Field(description="Source table name")
    type: ChangeType = Field(description="Kind of change")
    record: dict[str, Any] | None = Field(default=None, description="Row after the change")
    old_record: dict[str, Any] | None = Field(default=None, description="Row before the change")
    reason: str | None = Field(default=None, description="Why the change happened, e.g. time_limit")
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def value(self, column: str) -> Any:
        """Read a column from the new row, falling back to the old row."""
        if self.record and column in self.record:
            return self.record[column]
        if self.old_record:
            return self.old_record.get(column)
        return None
