"""Subject and topic catalog rows (seeded out-of-band, read-only here)."""

from datetime import datetime
from typing import TypedDict
from uuid import UUID


class Subject(TypedDict):
    id: UUID
    name: str
    icon: str | None
    created_at: datetime


class Topic(TypedDict):
    id: UUID
    subject_id: UUID
    name: str
    created_at: datetime
