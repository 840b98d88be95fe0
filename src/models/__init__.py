"""Database model type definitions."""

from src.models.availability import Advertisement
from src.models.catalog import Subject, Topic
from src.models.profile import Profile, UserRole
from src.models.rating import AppStats, Rating
from src.models.session import TERMINAL_STATUSES, EndReason, SessionStatus, TutoringSession

__all__ = [
    "Profile",
    "UserRole",
    "Subject",
    "Topic",
    "Advertisement",
    "TutoringSession",
    "SessionStatus",
    "EndReason",
    "TERMINAL_STATUSES",
    "Rating",
    "AppStats",
]
