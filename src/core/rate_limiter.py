"""Per-user sliding window limit on contended writes (claim, publish)."""

import logging
import math
import time
from collections import deque
from collections.abc import Callable
from threading import Lock
from uuid import UUID

logger = logging.getLogger(__name__)


class WriteRateLimiter:
    """Allows at most max_requests writes per user in any window_seconds span.

    Users idle for a whole window are forgotten on the next call, so memory
    tracks only recently active writers.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = Lock()
        self._last_purge = clock()

    @classmethod
    def from_settings(cls) -> "WriteRateLimiter":
        from src.core.config import get_settings

        settings = get_settings()
        return cls(settings.rate_limit_write_requests, settings.rate_limit_window_seconds)

    def hit(self, user_id: UUID | str) -> tuple[bool, int]:
        """Record one write for the user if the window has room.

        Returns:
            Tuple of (allowed, retry_after_seconds); retry_after is 0 when allowed.
        """
        now = self._clock()
        cutoff = now - self.window_seconds

        with self._lock:
            self._purge_idle(now)
            hits = self._hits.setdefault(str(user_id), deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= self.max_requests:
                return False, max(1, math.ceil(hits[0] - cutoff))

            hits.append(now)
            return True, 0

    def tracked_users(self) -> int:
        with self._lock:
            return len(self._hits)

    def _purge_idle(self, now: float) -> None:
        if now - self._last_purge < self.window_seconds:
            return
        cutoff = now - self.window_seconds
        idle = [user for user, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for user in idle:
            del self._hits[user]
        self._last_purge = now
        if idle:
            logger.debug("Rate limiter forgot %d idle users", len(idle))


_rate_limiter: WriteRateLimiter | None = None


def get_rate_limiter() -> WriteRateLimiter:
    """Get or create the process-wide write limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = WriteRateLimiter.from_settings()
    return _rate_limiter
