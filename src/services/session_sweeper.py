"""Background enforcement of the session time cap."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from src.api.middleware.error_handler import UnavailableError
from src.services.session_service import SessionService

logger = logging.getLogger(__name__)


class SessionSweeper:
    """Periodically completes active sessions that reached the time cap.

    Holds the cap even when no participant's client is attached to the
    session any more.
    """

    def __init__(
        self,
        interval_seconds: int,
        service_factory: Callable[[], SessionService] = SessionService,
    ) -> None:
        self.interval_seconds = interval_seconds
        self.service_factory = service_factory
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the sweep loop (no-op when the interval is 0)."""
        if self.interval_seconds <= 0:
            logger.info("Session sweeper disabled")
            return
        if self._task is None:
            self._task = asyncio.create_task(self._loop())
            logger.info("Session sweeper started (every %ds)", self.interval_seconds)

    async def stop(self) -> None:
        """Stop the sweep loop."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Session sweeper stopped")

    async def run_once(self) -> int:
        """Run a single sweep.

        Returns:
            int: Number of sessions completed.
        """
        return await self.service_factory().sweep()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except UnavailableError:
                logger.warning("Session sweep skipped, datastore unavailable")
            except Exception:
                logger.exception("Session sweep failed")


# Global singleton instance
_sweeper: SessionSweeper | None = None


def get_sweeper() -> SessionSweeper:
    """Get or create the global sweeper instance."""
    global _sweeper
    if _sweeper is None:
        from src.core.config import get_settings

        _sweeper = SessionSweeper(get_settings().session_sweep_interval_seconds)
    return _sweeper


async def init_sweeper() -> SessionSweeper:
    """Start the sweeper. Call at app startup."""
    sweeper = get_sweeper()
    await sweeper.start()
    return sweeper


async def shutdown_sweeper() -> None:
    """Stop the sweeper. Call at app shutdown."""
    global _sweeper
    if _sweeper:
        await _sweeper.stop()
        _sweeper = None
