"""Unit tests for the per-user write rate limiter."""

from uuid import uuid4

from src.core.rate_limiter import WriteRateLimiter


class ManualClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestWriteRateLimiter:
    """Tests for WriteRateLimiter.hit."""

    def test_blocks_after_limit_until_window_slides(self) -> None:
        clock = ManualClock()
        limiter = WriteRateLimiter(max_requests=2, window_seconds=60, clock=clock)
        user = uuid4()

        assert limiter.hit(user) == (True, 0)
        clock.now += 10
        assert limiter.hit(user) == (True, 0)
        clock.now += 5

        assert limiter.hit(user) == (False, 45)

        clock.now += 45
        assert limiter.hit(user) == (True, 0)

    def test_users_are_limited_independently(self) -> None:
        limiter = WriteRateLimiter(max_requests=1, window_seconds=60, clock=ManualClock())
        first, second = uuid4(), uuid4()

        assert limiter.hit(first)[0] is True
        assert limiter.hit(second)[0] is True
        assert limiter.hit(first)[0] is False
        assert limiter.tracked_users() == 2

    def test_idle_users_are_forgotten(self) -> None:
        clock = ManualClock()
        limiter = WriteRateLimiter(max_requests=5, window_seconds=60, clock=clock)
        limiter.hit(uuid4())
        clock.now += 61

        limiter.hit(uuid4())

        assert limiter.tracked_users() == 1

    def test_from_settings(self, test_settings) -> None:
        limiter = WriteRateLimiter.from_settings()

        assert limiter.max_requests == test_settings.rate_limit_write_requests
        assert limiter.window_seconds == test_settings.rate_limit_window_seconds
