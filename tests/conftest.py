"""Pytest configuration and fixtures."""

import os
import time
from collections.abc import Callable, Generator
from contextlib import ExitStack
from typing import Any
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from jose import jwt

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("SESSION_SWEEP_INTERVAL_SECONDS", "0")
# Tokens in tests are HS256; an ES256 JWK would take precedence
os.environ["SUPABASE_SIGNING_KEY_JWK"] = ""

from tests.fakes import FakeClock, FakeSupabase  # noqa: E402

TEST_JWT_SECRET = os.environ["SUPABASE_JWT_SECRET"]

# Every module that binds get_supabase_client at import time
SUPABASE_CLIENT_TARGETS = [
    "src.core.supabase.get_supabase_client",
    "src.services.profile_service.get_supabase_client",
    "src.services.catalog_service.get_supabase_client",
    "src.services.availability_service.get_supabase_client",
    "src.services.claim_service.get_supabase_client",
    "src.services.session_service.get_supabase_client",
    "src.services.rating_service.get_supabase_client",
    "src.services.statistics_service.get_supabase_client",
]


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    get_settings.cache_clear()


@pytest.fixture
def fake_db() -> Generator[FakeSupabase, None, None]:
    """Provide an in-memory datastore wired into every service.

    Yields:
        FakeSupabase: The datastore the services read and write.
    """
    db = FakeSupabase()
    with ExitStack() as stack:
        for target in SUPABASE_CLIENT_TARGETS:
            stack.enter_context(patch(target, return_value=db))
        yield db


@pytest.fixture
def relay() -> Any:
    """Provide a fresh notification relay."""
    from src.core.relay import NotificationRelay

    return NotificationRelay(max_queue_size=10)


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock."""
    return FakeClock()


@pytest.fixture
def client(fake_db: FakeSupabase) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Args:
        fake_db: In-memory datastore fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client


def create_test_token(
    sub: str,
    email: str | None = "test@example.com",
    full_name: str | None = None,
    exp_offset: int = 3600,
    secret: str = TEST_JWT_SECRET,
) -> str:
    """Create a signed HS256 access token.

    Args:
        sub: Subject (auth user ID).
        email: User email.
        full_name: Optional user_metadata.full_name.
        exp_offset: Seconds from now for expiration (negative for expired).
        secret: Signing secret.

    Returns:
        str: Encoded JWT token.
    """
    now = int(time.time())
    payload: dict[str, Any] = {
        "sub": sub,
        "email": email,
        "role": "authenticated",
        "exp": now + exp_offset,
        "iat": now,
        "aud": "authenticated",
        "iss": "https://test-project.supabase.co/auth/v1",
    }
    if full_name:
        payload["user_metadata"] = {"full_name": full_name}
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Build Authorization headers for an auth user id."""

    def _headers(user_id: str, **kwargs: Any) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_test_token(user_id, **kwargs)}"}

    return _headers
