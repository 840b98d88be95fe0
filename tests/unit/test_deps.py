"""Unit tests for FastAPI dependency injection functions."""

import time
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from fastapi import HTTPException

from src.api.deps import check_write_rate_limit, get_current_user, require_admin
from src.api.middleware.auth import AuthError, AuthErrorCode
from src.api.middleware.error_handler import AuthorizationError, RateLimitError
from src.schemas.auth import CallerContext, TokenPayload, UserContext


def _caller(is_admin: bool = False) -> CallerContext:
    return CallerContext(
        user_id=uuid4(),
        profile_id=uuid4(),
        role="student",
        display_name="Sam",
        is_admin=is_admin,
    )


class TestGetCurrentUser:
    """Tests for get_current_user dependency."""

    @pytest.mark.asyncio
    @patch("src.api.deps.decode_jwt")
    async def test_extracts_user_context_correctly(self, mock_decode: any) -> None:
        """Test get_current_user extracts UserContext from valid token."""
        mock_decode.return_value = TokenPayload(
            sub="550e8400-e29b-41d4-a716-446655440000",
            email="test@example.com",
            role="authenticated",
            exp=int(time.time()) + 3600,
            iat=int(time.time()),
            user_metadata={"full_name": "Test User"},
        )

        user = await get_current_user("Bearer valid-token")

        assert isinstance(user, UserContext)
        assert str(user.user_id) == "550e8400-e29b-41d4-a716-446655440000"
        assert user.email == "test@example.com"
        assert user.full_name == "Test User"

    @pytest.mark.asyncio
    async def test_raises_401_for_missing_header(self) -> None:
        """Test get_current_user raises 401 when Authorization header is missing."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("")

        assert exc_info.value.status_code == 401
        assert "Authorization header required" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_raises_401_for_invalid_header_format(self) -> None:
        """Test get_current_user raises 401 for invalid header format."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("invalid-token")

        assert exc_info.value.status_code == 401
        assert "Invalid authorization header format" in exc_info.value.detail

    @pytest.mark.asyncio
    @patch("src.api.deps.decode_jwt")
    async def test_raises_401_for_expired_token(self, mock_decode: any) -> None:
        """Expired tokens are reported as such."""
        mock_decode.side_effect = AuthError("Token has expired", AuthErrorCode.TOKEN_EXPIRED)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("Bearer expired")

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"


class TestRequireAdmin:
    """Tests for require_admin dependency."""

    @pytest.mark.asyncio
    async def test_allows_admin(self) -> None:
        caller = _caller(is_admin=True)
        assert await require_admin(caller) is caller

    @pytest.mark.asyncio
    async def test_rejects_non_admin(self) -> None:
        with pytest.raises(AuthorizationError):
            await require_admin(_caller())


class TestWriteRateLimit:
    """Tests for check_write_rate_limit dependency."""

    @pytest.mark.asyncio
    @patch("src.api.deps.get_rate_limiter")
    async def test_passes_under_limit(self, mock_limiter: any) -> None:
        limiter = MagicMock(max_requests=30)
        limiter.hit.return_value = (True, 0)
        mock_limiter.return_value = limiter
        caller = _caller()

        await check_write_rate_limit(caller)

        limiter.hit.assert_called_once_with(caller.user_id)

    @pytest.mark.asyncio
    @patch("src.api.deps.get_rate_limiter")
    async def test_raises_when_exhausted(self, mock_limiter: any) -> None:
        limiter = MagicMock(max_requests=30)
        limiter.hit.return_value = (False, 12)
        mock_limiter.return_value = limiter

        with pytest.raises(RateLimitError) as exc_info:
            await check_write_rate_limit(_caller())

        assert exc_info.value.retry_after == 12
        assert exc_info.value.limit == 30
        assert exc_info.value.status_code == 429
