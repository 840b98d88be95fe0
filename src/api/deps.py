"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from src.api.middleware.error_handler import AuthorizationError, RateLimitError
from src.core.rate_limiter import get_rate_limiter
from src.schemas.auth import CallerContext, UserContext
from src.services.profile_service import ProfileService


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    This dependency requires a valid JWT token in the Authorization header.

    Args:
        authorization: The Authorization header value (Bearer token).

    Returns:
        UserContext: The authenticated user's context.

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Extract the token from "Bearer <token>" format
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = parts[1]

    try:
        payload = decode_jwt(token)
        return payload.to_user_context()

    except AuthError as e:
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


CurrentUser = Annotated[UserContext, Depends(get_current_user)]


async def get_caller_context(user: CurrentUser) -> CallerContext:
    """Resolve the authenticated identity into its CallerContext.

    Creates the profile on the identity's first request.
    """
    return await ProfileService().get_caller_context(user)


Caller = Annotated[CallerContext, Depends(get_caller_context)]


async def require_admin(caller: Caller) -> CallerContext:
    """Require the caller to hold the admin role.

    Raises:
        AuthorizationError: 403 if the caller is not an admin.
    """
    if not caller.is_admin:
        raise AuthorizationError("Administrator privileges required")
    return caller


AdminCaller = Annotated[CallerContext, Depends(require_admin)]


async def check_write_rate_limit(caller: Caller) -> None:
    """Throttle contended writes (claim, publish) per user.

    Raises:
        RateLimitError: If the caller exceeded the write limit.
    """
    limiter = get_rate_limiter()
    allowed, retry_after = limiter.hit(caller.user_id)
    if not allowed:
        raise RateLimitError(
            message="Too many requests. Please wait before trying again.",
            retry_after=retry_after,
            limit=limiter.max_requests,
        )


WriteRateLimit = Annotated[None, Depends(check_write_rate_limit)]
