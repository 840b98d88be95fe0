"""Global error handling middleware and the typed failures raised by services."""

import logging
import time
import traceback
from typing import Any, Callable

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from src.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors.

    Services raise subclasses of this error; the middleware renders them
    with their status code and error type so clients can tell an expected
    outcome (a lost claim race) apart from an infrastructure failure.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_type: str = "api_error",
        details: list[dict[str, Any]] | None = None,
        response_fields: dict[str, Any] | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code to return.
            error_type: Error category/type for client handling.
            details: Optional additional error details.
            response_fields: Optional ErrorResponse fields specific to this error.
        """
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.details = details
        self.response_fields = response_fields or {}
        super().__init__(message)


class NotFoundError(APIError):
    """Referenced advertisement, session, profile or catalog entry is absent."""

    def __init__(self, message: str = "Resource not found", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_type="not_found",
            details=details,
        )


class ValidationError(APIError):
    """Malformed input, e.g. a rating outside 1..5."""

    def __init__(
        self,
        message: str = "Validation error",
        details: list[dict[str, Any]] | None = None,
        status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
        error_type: str = "validation_error",
    ) -> None:
        super().__init__(
            message=message,
            status_code=status_code,
            error_type=error_type,
            details=details,
        )


class AuthenticationError(APIError):
    """Authentication failure error."""

    def __init__(self, message: str = "Authentication required", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_type="authentication_error",
            details=details,
        )


class AuthorizationError(APIError):
    """Role or ownership check failed."""

    def __init__(
        self,
        message: str = "Access denied",
        details: list[dict[str, Any]] | None = None,
        error_type: str = "authorization_error",
    ) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_type=error_type,
            details=details,
        )


NotAuthorizedError = AuthorizationError


class NotAStudentError(AuthorizationError):
    """Caller tried to claim an advertisement without acting as a student."""

    def __init__(self, message: str = "Only students can connect with a teacher") -> None:
        super().__init__(message=message, error_type="not_a_student")


class AlreadyClaimedError(APIError):
    """Another student's claim on the same advertisement won the race.

    This is an expected outcome of contention, not a fault. The open
    advertisement list is attached when available so the client can redraw
    without another round trip.
    """

    def __init__(
        self,
        message: str = "This teacher has just been claimed by another student",
        advertisement_id: str | None = None,
        open_advertisements: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_type="already_claimed",
            response_fields={
                "advertisement_id": advertisement_id,
                "open_advertisements": open_advertisements,
            },
        )
        self.advertisement_id = advertisement_id
        self.open_advertisements = open_advertisements


class InvalidStateError(APIError):
    """Transition attempted from a terminal or mismatched session state."""

    def __init__(self, message: str = "Invalid session state", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_type="invalid_state",
            details=details,
        )


class AlreadyRatedError(ValidationError):
    """A rating already exists for the session."""

    def __init__(self, message: str = "This session has already been rated") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_type="already_rated",
        )


class UnavailableError(APIError):
    """Datastore or subscription transport could not be reached."""

    def __init__(self, message: str = "Service temporarily unavailable", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_type="unavailable",
            details=details,
        )


class RateLimitError(APIError):
    """Rate limit exceeded error."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int = 60,
        limit: int | None = None,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            error_type="rate_limit_exceeded",
            details=details,
        )
        self.retry_after = retry_after
        self.limit = limit


def create_error_response(
    error_type: str,
    message: str,
    status_code: int,
    details: list[dict[str, Any]] | None = None,
    request_id: str | None = None,
    **fields: Any,
) -> JSONResponse:
    """Create a standardized JSON error response.

    Args:
        error_type: Error category for client handling.
        message: Human-readable error description.
        status_code: HTTP status code.
        details: Optional error details.
        request_id: Optional request ID for tracing.
        **fields: Error-specific ErrorResponse fields (e.g. open_advertisements).

    Returns:
        JSONResponse: Formatted error response.
    """
    error_response = ErrorResponse.from_exception(
        error_type=error_type,
        message=message,
        details=details,
        request_id=request_id,
        **fields,
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


def error_response_for(error: APIError, request_id: str | None = None) -> JSONResponse:
    """Render an APIError the same way the middleware does."""
    return create_error_response(
        error_type=error.error_type,
        message=error.message,
        status_code=error.status_code,
        details=error.details,
        request_id=request_id,
        **error.response_fields,
    )


async def error_handler_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Middleware to catch and format all exceptions.

    Ensures consistent error response format across the application.
    Logs full stack traces for debugging while returning safe messages to clients.

    Args:
        request: The incoming request.
        call_next: Next middleware or route handler.

    Returns:
        Response: Either the successful response or formatted error response.
    """
    request_id = request.headers.get("X-Request-ID")

    try:
        response = await call_next(request)
        return response

    except RateLimitError as e:
        logger.warning(
            "Rate limit exceeded: %s",
            e.message,
            extra={"request_id": request_id, "retry_after": e.retry_after},
        )
        response = error_response_for(e, request_id)
        response.headers["Retry-After"] = str(e.retry_after)
        if e.limit is not None:
            response.headers["X-RateLimit-Limit"] = str(e.limit)
        response.headers["X-RateLimit-Remaining"] = "0"
        response.headers["X-RateLimit-Reset"] = str(int(time.time()) + e.retry_after)
        return response

    except UnavailableError as e:
        logger.error(
            "Dependency unavailable: %s",
            e.message,
            extra={"request_id": request_id},
        )
        return error_response_for(e, request_id)

    except APIError as e:
        logger.warning(
            "API error: %s - %s",
            e.error_type,
            e.message,
            extra={"request_id": request_id, "status_code": e.status_code},
        )
        return error_response_for(e, request_id)

    except HTTPException as e:
        logger.warning(
            "HTTP exception: %s - %s",
            e.status_code,
            e.detail,
            extra={"request_id": request_id},
        )
        return create_error_response(
            error_type="http_error",
            message=str(e.detail),
            status_code=e.status_code,
            request_id=request_id,
        )

    except Exception as e:
        logger.error(
            "Unhandled exception: %s\n%s",
            str(e),
            traceback.format_exc(),
            extra={"request_id": request_id},
        )
        return create_error_response(
            error_type="internal_error",
            message="An unexpected error occurred",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id,
        )
