"""Supabase client singleton and guarded query execution."""

import logging
from functools import lru_cache
from typing import Any

import httpx
from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client, create_client
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.api.middleware.error_handler import UnavailableError
from src.core.config import get_settings

logger = logging.getLogger(__name__)

# PostgreSQL error codes surfaced by PostgREST
UNIQUE_VIOLATION = "23505"
CHECK_VIOLATION = "23514"
FOREIGN_KEY_VIOLATION = "23503"


@lru_cache
def get_supabase_client() -> Client:
    """Get cached Supabase client singleton for database operations.

    Uses the secret key, which bypasses RLS at the PostgREST level. The
    services authorize every operation against the CallerContext before
    touching the datastore.

    Returns:
        Client: Supabase client instance.
    """
    settings = get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_secret_key,
    )


def is_unique_violation(error: PostgrestAPIError) -> bool:
    """Check whether a PostgREST error is a unique constraint violation."""
    return getattr(error, "code", None) == UNIQUE_VIOLATION


def run_read(query: Any) -> Any:
    """Execute a read query, retrying transport faults with backoff.

    Args:
        query: A PostgREST request builder ready for execute().

    Returns:
        The PostgREST response (may be None for maybe_single() with no row).

    Raises:
        UnavailableError: If the datastore is still unreachable after retries.
    """
    settings = get_settings()
    retrying = Retrying(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(settings.datastore_read_retries),
        wait=wait_exponential(multiplier=0.2, max=settings.datastore_retry_max_wait_seconds),
        reraise=False,
    )
    try:
        return retrying(query.execute)
    except RetryError as e:
        cause = e.last_attempt.exception()
        logger.error(
            "Datastore read failed after %d attempts: %s",
            settings.datastore_read_retries,
            cause,
        )
        raise UnavailableError("Datastore is unreachable, please retry shortly") from cause


def run_write(query: Any) -> Any:
    """Execute a write query exactly once.

    Writes are never retried blindly; callers re-check current state
    before deciding to try again.

    Raises:
        UnavailableError: If the datastore cannot be reached.
        postgrest.exceptions.APIError: For constraint violations and other
            database-level rejections, left to the caller to interpret.
    """
    try:
        return query.execute()
    except httpx.TransportError as e:
        logger.error("Datastore write failed: %s", e)
        raise UnavailableError("Datastore is unreachable, the change was not confirmed") from e


async def check_database_connection() -> dict[str, Any]:
    """Check if database connection is healthy.

    Performs a simple query to verify database connectivity.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        client = get_supabase_client()
        client.table("app_stats").select("id").limit(1).execute()
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}
