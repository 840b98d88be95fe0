"""Server-Sent Events change feeds backed by the notification relay."""

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from src.api.deps import Caller
from src.api.middleware.error_handler import AuthorizationError, NotFoundError
from src.core.config import get_settings
from src.core.relay import Subscription, get_relay, parse_topic

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feeds", tags=["feeds"])


def format_event(payload: str) -> bytes:
    return f"event: change\ndata: {payload}\n\n".encode("utf-8")


async def stream_subscription(
    request: Request,
    subscription: Subscription,
    heartbeat_seconds: float,
) -> AsyncIterator[bytes]:
    """Yield relay events as SSE frames until the client goes away."""
    try:
        yield b": connected\n\n"
        while not subscription.closed:
            event = await subscription.get(timeout=heartbeat_seconds)
            if await request.is_disconnected():
                break
            if event is None:
                yield b": heartbeat\n\n"
                continue
            yield format_event(event.model_dump_json())
    finally:
        subscription.close()
        logger.debug("Feed %s closed", subscription.topic)


@router.get(
    "/{topic}",
    summary="Subscribe to a change feed",
    description=(
        "Streams change events as text/event-stream. Topics: availability-feed, "
        "availability-for-student-dashboard, stats-feed, sessions-for-teacher:<profile id>, "
        "sessions-for-student:<profile id>. No replay: fetch current state after connecting."
    ),
)
async def subscribe_feed(topic: str, request: Request, caller: Caller) -> StreamingResponse:
    """Open an SSE stream on a relay topic.

    Session topics are only readable by the profile they are keyed on.

    Raises:
        NotFoundError: If the topic is unknown.
        AuthorizationError: If the caller asks for another profile's sessions.
    """
    try:
        _name, profile_id = parse_topic(topic)
    except ValueError as e:
        raise NotFoundError(f"Unknown feed topic: {topic}") from e

    if profile_id is not None and profile_id != caller.profile_id:
        raise AuthorizationError("Session feeds are only available to their own participant")

    subscription = get_relay().subscribe(topic)
    logger.debug("Profile %s subscribed to %s", caller.profile_id, topic)

    return StreamingResponse(
        stream_subscription(request, subscription, get_settings().relay_heartbeat_seconds),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
