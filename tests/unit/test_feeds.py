"""Unit tests for the SSE feed stream."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.api.routes.feeds import format_event, stream_subscription
from src.core.relay import AVAILABILITY_FEED, AVAILABILITY_TABLE, NotificationRelay
from src.schemas.events import ChangeEvent


def _request(disconnected: bool = False) -> MagicMock:
    request = MagicMock()
    request.is_disconnected = AsyncMock(return_value=disconnected)
    return request


class TestStreamSubscription:
    """Tests for stream_subscription."""

    def test_format_event(self) -> None:
        assert format_event('{"a": 1}') == b'event: change\ndata: {"a": 1}\n\n'

    @pytest.mark.asyncio
    async def test_streams_events_and_heartbeats(self, relay: NotificationRelay) -> None:
        subscription = relay.subscribe(AVAILABILITY_FEED)
        stream = stream_subscription(_request(), subscription, heartbeat_seconds=0.01)

        assert await stream.__anext__() == b": connected\n\n"
        assert await stream.__anext__() == b": heartbeat\n\n"

        relay.publish(ChangeEvent(table=AVAILABILITY_TABLE, type="INSERT", record={"id": "ad-1"}))
        frame = await stream.__anext__()

        assert frame.startswith(b"event: change\ndata: ")
        payload = json.loads(frame.decode().split("data: ", 1)[1])
        assert payload["record"] == {"id": "ad-1"}
        assert payload["table"] == AVAILABILITY_TABLE

        await stream.aclose()
        assert subscription.closed
        assert relay.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_stops_when_client_disconnects(self, relay: NotificationRelay) -> None:
        subscription = relay.subscribe(AVAILABILITY_FEED)
        stream = stream_subscription(_request(disconnected=True), subscription, heartbeat_seconds=0.01)

        frames = [frame async for frame in stream]

        assert frames == [b": connected\n\n"]
        assert subscription.closed
