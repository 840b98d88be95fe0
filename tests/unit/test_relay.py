"""Unit tests for the notification relay and topic routing."""

import asyncio
import threading
from uuid import uuid4

import pytest

from src.core.relay import (
    AVAILABILITY_FEED,
    AVAILABILITY_TABLE,
    SESSIONS_TABLE,
    STATS_FEED,
    STATS_TABLE,
    STUDENT_DASHBOARD_FEED,
    NotificationRelay,
    parse_topic,
    sessions_for_student,
    sessions_for_teacher,
)
from src.schemas.events import ChangeEvent


def _session_event(teacher_id: str, student_id: str, change: str = "INSERT") -> ChangeEvent:
    return ChangeEvent(
        table=SESSIONS_TABLE,
        type=change,
        record={"id": str(uuid4()), "teacher_id": teacher_id, "student_id": student_id},
    )


class TestTopics:
    """Tests for topic names and parsing."""

    def test_fixed_topics_parse_without_id(self) -> None:
        for topic in (AVAILABILITY_FEED, STUDENT_DASHBOARD_FEED, STATS_FEED):
            assert parse_topic(topic) == (topic, None)

    def test_profile_topics_carry_the_id(self) -> None:
        profile_id = uuid4()

        name, parsed = parse_topic(sessions_for_teacher(profile_id))

        assert name == "sessions-for-teacher"
        assert parsed == profile_id

    @pytest.mark.parametrize("topic", ["nope", "sessions-for-teacher", "sessions-for-admin:1", "sessions-for-student:xyz"])
    def test_unknown_or_malformed_topics_raise(self, topic: str) -> None:
        with pytest.raises(ValueError):
            parse_topic(topic)


class TestRouting:
    """Events reach exactly the subscribers whose topic matches."""

    @pytest.mark.asyncio
    async def test_session_event_reaches_only_its_participants(self, relay: NotificationRelay) -> None:
        teacher, student, other = str(uuid4()), str(uuid4()), str(uuid4())
        teacher_sub = relay.subscribe(sessions_for_teacher(teacher))
        student_sub = relay.subscribe(sessions_for_student(student))
        other_sub = relay.subscribe(sessions_for_teacher(other))
        feed_sub = relay.subscribe(AVAILABILITY_FEED)

        delivered = relay.publish(_session_event(teacher, student))

        assert delivered == 2
        assert (await teacher_sub.get(timeout=1)).record["teacher_id"] == teacher
        assert (await student_sub.get(timeout=1)).record["student_id"] == student
        assert await other_sub.get(timeout=0.05) is None
        assert await feed_sub.get(timeout=0.05) is None

    @pytest.mark.asyncio
    async def test_delete_events_route_on_old_record(self, relay: NotificationRelay) -> None:
        teacher = str(uuid4())
        sub = relay.subscribe(sessions_for_teacher(teacher))

        relay.publish(
            ChangeEvent(table=SESSIONS_TABLE, type="DELETE", old_record={"teacher_id": teacher, "student_id": "x"})
        )

        event = await sub.get(timeout=1)
        assert event is not None
        assert event.type == "DELETE"

    @pytest.mark.asyncio
    async def test_availability_and_stats_feeds_filter_by_table(self, relay: NotificationRelay) -> None:
        dashboard = relay.subscribe(STUDENT_DASHBOARD_FEED)
        stats = relay.subscribe(STATS_FEED)

        relay.publish(ChangeEvent(table=AVAILABILITY_TABLE, type="INSERT", record={"id": "a"}))
        relay.publish(ChangeEvent(table=STATS_TABLE, type="UPDATE", record={"total_sessions": 1}))

        assert (await dashboard.get(timeout=1)).table == AVAILABILITY_TABLE
        assert await dashboard.get(timeout=0.05) is None
        assert (await stats.get(timeout=1)).table == STATS_TABLE

    @pytest.mark.asyncio
    async def test_handlers_are_called(self, relay: NotificationRelay) -> None:
        received: list[ChangeEvent] = []
        sub = relay.subscribe(AVAILABILITY_FEED)
        sub.on_event(received.append)

        relay.publish(ChangeEvent(table=AVAILABILITY_TABLE, type="INSERT", record={"id": "a"}))

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_delivery(self, relay: NotificationRelay) -> None:
        sub = relay.subscribe(AVAILABILITY_FEED)

        def boom(event: ChangeEvent) -> None:
            raise RuntimeError("handler bug")

        sub.on_event(boom)
        relay.publish(ChangeEvent(table=AVAILABILITY_TABLE, type="INSERT", record={"id": "a"}))

        assert await sub.get(timeout=1) is not None


class TestSubscriptionLifecycle:
    """Closing, lagging and cross-thread delivery."""

    @pytest.mark.asyncio
    async def test_closed_subscription_receives_nothing(self, relay: NotificationRelay) -> None:
        sub = relay.subscribe(AVAILABILITY_FEED)
        sub.close()
        sub.close()

        delivered = relay.publish(ChangeEvent(table=AVAILABILITY_TABLE, type="INSERT", record={"id": "a"}))

        assert delivered == 0
        assert sub.closed
        assert relay.subscriber_count() == 0
        assert await sub.get(timeout=0.05) is None

    @pytest.mark.asyncio
    async def test_async_iteration_ends_on_close(self, relay: NotificationRelay) -> None:
        sub = relay.subscribe(AVAILABILITY_FEED)
        relay.publish(ChangeEvent(table=AVAILABILITY_TABLE, type="INSERT", record={"id": "a"}))
        relay.publish(ChangeEvent(table=AVAILABILITY_TABLE, type="DELETE", old_record={"id": "a"}))
        sub.close()

        events = [event async for event in sub]

        assert [e.type for e in events] == ["INSERT", "DELETE"]

    @pytest.mark.asyncio
    async def test_lagging_subscriber_drops_oldest(self) -> None:
        relay = NotificationRelay(max_queue_size=2)
        sub = relay.subscribe(AVAILABILITY_FEED)

        for i in range(3):
            relay.publish(ChangeEvent(table=AVAILABILITY_TABLE, type="INSERT", record={"id": str(i)}))

        assert sub.dropped == 1
        assert (await sub.get(timeout=1)).record["id"] == "1"
        assert (await sub.get(timeout=1)).record["id"] == "2"

    @pytest.mark.asyncio
    async def test_publish_from_another_thread(self, relay: NotificationRelay) -> None:
        sub = relay.subscribe(STATS_FEED)

        thread = threading.Thread(
            target=relay.publish,
            args=(ChangeEvent(table=STATS_TABLE, type="UPDATE", record={"total_sessions": 3}),),
        )
        thread.start()
        thread.join()

        event = await sub.get(timeout=1)
        assert event is not None
        assert event.record["total_sessions"] == 3

    @pytest.mark.asyncio
    async def test_close_all(self, relay: NotificationRelay) -> None:
        subs = [relay.subscribe(AVAILABILITY_FEED), relay.subscribe(STATS_FEED)]

        relay.close_all()
        await asyncio.sleep(0)

        assert all(s.closed for s in subs)
        assert relay.subscriber_count() == 0
