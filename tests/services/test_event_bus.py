from __future__ import annotations

import asyncio
from uuid import uuid4

from learnhub.services.events import EventBus, ReviewChanged


def _event() -> ReviewChanged:
    return ReviewChanged(course_id=uuid4(), review_id=uuid4(), action="created")


def test_publish_reaches_every_subscriber_in_order() -> None:
    bus = EventBus()
    seen: list[str] = []

    async def first(event: ReviewChanged) -> None:
        seen.append("first")

    async def second(event: ReviewChanged) -> None:
        seen.append("second")

    bus.subscribe(ReviewChanged, first)
    bus.subscribe(ReviewChanged, second)
    asyncio.run(bus.publish(_event()))
    assert seen == ["first", "second"]


def test_failing_subscriber_is_logged_and_skipped(caplog) -> None:
    bus = EventBus()
    seen: list[ReviewChanged] = []

    async def broken(event: ReviewChanged) -> None:
        raise RuntimeError("boom")

    async def healthy(event: ReviewChanged) -> None:
        seen.append(event)

    bus.subscribe(ReviewChanged, broken)
    bus.subscribe(ReviewChanged, healthy)
    event = _event()
    asyncio.run(bus.publish(event))

    assert seen == [event]
    assert "failed for ReviewChanged" in caplog.text


def test_events_of_other_types_are_ignored() -> None:
    bus = EventBus()
    seen: list[object] = []

    async def record(event: object) -> None:
        seen.append(event)

    bus.subscribe(ReviewChanged, record)
    asyncio.run(bus.publish(object()))
    assert seen == []
