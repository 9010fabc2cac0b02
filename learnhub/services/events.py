"""In-process event bus for post-commit notifications.

Write paths publish an event only after their transaction has committed:

    async with store.transaction() as tx:
        await tx.reviews.add(review)
    await bus.publish(ReviewChanged(course_id=review.course_id, ...))

Subscribers react to what already happened; they can never roll the
write back.  A subscriber that raises is logged and skipped so one broken
listener does not stop the others or fail the request that published.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any
from uuid import UUID

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], Coroutine[Any, Any, None]]


@dataclass(frozen=True, slots=True)
class ReviewChanged:
    course_id: UUID
    review_id: UUID
    action: str  # created|updated|approved|deleted


class EventBus:
    def __init__(self) -> None:
        self._subscribers: dict[type, list[Subscriber]] = {}

    def subscribe(self, event_type: type, handler: Subscriber) -> None:
        self._subscribers.setdefault(event_type, []).append(handler)

    async def publish(self, event: object) -> None:
        for handler in self._subscribers.get(type(event), []):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "Subscriber %s failed for %s",
                    getattr(handler, "__qualname__", handler),
                    type(event).__name__,
                )

    def clear(self) -> None:
        self._subscribers.clear()
