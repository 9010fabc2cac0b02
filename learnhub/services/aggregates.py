"""Course aggregate recalculation.

A course's average_rating and total_reviews are derived from its approved
reviews.  They are recomputed from scratch, never adjusted by deltas, so
running the recomputation twice (or late) gives the same answer.

Flow:

    ReviewService commits a write
      -> EventBus.publish(ReviewChanged)
      -> AggregateRecalculator.on_review_changed enqueues "course_aggregates"
      -> worker calls AggregateRecalculator.handle_task
      -> recalculate_course_rating (own transaction)

A failed recomputation never reaches the user whose review triggered it.
The task is re-enqueued with attempt + 1 until aggregate_max_attempts is
reached, then dropped with an error log.  The next review change for the
course will recompute it anyway.

enrollment_count is NOT handled here: it is a counter adjusted inside the
enrollment transactions themselves.
"""

from __future__ import annotations

import logging
from uuid import UUID

from learnhub.core.config import SETTINGS
from learnhub.core.metrics import AGGREGATE_RECALCULATIONS
from learnhub.repos.store import RecordStore
from learnhub.services.events import EventBus, ReviewChanged
from learnhub.services.task_queue import TaskQueue

logger = logging.getLogger(__name__)

QUEUE = "course_aggregates"


class AggregateRecalculator:
    def __init__(
        self,
        store: RecordStore,
        queue: TaskQueue,
        *,
        max_attempts: int = SETTINGS.aggregate_max_attempts,
    ) -> None:
        self._store = store
        self._queue = queue
        self._max_attempts = max_attempts

    def register(self, bus: EventBus) -> None:
        bus.subscribe(ReviewChanged, self.on_review_changed)

    async def on_review_changed(self, event: ReviewChanged) -> None:
        await self._queue.enqueue(
            QUEUE, {"course_id": str(event.course_id), "attempt": 1}
        )

    async def recalculate_course_rating(self, course_id: UUID) -> tuple[float, int]:
        async with self._store.transaction() as tx:
            average, total = await tx.reviews.approved_summary(course_id)
            if not await tx.courses.set_rating(course_id, average, total):
                logger.warning("Course %s vanished before rating update", course_id)
        logger.info(
            "Recalculated course=%s average_rating=%.2f total_reviews=%d",
            course_id,
            average,
            total,
        )
        return average, total

    async def handle_task(self, payload: dict) -> None:
        """Worker entry point.  Never raises."""
        course_id = UUID(payload["course_id"])
        attempt = int(payload.get("attempt", 1))
        try:
            await self.recalculate_course_rating(course_id)
        except Exception:
            AGGREGATE_RECALCULATIONS.labels(outcome="failed").inc()
            logger.exception(
                "Aggregate recalculation failed course=%s attempt=%d",
                course_id,
                attempt,
            )
            if attempt < self._max_attempts:
                AGGREGATE_RECALCULATIONS.labels(outcome="retried").inc()
                await self._queue.enqueue(
                    QUEUE, {"course_id": str(course_id), "attempt": attempt + 1}
                )
            else:
                AGGREGATE_RECALCULATIONS.labels(outcome="abandoned").inc()
                logger.error(
                    "Giving up on course=%s after %d attempts", course_id, attempt
                )
            return
        AGGREGATE_RECALCULATIONS.labels(outcome="ok").inc()
