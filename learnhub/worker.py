"""Background worker process.

RUN:  python -m learnhub.worker

Same image as the API, different command:
  api:    uvicorn learnhub.main:app --host 0.0.0.0 --port 8000
  worker: python -m learnhub.worker

A separate worker process needs REDIS_URL so it shares the queue with the
API.  Without Redis the API runs run_worker() inside its own event loop
(see learnhub.main).

THE WORKER LOOP
----------------
  1. Poll every registered queue in turn
  2. Dequeue one task at a time
  3. Dispatch it to the queue's handler
  4. Log success or failure; sleep when every queue came back empty
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from learnhub.core.config import SETTINGS
from learnhub.services import aggregates as aggregates_module
from learnhub.services.task_queue import task_queue
from learnhub.services.wiring import aggregates

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("learnhub.worker")


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------

HANDLERS: dict[str, TaskHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


# ---------------------------------------------------------------------------
# Task handlers
# ---------------------------------------------------------------------------


@register_handler(aggregates_module.QUEUE)
async def handle_course_aggregates(payload: dict) -> None:
    """Recompute a course's average rating and review count."""
    await aggregates.handle_task(payload)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


async def _run_one(queue_name: str, timeout: int) -> bool:
    task = await task_queue.dequeue(queue_name, timeout=timeout)
    if task is None:
        return False
    try:
        await HANDLERS[queue_name](task.payload)
        logger.info("Task %s on [%s] completed", task.id, queue_name)
    except Exception:
        logger.exception("Task %s on [%s] failed", task.id, queue_name)
    return True


async def drain() -> int:
    """Process queued tasks until every queue is empty.  Returns the count.

    Tests call this instead of running the loop; it includes tasks that
    handlers re-enqueue while draining.
    """
    processed = 0
    while True:
        progressed = False
        for queue_name in list(HANDLERS):
            while await _run_one(queue_name, timeout=1):
                processed += 1
                progressed = True
        if not progressed:
            return processed


async def run_worker() -> None:
    """Poll all registered queues and dispatch tasks to handlers."""
    queues = list(HANDLERS.keys())
    logger.info("Worker started, listening on queues: %s", queues)

    while True:
        idle = True
        for queue_name in queues:
            if await _run_one(queue_name, timeout=1):
                idle = False
        if idle:
            # The in-memory queue returns immediately when empty.
            await asyncio.sleep(SETTINGS.worker_poll_interval)


if __name__ == "__main__":
    from learnhub.core.logging import setup_logging

    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
