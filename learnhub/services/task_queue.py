"""Background task queue using Redis lists.

Course aggregates (average rating, review count) are recomputed outside
the request that changed a review.  The review endpoint commits, enqueues
a ``course_aggregates`` task (fast) and returns; the worker picks the
task up and does the recomputation at its own pace.

PRODUCER/CONSUMER
------------------
  Producer (API):    LPUSH task onto a Redis list, returns immediately
  Consumer (Worker): BRPOP from the list, runs the handler, loops

LPUSH adds at the head, BRPOP removes from the tail, so tasks come out
in the order they went in.  BRPOP blocks inside Redis until a task
arrives or the timeout expires, so an idle worker costs nothing.

Without REDIS_URL the queue is an in-process list.  That is what tests
use, and what the API uses in dev (it runs the worker loop itself).

DELIVERY
---------
At-most-once: a worker that dies mid-task loses that task.  Aggregate
recomputation starts from scratch every time, so the next review change
for the same course repairs anything a lost task left stale.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from learnhub.core.metrics import QUEUE_DEPTH
from learnhub.db.redis import redis_pool


@dataclass(frozen=True, slots=True)
class Task:
    """A unit of background work.

    id:      Unique identifier for tracking and logging.
    queue:   Which queue the task belongs to; the worker dispatches on it.
    payload: JSON-serializable data the handler needs.
    """

    id: str
    queue: str
    payload: dict


@runtime_checkable
class TaskQueue(Protocol):
    async def enqueue(self, queue: str, payload: dict) -> Task: ...
    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None: ...
    async def queue_length(self, queue: str) -> int: ...


class InMemoryTaskQueue:
    """In-process FIFO queue; no Redis needed."""

    def __init__(self) -> None:
        self._queues: dict[str, list[Task]] = {}

    async def enqueue(self, queue: str, payload: dict) -> Task:
        task = Task(id=str(uuid.uuid4()), queue=queue, payload=payload)
        tasks = self._queues.setdefault(queue, [])
        tasks.append(task)
        QUEUE_DEPTH.labels(queue_name=queue).set(len(tasks))
        return task

    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None:
        tasks = self._queues.get(queue, [])
        if not tasks:
            return None
        task = tasks.pop(0)
        QUEUE_DEPTH.labels(queue_name=queue).set(len(tasks))
        return task

    async def queue_length(self, queue: str) -> int:
        return len(self._queues.get(queue, []))

    def clear(self) -> None:
        for name in self._queues:
            QUEUE_DEPTH.labels(queue_name=name).set(0)
        self._queues.clear()


class RedisTaskQueue:
    """Redis-backed task queue using LPUSH/BRPOP.

    The API and the worker are separate processes sharing one list, so
    the depth gauge is set from the list length Redis reports rather than
    counted up and down locally.
    """

    _PREFIX = "learnhub:tasks:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def enqueue(self, queue: str, payload: dict) -> Task:
        task = Task(id=str(uuid.uuid4()), queue=queue, payload=payload)
        task_json = json.dumps(
            {"id": task.id, "queue": task.queue, "payload": task.payload}
        )
        depth = await self._redis.lpush(f"{self._PREFIX}{queue}", task_json)
        QUEUE_DEPTH.labels(queue_name=queue).set(depth)
        return task

    async def dequeue(self, queue: str, timeout: int = 5) -> Task | None:
        result = await self._redis.brpop(f"{self._PREFIX}{queue}", timeout=timeout)
        if result is None:
            return None
        _, task_json = result
        await self.queue_length(queue)
        return Task(**json.loads(task_json))

    async def queue_length(self, queue: str) -> int:
        depth = await self._redis.llen(f"{self._PREFIX}{queue}")
        QUEUE_DEPTH.labels(queue_name=queue).set(depth)
        return depth


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    task_queue: TaskQueue = RedisTaskQueue(redis_pool)
else:
    task_queue = InMemoryTaskQueue()
