"""Background task queue using Redis lists.

Completion notifications are handed off here so that a slow or failing
delivery channel can never delay or fail the request that recorded the
completion.

  Producer (API):    LPUSH task onto a Redis list, return immediately
  Consumer (worker): BRPOP from the list, run the handler, loop

LPUSH adds to the head, BRPOP removes from the tail: FIFO.

Each task carries an ``attempt`` counter. The worker re-enqueues a failed
task with ``attempt + 1`` and, once retries are exhausted, moves it to the
dead-letter list ``<queue>.dead`` where it waits for an operator.

Delivery is at-most-once per pop: a worker crash mid-task loses that
task. Handlers must be idempotent because a retried task may have
partially succeeded before it failed.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, replace
from typing import Protocol, runtime_checkable

from progress_service.db.redis import redis_pool

DEAD_LETTER_SUFFIX = ".dead"

# Bound on each in-memory queue, which nothing drains in the API process.
DEFAULT_MAX_SIZE = 10_000


def dead_letter_queue(queue: str) -> str:
    return f"{queue}{DEAD_LETTER_SUFFIX}"


@dataclass(frozen=True, slots=True)
class Task:
    """A unit of background work.

    id:      Stable across retries, for tracking and logging.
    queue:   Which queue this task belongs to (e.g. "notifications").
    payload: JSON-serializable data the handler needs.
    attempt: 0 on first delivery, incremented on each retry.
    """

    id: str
    queue: str
    payload: dict
    attempt: int = 0

    def next_attempt(self) -> Task:
        return replace(self, attempt=self.attempt + 1)


@runtime_checkable
class TaskQueue(Protocol):
    async def enqueue(self, queue: str, payload: dict) -> Task: ...
    async def requeue(self, task: Task, queue: str | None = None) -> None: ...
    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None: ...
    async def queue_length(self, queue: str) -> int: ...


class QueueFullError(RuntimeError):
    pass


class InMemoryTaskQueue:
    """In-memory task queue for tests and local dev; no Redis needed.

    Only a worker in the same process can drain it, and the API process
    runs none, so without REDIS_URL queued notifications are never
    delivered. Each queue holds at most ``max_size`` tasks; past that,
    enqueue raises QueueFullError and the task is dropped by the caller.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE) -> None:
        self._queues: dict[str, list[Task]] = {}
        self._max_size = max_size

    async def enqueue(self, queue: str, payload: dict) -> Task:
        if len(self._queues.get(queue, [])) >= self._max_size:
            raise QueueFullError(
                f"In-memory queue {queue!r} is full ({self._max_size} tasks)"
            )
        task = Task(id=str(uuid.uuid4()), queue=queue, payload=payload)
        self._queues.setdefault(queue, []).append(task)
        return task

    async def requeue(self, task: Task, queue: str | None = None) -> None:
        self._queues.setdefault(queue or task.queue, []).append(task)

    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None:
        tasks = self._queues.get(queue, [])
        if tasks:
            return tasks.pop(0)  # FIFO: remove from front
        return None

    async def queue_length(self, queue: str) -> int:
        return len(self._queues.get(queue, []))


class RedisTaskQueue:
    """Redis-backed task queue using LPUSH/BRPOP."""

    _PREFIX = "tasks:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def _push(self, queue: str, task: Task) -> None:
        task_json = json.dumps(
            {
                "id": task.id,
                "queue": task.queue,
                "payload": task.payload,
                "attempt": task.attempt,
            }
        )
        await self._redis.lpush(f"{self._PREFIX}{queue}", task_json)

    async def enqueue(self, queue: str, payload: dict) -> Task:
        task = Task(id=str(uuid.uuid4()), queue=queue, payload=payload)
        await self._push(queue, task)
        return task

    async def requeue(self, task: Task, queue: str | None = None) -> None:
        await self._push(queue or task.queue, task)

    async def dequeue(self, queue: str, timeout: int = 5) -> Task | None:
        # Blocks up to `timeout` seconds; None means no task arrived.
        result = await self._redis.brpop(f"{self._PREFIX}{queue}", timeout=timeout)
        if result is None:
            return None
        _, task_json = result
        data = json.loads(task_json)
        return Task(**data)

    async def queue_length(self, queue: str) -> int:
        return await self._redis.llen(f"{self._PREFIX}{queue}")


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    task_queue: TaskQueue = RedisTaskQueue(redis_pool)
else:
    task_queue = InMemoryTaskQueue()
