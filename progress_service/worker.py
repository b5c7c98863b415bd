"""Background worker process.

RUN:  python -m progress_service.worker

The API only enqueues completion notifications; this process drains the
queue and persists them. Same image, different command:

  api:    uvicorn progress_service.main:app --host 0.0.0.0 --port 8000
  worker: python -m progress_service.worker

A failing handler is retried with exponential backoff
(``NOTIFICATION_BACKOFF_SECONDS * 2**attempt``) by re-enqueueing the task
with its attempt counter bumped. Once ``NOTIFICATION_MAX_RETRIES`` retries
have failed the task is moved to ``<queue>.dead`` for an operator.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from progress_service.core.config import SETTINGS
from progress_service.core.logging import setup_logging
from progress_service.core.metrics import NOTIFICATIONS, QUEUE_DEPTH
from progress_service.models.notification import Notification
from progress_service.repos.bundle import unit_of_work
from progress_service.services.notifications import NOTIFICATION_QUEUE
from progress_service.services.task_queue import (
    Task,
    TaskQueue,
    dead_letter_queue,
    task_queue,
)

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("progress_service.worker")

DELIVERED = "delivered"
RETRIED = "retried"
DEAD_LETTERED = "dead_lettered"


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


@register_handler(NOTIFICATION_QUEUE)
async def handle_notification(payload: dict) -> None:
    """Persist one notification. Idempotent on the notification id."""
    notification = Notification.from_payload(payload)
    async with unit_of_work() as repos:
        await repos.notifications.add(notification)
    logger.info(
        "Delivered %s notification %s to %s",
        notification.type,
        notification.id,
        notification.user_email,
    )


# ---------------------------------------------------------------------------
# Task processing
# ---------------------------------------------------------------------------


async def process_task(
    task: Task,
    *,
    queue: TaskQueue | None = None,
    max_retries: int | None = None,
    backoff_seconds: float | None = None,
) -> str:
    """Run one task through its handler; retry or dead-letter on failure.

    Returns "delivered", "retried" or "dead_lettered".
    """
    queue = queue or task_queue
    max_retries = (
        SETTINGS.notification_max_retries if max_retries is None else max_retries
    )
    backoff_seconds = (
        SETTINGS.notification_backoff_seconds
        if backoff_seconds is None
        else backoff_seconds
    )

    handler = HANDLERS.get(task.queue)
    if handler is None:
        await queue.requeue(task, dead_letter_queue(task.queue))
        logger.error(
            "No handler for queue [%s]; task %s dead-lettered", task.queue, task.id
        )
        return DEAD_LETTERED

    try:
        await handler(task.payload)
    except Exception:
        if task.attempt >= max_retries:
            await queue.requeue(task, dead_letter_queue(task.queue))
            NOTIFICATIONS.labels(outcome=DEAD_LETTERED).inc()
            logger.error(
                "Task %s on [%s] dead-lettered after %d attempts",
                task.id,
                task.queue,
                task.attempt + 1,
                exc_info=True,
            )
            return DEAD_LETTERED

        delay = backoff_seconds * 2**task.attempt
        logger.warning(
            "Task %s on [%s] failed (attempt %d), retrying in %.2fs",
            task.id,
            task.queue,
            task.attempt + 1,
            delay,
            exc_info=True,
        )
        await asyncio.sleep(delay)
        await queue.requeue(task.next_attempt())
        NOTIFICATIONS.labels(outcome=RETRIED).inc()
        return RETRIED

    NOTIFICATIONS.labels(outcome=DELIVERED).inc()
    return DELIVERED


async def run_worker() -> None:
    """Poll every registered queue and process tasks until cancelled."""
    queues = list(HANDLERS.keys())
    logger.info("Worker started, listening on queues: %s", queues)

    while True:
        for queue_name in queues:
            task = await task_queue.dequeue(queue_name, timeout=1)
            QUEUE_DEPTH.labels(queue_name=queue_name).set(
                await task_queue.queue_length(queue_name)
            )
            if task is None:
                continue
            outcome = await process_task(task)
            logger.debug("Task %s on [%s]: %s", task.id, queue_name, outcome)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
