"""Worker delivery, retry with backoff, and dead-lettering."""

from __future__ import annotations

import asyncio

import pytest

from progress_service import worker
from progress_service.models.notification import Notification
from progress_service.repos.bundle import notification_repo
from progress_service.services.notifications import (
    NOTIFICATION_QUEUE,
    NotificationDispatcher,
    dispatcher,
)
from progress_service.services.task_queue import (
    InMemoryTaskQueue,
    QueueFullError,
    Task,
    dead_letter_queue,
    task_queue,
)


def _notification() -> Notification:
    return Notification.new(
        user_email="ada@example.com",
        user_type="student",
        type="module_completion",
        title="Module Completed!",
        message="done",
        created_at=1_700_000_000,
        data={"module_title": "Module 1"},
    )


def _queued_task() -> Task:
    assert asyncio.run(dispatcher.dispatch(_notification())) is True
    task = asyncio.run(task_queue.dequeue(NOTIFICATION_QUEUE))
    assert task is not None
    return task


async def _always_fails(payload: dict) -> None:
    raise RuntimeError("delivery channel down")


def test_dispatch_enqueues_payload() -> None:
    note = _notification()
    asyncio.run(dispatcher.dispatch(note))

    assert asyncio.run(task_queue.queue_length(NOTIFICATION_QUEUE)) == 1
    task = asyncio.run(task_queue.dequeue(NOTIFICATION_QUEUE))
    assert Notification.from_payload(task.payload) == note


def test_delivered_notification_is_persisted() -> None:
    task = _queued_task()

    outcome = asyncio.run(worker.process_task(task))

    assert outcome == "delivered"
    stored = asyncio.run(notification_repo.list_for_user("ada@example.com"))
    assert [n.title for n in stored] == ["Module Completed!"]


def test_redelivery_does_not_duplicate() -> None:
    task = _queued_task()

    asyncio.run(worker.process_task(task))
    asyncio.run(worker.process_task(task))

    assert len(asyncio.run(notification_repo.list_for_user("ada@example.com"))) == 1


def test_failure_is_retried_with_next_attempt(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(worker.HANDLERS, NOTIFICATION_QUEUE, _always_fails)
    task = _queued_task()

    outcome = asyncio.run(
        worker.process_task(task, max_retries=3, backoff_seconds=0)
    )

    assert outcome == "retried"
    retried = asyncio.run(task_queue.dequeue(NOTIFICATION_QUEUE))
    assert retried is not None
    assert retried.id == task.id
    assert retried.attempt == 1


def test_backoff_doubles_per_attempt(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(worker.HANDLERS, NOTIFICATION_QUEUE, _always_fails)
    delays: list[float] = []

    async def _fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    monkeypatch.setattr(worker.asyncio, "sleep", _fake_sleep)
    task = _queued_task()

    for _ in range(3):
        asyncio.run(worker.process_task(task, max_retries=5, backoff_seconds=0.5))
        task = asyncio.run(task_queue.dequeue(NOTIFICATION_QUEUE))

    assert delays == [0.5, 1.0, 2.0]


def test_exhausted_task_is_dead_lettered(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(worker.HANDLERS, NOTIFICATION_QUEUE, _always_fails)
    task = _queued_task().next_attempt().next_attempt()

    outcome = asyncio.run(
        worker.process_task(task, max_retries=2, backoff_seconds=0)
    )

    assert outcome == "dead_lettered"
    assert asyncio.run(task_queue.queue_length(NOTIFICATION_QUEUE)) == 0
    dead = asyncio.run(task_queue.dequeue(dead_letter_queue(NOTIFICATION_QUEUE)))
    assert dead is not None
    assert dead.id == task.id


def test_unknown_queue_is_dead_lettered() -> None:
    task = Task(id="t-1", queue="mystery", payload={})

    assert asyncio.run(worker.process_task(task)) == "dead_lettered"
    assert asyncio.run(task_queue.queue_length("mystery.dead")) == 1


def test_in_memory_queue_is_bounded() -> None:
    queue = InMemoryTaskQueue(max_size=2)
    asyncio.run(queue.enqueue(NOTIFICATION_QUEUE, {"n": 1}))
    asyncio.run(queue.enqueue(NOTIFICATION_QUEUE, {"n": 2}))

    with pytest.raises(QueueFullError):
        asyncio.run(queue.enqueue(NOTIFICATION_QUEUE, {"n": 3}))
    assert asyncio.run(queue.queue_length(NOTIFICATION_QUEUE)) == 2
    # The bound is per queue.
    asyncio.run(queue.enqueue("other", {}))


def test_full_queue_drops_notification_without_raising() -> None:
    full = NotificationDispatcher(InMemoryTaskQueue(max_size=1))

    assert asyncio.run(full.dispatch(_notification())) is True
    assert asyncio.run(full.dispatch(_notification())) is False
    assert asyncio.run(full.dispatch_all([_notification(), _notification()])) == 0
