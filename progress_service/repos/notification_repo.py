from __future__ import annotations

from typing import Protocol

from progress_service.models.notification import Notification


class NotificationRepo(Protocol):
    async def add(self, notification: Notification) -> None: ...
    async def list_for_user(self, user_email: str) -> list[Notification]: ...


class InMemoryNotificationRepo:
    def __init__(self) -> None:
        self._notifications: dict[str, Notification] = {}

    async def add(self, notification: Notification) -> None:
        # Redelivery of the same task overwrites rather than duplicates.
        self._notifications[str(notification.id)] = notification

    async def list_for_user(self, user_email: str) -> list[Notification]:
        items = [
            n for n in self._notifications.values() if n.user_email == user_email
        ]
        return sorted(reversed(items), key=lambda n: n.created_at, reverse=True)
