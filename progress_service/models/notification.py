from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Notification:
    """A message for one user; ``type`` is module_completion|course_completion|..."""

    id: UUID
    user_email: str
    user_type: str  # student|teacher
    type: str
    title: str
    message: str
    created_at: int
    data: dict[str, Any] = field(default_factory=dict)
    read: bool = False

    @staticmethod
    def new(
        *,
        user_email: str,
        user_type: str,
        type: str,
        title: str,
        message: str,
        created_at: int,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        return Notification(
            id=uuid4(),
            user_email=user_email,
            user_type=user_type,
            type=type,
            title=title,
            message=message,
            created_at=created_at,
            data=dict(data or {}),
        )

    def to_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["id"] = str(self.id)
        return payload

    @staticmethod
    def from_payload(payload: dict[str, Any]) -> Notification:
        return Notification(
            id=UUID(payload["id"]),
            user_email=payload["user_email"],
            user_type=payload["user_type"],
            type=payload["type"],
            title=payload["title"],
            message=payload["message"],
            created_at=payload["created_at"],
            data=dict(payload.get("data") or {}),
            read=bool(payload.get("read", False)),
        )
