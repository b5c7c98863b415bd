from __future__ import annotations

from dataclasses import dataclass

STUDENT = "student"
TEACHER = "teacher"


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT.

    user_id: the ``sub`` claim, which is the user's email address. Progress
             rows, enrollments and course ownership are all keyed by it.
    roles:   role claim; the progress engine only knows student|teacher.
    """

    user_id: str
    roles: frozenset[str]

    @property
    def email(self) -> str:
        return self.user_id

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_student(self) -> bool:
        return STUDENT in self.roles

    def is_teacher(self) -> bool:
        return TEACHER in self.roles
