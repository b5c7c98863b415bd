"""Course-scope checks shared by the API dependencies and the services.

Teachers act only on courses they own; students only on courses they are
enrolled in. Both checks 404 before they 403, so a caller learns that a
course exists only once it is theirs to see.
"""

from __future__ import annotations

import logging
from uuid import UUID

from progress_service.models.course import Course
from progress_service.models.principal import Principal
from progress_service.repos.bundle import Repositories
from progress_service.services.errors import AccessDeniedError, NotFoundError

logger = logging.getLogger(__name__)


async def owned_course(
    repos: Repositories, course_id: UUID, teacher_email: str
) -> Course:
    course = await repos.catalog.get_course(course_id)
    if course is None:
        raise NotFoundError("Course not found")
    if course.teacher_email != teacher_email:
        logger.warning(
            "Access denied: %s does not own course %s", teacher_email, course_id
        )
        raise AccessDeniedError("You do not own this course")
    return course


async def enrolled_course(
    repos: Repositories, course_id: UUID, student_email: str
) -> Course:
    course = await repos.catalog.get_course(course_id)
    if course is None:
        raise NotFoundError("Course not found")
    if await repos.catalog.get_enrollment(course_id, student_email) is None:
        logger.warning(
            "Access denied: %s is not enrolled in course %s", student_email, course_id
        )
        raise AccessDeniedError("Not enrolled in this course")
    return course


async def viewer_scope(
    repos: Repositories, course_id: UUID, principal: Principal
) -> bool:
    """Check read access to course content.

    Returns True for the owning teacher (full view, answers included) and
    False for an enrolled student. Anyone else gets AccessDeniedError.
    """
    if principal.is_teacher():
        await owned_course(repos, course_id, principal.email)
        return True
    if principal.is_student():
        await enrolled_course(repos, course_id, principal.email)
        return False
    raise AccessDeniedError("Insufficient permissions")
