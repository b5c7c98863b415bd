"""Request-scoped dependencies: identity, role guards, course scope, repos.

Role and ownership checks live here once. Routers declare what they need
(``StudentPrincipal``, ``TeacherPrincipal``, ``OwnedCourse``, ``Repos``)
and receive an already-authorized value.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from progress_service.models.course import Course
from progress_service.models.principal import STUDENT, TEACHER, Principal
from progress_service.repos.bundle import Repositories, unit_of_work
from progress_service.services import access, token_service

logger = logging.getLogger(__name__)

# Tokens are issued by the LMS auth service; tokenUrl only feeds the docs UI.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Validate the bearer token and return the caller's Principal."""
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
    )
    logger.debug(
        "Token validated for user=%s roles=%s", principal.user_id, principal.roles
    )
    return principal


def require_role(role: str):
    """Dependency factory: demand a specific role, else 403."""

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_role(role):
            logger.warning(
                "Access denied: user=%s missing role=%s", principal.user_id, role
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. {role.capitalize()}s only.",
            )
        return principal

    return _guard


require_student = require_role(STUDENT)
require_teacher = require_role(TEACHER)


async def get_repositories() -> AsyncGenerator[Repositories, None]:
    """One unit of work per request: commit on success, roll back on error."""
    async with unit_of_work() as repos:
        yield repos


Repos = Annotated[Repositories, Depends(get_repositories)]
CurrentUser = Annotated[Principal, Depends(require_user)]
StudentPrincipal = Annotated[Principal, Depends(require_student)]
TeacherPrincipal = Annotated[Principal, Depends(require_teacher)]


async def get_owned_course(
    course_id: UUID,
    principal: TeacherPrincipal,
    repos: Repos,
) -> Course:
    """Resolve ``{course_id}`` from the path to a course the teacher owns.

    404 if the course does not exist, 403 if someone else owns it.
    """
    return await access.owned_course(repos, course_id, principal.email)


OwnedCourse = Annotated[Course, Depends(get_owned_course)]
