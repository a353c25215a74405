from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from taskboard.domain.permissions import has_permission
from taskboard.infra.auth import decode_access_token
from taskboard.services.assignment_service import AssignmentService
from taskboard.services.task_service import TaskService
from taskboard.services.volunteer_service import VolunteerService
from taskboard.services.workload_service import WorkloadService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/identity/dev-login")


def get_current_claims(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> dict[str, Any]:
    try:
        claims = decode_access_token(token)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    request.state.claims = claims
    return claims


def require_perm(permission: str) -> Callable[[dict[str, Any]], dict[str, Any]]:
    def _checker(
        claims: Annotated[dict[str, Any], Depends(get_current_claims)],
    ) -> dict[str, Any]:
        if not has_permission(claims, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission}",
            )
        return claims

    return _checker


def get_task_service() -> TaskService:
    return TaskService()


def get_workload_service() -> WorkloadService:
    return WorkloadService(get_task_service())


def get_volunteer_service() -> VolunteerService:
    return VolunteerService()


@lru_cache
def get_assignment_service() -> AssignmentService:
    # one engine per process so scoring config changes persist between requests
    return AssignmentService(get_task_service(), get_workload_service())
