from __future__ import annotations

from typing import Annotated, Any, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from taskboard.api.deps import get_current_claims, get_task_service, require_perm
from taskboard.domain.models import (
    TaskAssignmentMethod,
    TaskAssignRequest,
    TaskCreateRequest,
    TaskDetails,
    TaskRead,
    TaskStatistics,
    TaskStatusUpdateRequest,
)
from taskboard.domain.permissions import (
    PERM_TASKS_ADMIN,
    PERM_TASKS_READ,
    PERM_TASKS_WRITE,
    has_permission,
)
from taskboard.domain.state_machine import TaskStatus
from taskboard.infra.audit import set_audit_context
from taskboard.services.task_service import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionFailedError,
    TaskError,
    TaskService,
    UnauthenticatedError,
)

router = APIRouter()

Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[TaskService, Depends(get_task_service)]


def handle_task_error(exc: Exception) -> NoReturn:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, (ConflictError, InvalidTransitionError)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, PermissionDeniedError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, PreconditionFailedError):
        raise HTTPException(status_code=status.HTTP_412_PRECONDITION_FAILED, detail=str(exc)) from exc
    if isinstance(exc, UnauthenticatedError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    raise exc


@router.post(
    "/{content_id}",
    response_model=TaskRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_TASKS_WRITE))],
)
def create_task(
    content_id: str,
    payload: TaskCreateRequest,
    claims: Claims,
    service: Service,
    request: Request,
) -> TaskRead:
    try:
        task = service.create_task(
            content_id,
            payload.category,
            payload.estimated_time,
            payload.priority,
            payload.instructions,
            payload.due_date,
            payload.assign_to,
            actor_id=claims.get("sub"),
        )
    except TaskError as exc:
        handle_task_error(exc)
    set_audit_context(
        request,
        action="task.create",
        resource=f"content:{content_id}",
        detail={"what": {"category": task.category, "assigned_to": task.assigned_to}},
    )
    return TaskRead.model_validate(task)


@router.post(
    "/{content_id}/assign",
    response_model=TaskRead,
    dependencies=[Depends(require_perm(PERM_TASKS_WRITE))],
)
def assign_task(
    content_id: str,
    payload: TaskAssignRequest,
    claims: Claims,
    service: Service,
    request: Request,
) -> TaskRead:
    self_assign = payload.user_id == claims["sub"]
    if not self_assign and not has_permission(claims, PERM_TASKS_ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing permission: {PERM_TASKS_ADMIN}",
        )
    method = payload.method or (
        TaskAssignmentMethod.SELF_CLAIMED if self_assign else TaskAssignmentMethod.MANUAL
    )
    try:
        task = service.assign_task(content_id, payload.user_id, method, actor_id=claims["sub"])
    except TaskError as exc:
        handle_task_error(exc)
    set_audit_context(
        request,
        action="task.assign",
        resource=f"content:{content_id}",
        detail={"what": {"user_id": payload.user_id, "method": method}},
    )
    return TaskRead.model_validate(task)


@router.post(
    "/{content_id}/status",
    response_model=TaskRead,
    dependencies=[Depends(require_perm(PERM_TASKS_WRITE))],
)
def update_task_status(
    content_id: str,
    payload: TaskStatusUpdateRequest,
    claims: Claims,
    service: Service,
    request: Request,
) -> TaskRead:
    try:
        task = service.update_task_status(
            content_id,
            payload.status,
            actor_id=claims.get("sub"),
            acting_user_id=payload.user_id,
        )
    except TaskError as exc:
        handle_task_error(exc)
    set_audit_context(
        request,
        action="task.status",
        resource=f"content:{content_id}",
        detail={"what": {"status": task.status}},
    )
    return TaskRead.model_validate(task)


@router.get(
    "/mine",
    response_model=list[TaskDetails],
    dependencies=[Depends(require_perm(PERM_TASKS_READ))],
)
def list_my_tasks(
    claims: Claims,
    service: Service,
    task_status: Annotated[TaskStatus | None, Query(alias="status")] = None,
) -> list[TaskDetails]:
    return service.get_user_tasks(claims["sub"], task_status)


@router.get(
    "/users/{user_id}",
    response_model=list[TaskDetails],
    dependencies=[Depends(require_perm(PERM_TASKS_ADMIN))],
)
def list_user_tasks(
    user_id: str,
    service: Service,
    task_status: Annotated[TaskStatus | None, Query(alias="status")] = None,
) -> list[TaskDetails]:
    return service.get_user_tasks(user_id, task_status)


@router.get(
    "/stats",
    response_model=TaskStatistics,
    dependencies=[Depends(require_perm(PERM_TASKS_READ))],
)
def task_statistics(service: Service) -> TaskStatistics:
    return service.get_task_statistics()


@router.get(
    "",
    response_model=list[TaskDetails],
    dependencies=[Depends(require_perm(PERM_TASKS_ADMIN))],
)
def list_tasks(
    service: Service,
    task_status: Annotated[TaskStatus | None, Query(alias="status")] = None,
    limit: Annotated[int | None, Query(ge=1, le=500)] = None,
) -> list[TaskDetails]:
    return service.get_tasks_by_status(task_status, limit)
