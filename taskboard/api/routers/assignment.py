from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import ValidationError

from taskboard.api.deps import (
    get_assignment_service,
    get_current_claims,
    get_task_service,
    require_perm,
)
from taskboard.api.routers.tasks import handle_task_error
from taskboard.domain.models import (
    AssignmentConfig,
    AssignmentConfigUpdate,
    AutoAssignRequest,
    TaskAssignmentResult,
    TaskCategory,
    TaskPriority,
    VolunteerCandidate,
)
from taskboard.domain.permissions import PERM_TASKS_ADMIN, PERM_TASKS_READ
from taskboard.infra.audit import set_audit_context
from taskboard.services.assignment_service import AssignmentService
from taskboard.services.task_service import TaskError, TaskService

router = APIRouter()

Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Engine = Annotated[AssignmentService, Depends(get_assignment_service)]
Tasks = Annotated[TaskService, Depends(get_task_service)]


@router.post(
    "/auto/{content_id}",
    response_model=TaskAssignmentResult,
    dependencies=[Depends(require_perm(PERM_TASKS_ADMIN))],
)
def auto_assign(
    content_id: str,
    payload: AutoAssignRequest,
    claims: Claims,
    engine: Engine,
    tasks: Tasks,
    request: Request,
) -> TaskAssignmentResult:
    try:
        task = tasks.get_task(content_id)
        result = engine.auto_assign_task(
            content_id,
            payload.category or task.category,
            payload.priority or task.priority,
            payload.extra_skills,
            dry_run=payload.dry_run,
            actor_id=claims["sub"],
        )
    except TaskError as exc:
        handle_task_error(exc)
    set_audit_context(
        request,
        action="task.auto_assign",
        resource=f"content:{content_id}",
        detail={
            "what": {
                "success": result.success,
                "assigned_to": result.assigned_to,
                "dry_run": payload.dry_run,
            }
        },
    )
    return result


@router.get(
    "/recommendations",
    response_model=list[VolunteerCandidate],
    dependencies=[Depends(require_perm(PERM_TASKS_READ))],
)
def recommendations(
    engine: Engine,
    category: TaskCategory,
    priority: TaskPriority = TaskPriority.MEDIUM,
    skill: Annotated[list[str] | None, Query()] = None,
    max_candidates: Annotated[int, Query(ge=1, le=50)] = 5,
) -> list[VolunteerCandidate]:
    return engine.find_best_volunteers_for_task(category, priority, skill or [], max_candidates)


@router.get(
    "/config",
    response_model=AssignmentConfig,
    dependencies=[Depends(require_perm(PERM_TASKS_READ))],
)
def get_config(engine: Engine) -> AssignmentConfig:
    return engine.get_config()


@router.patch(
    "/config",
    response_model=AssignmentConfig,
    dependencies=[Depends(require_perm(PERM_TASKS_ADMIN))],
)
def update_config(payload: AssignmentConfigUpdate, engine: Engine, request: Request) -> AssignmentConfig:
    changes = payload.model_dump(exclude_none=True)
    try:
        config = engine.update_config(**changes)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from exc
    set_audit_context(request, action="assignment.config", resource="assignment:config", detail={"what": changes})
    return config
