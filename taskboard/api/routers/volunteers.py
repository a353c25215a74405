from __future__ import annotations

from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from taskboard.api.deps import (
    get_volunteer_service,
    get_workload_service,
    require_perm,
)
from taskboard.domain.models import (
    Availability,
    TagChangeRequest,
    VolunteerProfileRead,
    VolunteerProfileUpsert,
    VolunteerWorkload,
)
from taskboard.domain.permissions import PERM_TASKS_ADMIN, PERM_TASKS_READ, PERM_VOLUNTEERS_WRITE
from taskboard.infra.audit import set_audit_context
from taskboard.services.task_service import NotFoundError
from taskboard.services.volunteer_service import InvalidTagError, VolunteerService
from taskboard.services.workload_service import WorkloadService

router = APIRouter()

Service = Annotated[VolunteerService, Depends(get_volunteer_service)]
Workloads = Annotated[WorkloadService, Depends(get_workload_service)]


def _handle_volunteer_error(exc: Exception) -> NoReturn:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, InvalidTagError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    raise exc


@router.get(
    "",
    response_model=list[VolunteerProfileRead],
    dependencies=[Depends(require_perm(PERM_TASKS_READ))],
)
def list_volunteers(service: Service) -> list[VolunteerProfileRead]:
    return [VolunteerProfileRead.model_validate(item) for item in service.list_profiles()]


@router.post(
    "",
    response_model=VolunteerProfileRead,
    dependencies=[Depends(require_perm(PERM_VOLUNTEERS_WRITE))],
)
def upsert_volunteer(
    payload: VolunteerProfileUpsert,
    service: Service,
    request: Request,
) -> VolunteerProfileRead:
    try:
        profile = service.upsert_profile(payload)
    except InvalidTagError as exc:
        _handle_volunteer_error(exc)
    set_audit_context(request, action="volunteer.upsert", resource=f"volunteer:{profile.id}")
    return VolunteerProfileRead.model_validate(profile)


@router.get(
    "/workloads",
    response_model=list[VolunteerWorkload],
    dependencies=[Depends(require_perm(PERM_TASKS_ADMIN))],
)
def volunteer_workloads(workloads: Workloads) -> list[VolunteerWorkload]:
    return workloads.get_volunteer_workloads()


@router.get(
    "/available",
    response_model=list[VolunteerProfileRead],
    dependencies=[Depends(require_perm(PERM_TASKS_READ))],
)
def available_volunteers(
    service: Service,
    tag: Annotated[list[str] | None, Query()] = None,
    availability: Annotated[list[Availability] | None, Query()] = None,
) -> list[VolunteerProfileRead]:
    rows = service.available_volunteers(tag or [], availability)
    return [VolunteerProfileRead.model_validate(item) for item in rows]


@router.post(
    "/{user_id}/tags",
    response_model=VolunteerProfileRead,
    dependencies=[Depends(require_perm(PERM_VOLUNTEERS_WRITE))],
)
def add_volunteer_tag(
    user_id: str,
    payload: TagChangeRequest,
    service: Service,
    request: Request,
) -> VolunteerProfileRead:
    try:
        profile = service.add_tag(user_id, payload.tag)
    except (NotFoundError, InvalidTagError) as exc:
        _handle_volunteer_error(exc)
    set_audit_context(
        request,
        action="volunteer.tag.add",
        resource=f"volunteer:{user_id}",
        detail={"what": {"tag": payload.tag}},
    )
    return VolunteerProfileRead.model_validate(profile)


@router.delete(
    "/{user_id}/tags",
    response_model=VolunteerProfileRead,
    dependencies=[Depends(require_perm(PERM_VOLUNTEERS_WRITE))],
)
def remove_volunteer_tag(
    user_id: str,
    service: Service,
    request: Request,
    tag: Annotated[str, Query()],
) -> VolunteerProfileRead:
    try:
        profile = service.remove_tag(user_id, tag)
    except NotFoundError as exc:
        _handle_volunteer_error(exc)
    set_audit_context(
        request,
        action="volunteer.tag.remove",
        resource=f"volunteer:{user_id}",
        detail={"what": {"tag": tag}},
    )
    return VolunteerProfileRead.model_validate(profile)
