from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from taskboard.api.deps import get_volunteer_service
from taskboard.domain.models import DevLoginRequest, TokenResponse
from taskboard.domain.permissions import permissions_for_role
from taskboard.infra.auth import create_access_token
from taskboard.services.task_service import NotFoundError
from taskboard.services.volunteer_service import VolunteerService

router = APIRouter()

Service = Annotated[VolunteerService, Depends(get_volunteer_service)]


@router.post("/dev-login", response_model=TokenResponse)
def dev_login(payload: DevLoginRequest, service: Service) -> TokenResponse:
    try:
        profile = service.get_profile(payload.user_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    permissions = permissions_for_role(profile.role)
    token = create_access_token(
        user_id=profile.id,
        role=profile.role,
        permissions=permissions,
    )
    return TokenResponse(access_token=token, role=profile.role, permissions=permissions)
