from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from taskboard.api.deps import get_current_claims, require_perm
from taskboard.domain.models import ContentCreate, ContentRead, ContentRecord, TaskRead
from taskboard.domain.permissions import PERM_CONTENT_WRITE, PERM_TASKS_READ
from taskboard.infra.audit import set_audit_context
from taskboard.infra.stores import SqlContentStore

router = APIRouter()


def get_content_store() -> SqlContentStore:
    return SqlContentStore()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Store = Annotated[SqlContentStore, Depends(get_content_store)]


@router.post(
    "",
    response_model=ContentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_CONTENT_WRITE))],
)
def create_content(payload: ContentCreate, claims: Claims, store: Store, request: Request) -> ContentRead:
    record = store.add(
        ContentRecord(
            title=payload.title,
            description=payload.description,
            author_id=claims["sub"],
            author_name=payload.author_name,
            status=payload.status,
        )
    )
    set_audit_context(request, action="content.create", resource=f"content:{record.id}")
    return ContentRead.model_validate(record)


@router.get(
    "/{content_id}",
    response_model=ContentRead,
    dependencies=[Depends(require_perm(PERM_TASKS_READ))],
)
def get_content(content_id: str, store: Store) -> ContentRead:
    record = store.get(content_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Content record {content_id} not found",
        )
    task = store.get_task(content_id)
    result = ContentRead.model_validate(record)
    if task is not None:
        result.task = TaskRead.model_validate(task)
    return result
