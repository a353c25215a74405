from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from taskboard.domain.state_machine import TaskStatus


def now_utc() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


class TaskCategory(StrEnum):
    REVIEW = "review"
    LAYOUT = "layout"
    FACT_CHECK = "fact-check"
    APPROVE = "approve"
    PRINT = "print"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskAssignmentMethod(StrEnum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"
    SELF_CLAIMED = "self-claimed"


class VolunteerRole(StrEnum):
    MEMBER = "member"
    CONTRIBUTOR = "contributor"
    CANVA_CONTRIBUTOR = "canva_contributor"
    EDITOR = "editor"
    MODERATOR = "moderator"
    ADMINISTRATOR = "administrator"


class Availability(StrEnum):
    REGULAR = "regular"
    OCCASIONAL = "occasional"
    ON_CALL = "on-call"


class ContentStatus(StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class EventRecord(SQLModel, table=True):
    __tablename__ = "events"

    event_id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    event_type: str = Field(index=True)
    ts: datetime = Field(default_factory=now_utc, index=True)
    actor_id: str | None = Field(default=None, index=True)
    correlation_id: str | None = Field(default=None, index=True)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    actor_id: str | None = Field(default=None, index=True)
    action: str
    resource: str
    method: str
    status_code: int
    ts: datetime = Field(default_factory=now_utc, index=True)
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class ContentRecord(SQLModel, table=True):
    __tablename__ = "content"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    title: str = Field(index=True)
    description: str = ""
    author_id: str = Field(index=True)
    author_name: str = ""
    status: ContentStatus = Field(default=ContentStatus.DRAFT, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class ContentTask(SQLModel, table=True):
    """Editorial task attached to a content record.

    Keyed by ``content_id`` so a record holds at most one task.
    """

    __tablename__ = "content_tasks"

    content_id: str = Field(foreign_key="content.id", primary_key=True)
    category: TaskCategory = Field(index=True)
    estimated_time: int
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, index=True)
    status: TaskStatus = Field(default=TaskStatus.UNCLAIMED, index=True)
    instructions: str | None = None
    due_date: datetime | None = Field(default=None, index=True)
    assigned_to: str | None = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class VolunteerProfile(SQLModel, table=True):
    __tablename__ = "volunteer_profiles"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    display_name: str
    email: str = Field(index=True)
    role: VolunteerRole = Field(default=VolunteerRole.MEMBER, index=True)
    tags: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    availability: Availability = Field(default=Availability.OCCASIONAL)
    preferences: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    is_approved: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)

    @property
    def accepts_task_assignments(self) -> bool:
        return bool((self.preferences or {}).get("task_assignments", False))


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=lambda: str(uuid4()))
    event_type: str
    ts: datetime = PydanticField(default_factory=now_utc)
    actor_id: str | None = None
    correlation_id: str | None = None
    payload: dict[str, Any]


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ContentCreate(BaseModel):
    title: str
    description: str = ""
    author_name: str = ""
    status: ContentStatus = ContentStatus.DRAFT


class TaskRead(ORMReadModel):
    content_id: str
    category: TaskCategory
    estimated_time: int
    priority: TaskPriority
    status: TaskStatus
    instructions: str | None
    due_date: datetime | None
    assigned_to: str | None
    created_at: datetime
    updated_at: datetime

    @field_validator("due_date", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


class ContentRead(ORMReadModel):
    id: str
    title: str
    description: str
    author_id: str
    author_name: str
    status: ContentStatus
    created_at: datetime
    updated_at: datetime
    task: TaskRead | None = None


class TaskCreateRequest(BaseModel):
    category: TaskCategory
    estimated_time: int = PydanticField(gt=0)
    priority: TaskPriority = TaskPriority.MEDIUM
    instructions: str | None = None
    due_date: datetime | None = None
    assign_to: str | None = None


class TaskAssignRequest(BaseModel):
    user_id: str
    method: TaskAssignmentMethod | None = None


class TaskStatusUpdateRequest(BaseModel):
    status: TaskStatus
    user_id: str | None = None


class TaskDetails(BaseModel):
    task_id: str
    content_id: str
    content_title: str
    content_author: str
    task: TaskRead
    assigned_user_name: str | None = None
    assigned_user_email: str | None = None
    time_remaining: int | None = None
    is_overdue: bool | None = None


class TaskStatistics(BaseModel):
    total_tasks: int = 0
    unclaimed_tasks: int = 0
    in_progress_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0
    average_completion_time: float = 0.0
    tasks_by_category: dict[TaskCategory, int] = PydanticField(
        default_factory=lambda: {item: 0 for item in TaskCategory}
    )
    tasks_by_priority: dict[TaskPriority, int] = PydanticField(
        default_factory=lambda: {item: 0 for item in TaskPriority}
    )


class VolunteerProfileRead(ORMReadModel):
    id: str
    display_name: str
    email: str
    role: VolunteerRole
    tags: list[str]
    availability: Availability
    preferences: dict[str, Any]
    is_approved: bool


class VolunteerProfileUpsert(BaseModel):
    id: str | None = None
    display_name: str
    email: str
    role: VolunteerRole = VolunteerRole.MEMBER
    tags: list[str] = PydanticField(default_factory=list)
    availability: Availability = Availability.OCCASIONAL
    task_assignments: bool = False
    is_approved: bool = False


class TagChangeRequest(BaseModel):
    tag: str


class VolunteerWorkload(BaseModel):
    user_id: str
    user_name: str
    user_email: str
    current_tasks: int = 0
    completed_tasks: int = 0
    average_completion_time: float = 0.0
    skills: list[str] = PydanticField(default_factory=list)
    availability: Availability


class VolunteerCandidate(BaseModel):
    profile: VolunteerProfileRead
    score: float = 0.0
    matched_skills: list[str] = PydanticField(default_factory=list)
    current_workload: int = 0
    availability_match: bool = False
    reasons_selected: list[str] = PydanticField(default_factory=list)
    reasons_rejected: list[str] = PydanticField(default_factory=list)


class TaskAssignmentResult(BaseModel):
    success: bool
    assigned_to: str | None = None
    assigned_user_name: str | None = None
    candidates: list[VolunteerCandidate] = PydanticField(default_factory=list)
    qualified_candidates: list[VolunteerCandidate] = PydanticField(default_factory=list)
    reason: str
    fallback_suggestions: list[str] = PydanticField(default_factory=list)


class AssignmentConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_workload_per_volunteer: int = PydanticField(default=5, ge=1)
    skill_match_weight: float = PydanticField(default=0.4, ge=0)
    availability_weight: float = PydanticField(default=0.3, ge=0)
    workload_weight: float = PydanticField(default=0.3, ge=0)
    priority_boost: dict[TaskPriority, float] = PydanticField(
        default_factory=lambda: {
            TaskPriority.LOW: 1.0,
            TaskPriority.MEDIUM: 1.2,
            TaskPriority.HIGH: 1.5,
        }
    )
    min_required_skill_match: float = PydanticField(default=0.3, ge=0, le=1)

    @field_validator("priority_boost")
    @classmethod
    def _boost_covers_priorities(cls, value: dict[TaskPriority, float]) -> dict[TaskPriority, float]:
        missing = [item.value for item in TaskPriority if item not in value]
        if missing:
            raise ValueError(f"priority_boost missing: {', '.join(missing)}")
        return value


class AssignmentConfigUpdate(BaseModel):
    max_workload_per_volunteer: int | None = None
    skill_match_weight: float | None = None
    availability_weight: float | None = None
    workload_weight: float | None = None
    priority_boost: dict[TaskPriority, float] | None = None
    min_required_skill_match: float | None = None


class AutoAssignRequest(BaseModel):
    category: TaskCategory | None = None
    priority: TaskPriority | None = None
    extra_skills: list[str] = PydanticField(default_factory=list)
    dry_run: bool = False


class DevLoginRequest(BaseModel):
    user_id: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: VolunteerRole
    permissions: list[str]
