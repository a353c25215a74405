from __future__ import annotations

import logging
from collections.abc import Callable, Collection
from datetime import datetime
from typing import Any, ClassVar

from taskboard.domain.models import (
    ContentRecord,
    ContentTask,
    EventEnvelope,
    TaskAssignmentMethod,
    TaskCategory,
    TaskDetails,
    TaskPriority,
    TaskRead,
    TaskStatistics,
    ensure_utc,
    now_utc,
)
from taskboard.domain.permissions import is_elevated_role
from taskboard.domain.state_machine import ACTIVE_STATUSES, TaskStatus, can_transition
from taskboard.infra.events import EventBus, event_bus
from taskboard.infra.stores import (
    Clock,
    ContentStore,
    DuplicateTaskError,
    ProfileStore,
    SqlContentStore,
    SqlProfileStore,
    TaskRow,
)

logger = logging.getLogger(__name__)

TaskSubscriber = Callable[[list[TaskDetails]], None]
Unsubscribe = Callable[[], None]

PRIORITY_RANK: dict[TaskPriority, int] = {
    TaskPriority.LOW: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.HIGH: 3,
}


class TaskError(Exception):
    pass


class NotFoundError(TaskError):
    pass


class ConflictError(TaskError):
    pass


class PreconditionFailedError(TaskError):
    pass


class PermissionDeniedError(PreconditionFailedError):
    pass


class UnauthenticatedError(TaskError):
    pass


class InvalidTransitionError(TaskError):
    def __init__(self, source: TaskStatus, target: TaskStatus) -> None:
        super().__init__(f"Invalid status transition from {source} to {target}")
        self.source = source
        self.target = target


class TaskService:
    _TASK_EVENTS: ClassVar[frozenset[str]] = frozenset(
        {"task.created", "task.assigned", "task.status_changed"}
    )
    _ASSIGNABLE_STATUSES: ClassVar[frozenset[TaskStatus]] = frozenset(
        {TaskStatus.UNCLAIMED, TaskStatus.CLAIMED, TaskStatus.IN_PROGRESS}
    )

    def __init__(
        self,
        content_store: ContentStore | None = None,
        profile_store: ProfileStore | None = None,
        *,
        clock: Clock = now_utc,
        events: EventBus | None = None,
    ) -> None:
        self._content = content_store if content_store is not None else SqlContentStore()
        self._profiles = profile_store if profile_store is not None else SqlProfileStore()
        self._clock = clock
        self._events = events if events is not None else event_bus

    def _get_content(self, content_id: str) -> ContentRecord:
        record = self._content.get(content_id)
        if record is None:
            raise NotFoundError(f"Content record {content_id} not found")
        return record

    def get_task(self, content_id: str) -> ContentTask:
        task = self._content.get_task(content_id)
        if task is None:
            raise NotFoundError(f"No task found for content {content_id}")
        return task

    def _publish(
        self,
        event_type: str,
        task: ContentTask,
        *,
        actor_id: str | None,
        previous_assigned_to: str | None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        payload: dict[str, Any] = {
            "content_id": task.content_id,
            "status": task.status,
            "assigned_to": task.assigned_to,
            "previous_assigned_to": previous_assigned_to,
        }
        if extra:
            payload.update(extra)
        self._events.publish_dict(event_type, payload, actor_id=actor_id)

    def create_task(
        self,
        content_id: str,
        category: TaskCategory,
        estimated_time: int,
        priority: TaskPriority = TaskPriority.MEDIUM,
        instructions: str | None = None,
        due_date: datetime | None = None,
        assign_to: str | None = None,
        *,
        actor_id: str | None,
    ) -> ContentTask:
        if not actor_id:
            raise UnauthenticatedError("User must be authenticated to create tasks")
        if estimated_time <= 0:
            raise ValueError("estimated_time must be a positive number of minutes")

        self._get_content(content_id)
        if self._content.get_task(content_id) is not None:
            raise ConflictError(f"Task already exists for content {content_id}")

        now = self._clock()
        task = ContentTask(
            content_id=content_id,
            category=category,
            estimated_time=estimated_time,
            priority=priority,
            status=TaskStatus.CLAIMED if assign_to else TaskStatus.UNCLAIMED,
            instructions=instructions or None,
            due_date=ensure_utc(due_date) if due_date is not None else None,
            assigned_to=assign_to or None,
            created_at=now,
            updated_at=now,
        )
        try:
            task = self._content.insert_task(task, touched_at=now)
        except DuplicateTaskError as exc:
            raise ConflictError(f"Task already exists for content {content_id}") from exc

        logger.info(
            "task created content_id=%s category=%s priority=%s assigned_to=%s",
            content_id,
            category,
            priority,
            assign_to or "unassigned",
        )
        self._publish(
            "task.created",
            task,
            actor_id=actor_id,
            previous_assigned_to=None,
            extra={"category": task.category, "priority": task.priority},
        )
        return task

    def _ensure_assignable(self, content_id: str, task: ContentTask, user_id: str) -> None:
        if task.status == TaskStatus.COMPLETED:
            raise ConflictError(f"Task for content {content_id} is already completed")
        if task.assigned_to and task.assigned_to != user_id:
            raise ConflictError(f"Task for content {content_id} is already assigned to another user")

    def assign_task(
        self,
        content_id: str,
        user_id: str,
        method: TaskAssignmentMethod = TaskAssignmentMethod.MANUAL,
        *,
        actor_id: str | None = None,
    ) -> ContentTask:
        self._get_content(content_id)
        profile = self._profiles.get_profile(user_id)
        if profile is None:
            raise NotFoundError(f"User profile not found for {user_id}")
        if not profile.accepts_task_assignments:
            raise PreconditionFailedError(f"User {user_id} has not opted in for task assignments")
        task = self.get_task(content_id)
        self._ensure_assignable(content_id, task, user_id)

        previous_assigned_to = task.assigned_to
        applied = self._content.update_task_if(
            content_id,
            expected_status=self._ASSIGNABLE_STATUSES,
            expected_assignees=(None, user_id),
            values={"assigned_to": user_id, "status": TaskStatus.CLAIMED},
            touched_at=self._clock(),
        )
        if not applied:
            # lost a race: report what the winner left behind
            current = self.get_task(content_id)
            self._ensure_assignable(content_id, current, user_id)
            raise ConflictError(f"Task for content {content_id} was modified concurrently")

        task = self.get_task(content_id)
        logger.info(
            "task assigned content_id=%s user_id=%s user_name=%s method=%s",
            content_id,
            user_id,
            profile.display_name,
            method,
        )
        self._publish(
            "task.assigned",
            task,
            actor_id=actor_id,
            previous_assigned_to=previous_assigned_to,
            extra={"method": method},
        )
        return task

    def update_task_status(
        self,
        content_id: str,
        status: TaskStatus,
        *,
        actor_id: str | None,
        acting_user_id: str | None = None,
    ) -> ContentTask:
        if not actor_id:
            raise UnauthenticatedError("User must be authenticated to update task status")

        self._get_content(content_id)
        task = self.get_task(content_id)
        if not can_transition(task.status, status):
            raise InvalidTransitionError(task.status, status)

        update_user_id = acting_user_id or actor_id
        on_behalf = update_user_id != actor_id
        foreign_task = task.assigned_to is not None and task.assigned_to != update_user_id
        if on_behalf or foreign_task:
            actor = self._profiles.get_profile(actor_id)
            if actor is None or not is_elevated_role(actor.role):
                raise PermissionDeniedError("Only assigned user or administrators can update task status")

        values: dict[str, Any] = {"status": status}
        if status == TaskStatus.CLAIMED and task.assigned_to is None:
            claimant = self._profiles.get_profile(update_user_id)
            if claimant is None:
                raise NotFoundError(f"User profile not found for {update_user_id}")
            if not claimant.accepts_task_assignments:
                raise PreconditionFailedError(f"User {update_user_id} has not opted in for task assignments")
            values["assigned_to"] = update_user_id
        if status == TaskStatus.UNCLAIMED:
            values["assigned_to"] = None

        source = task.status
        previous_assigned_to = task.assigned_to
        applied = self._content.update_task_if(
            content_id,
            expected_status=(task.status,),
            expected_assignees=(task.assigned_to,),
            values=values,
            touched_at=self._clock(),
        )
        if not applied:
            raise ConflictError(f"Task for content {content_id} was modified concurrently")

        task = self.get_task(content_id)
        logger.info(
            "task status changed content_id=%s %s -> %s user_id=%s",
            content_id,
            source,
            status,
            update_user_id,
        )
        self._publish(
            "task.status_changed",
            task,
            actor_id=actor_id,
            previous_assigned_to=previous_assigned_to,
            extra={"from_status": source},
        )
        return task

    def _task_details(self, record: ContentRecord, task: ContentTask, now: datetime) -> TaskDetails:
        details = TaskDetails(
            task_id=record.id,
            content_id=record.id,
            content_title=record.title,
            content_author=record.author_name,
            task=TaskRead.model_validate(task),
        )
        if task.due_date is not None:
            due = ensure_utc(task.due_date)
            details.time_remaining = max(0, round((due - now).total_seconds() / 60))
            details.is_overdue = due < now and task.status != TaskStatus.COMPLETED
        return details

    def get_user_tasks(self, user_id: str, status: TaskStatus | None = None) -> list[TaskDetails]:
        rows = self._content.query_tasks(assigned_to=user_id, status=status)
        now = ensure_utc(self._clock())
        tasks = [self._task_details(record, task, now) for record, task in rows]
        logger.debug("user tasks user_id=%s status=%s count=%d", user_id, status, len(tasks))
        return tasks

    def get_tasks_by_status(
        self,
        status: TaskStatus | None = None,
        limit: int | None = None,
    ) -> list[TaskDetails]:
        rows: list[TaskRow]
        if status is not None:
            rows = self._content.query_tasks(status=status, limit=limit)
        else:
            rows = sorted(
                self._content.query_tasks(),
                key=lambda row: (PRIORITY_RANK[row[1].priority], ensure_utc(row[1].created_at)),
                reverse=True,
            )
            if limit is not None:
                rows = rows[:limit]

        assignees = {task.assigned_to for _, task in rows if task.assigned_to}
        profiles = self._profiles.get_profiles(assignees)
        now = ensure_utc(self._clock())
        tasks: list[TaskDetails] = []
        for record, task in rows:
            details = self._task_details(record, task, now)
            profile = profiles.get(task.assigned_to) if task.assigned_to else None
            if profile is not None:
                details.assigned_user_name = profile.display_name
                details.assigned_user_email = profile.email
            tasks.append(details)
        return tasks

    def get_tasks_for_assignees(self, user_ids: Collection[str]) -> list[ContentTask]:
        if not user_ids:
            return []
        rows = self._content.query_tasks(assignees=user_ids, newest_first=False)
        return [task for _, task in rows]

    def get_task_statistics(self) -> TaskStatistics:
        stats = TaskStatistics()
        completion_minutes: list[float] = []
        now = ensure_utc(self._clock())

        for _, task in self._content.query_tasks(newest_first=False):
            stats.total_tasks += 1
            stats.tasks_by_category[task.category] += 1
            stats.tasks_by_priority[task.priority] += 1

            if task.status == TaskStatus.UNCLAIMED:
                stats.unclaimed_tasks += 1
            elif task.status in ACTIVE_STATUSES:
                stats.in_progress_tasks += 1
            elif task.status == TaskStatus.COMPLETED:
                stats.completed_tasks += 1
                delta = ensure_utc(task.updated_at) - ensure_utc(task.created_at)
                completion_minutes.append(delta.total_seconds() / 60)

            if (
                task.due_date is not None
                and task.status != TaskStatus.COMPLETED
                and ensure_utc(task.due_date) < now
            ):
                stats.overdue_tasks += 1

        if completion_minutes:
            stats.average_completion_time = sum(completion_minutes) / len(completion_minutes)
        return stats

    def subscribe_to_user_tasks(
        self,
        user_id: str,
        callback: TaskSubscriber,
        status: TaskStatus | None = None,
    ) -> Unsubscribe:
        """Push the user's full task list now and after every change touching them.

        The returned callable stops delivery; calling it again is a no-op.
        """
        active = True

        def _on_event(event: EventEnvelope) -> None:
            if not active or event.event_type not in self._TASK_EVENTS:
                return
            touched = (event.payload.get("assigned_to"), event.payload.get("previous_assigned_to"))
            if user_id not in touched:
                return
            callback(self.get_user_tasks(user_id, status))

        def unsubscribe() -> None:
            nonlocal active
            active = False
            self._events.unsubscribe("*", _on_event)

        self._events.subscribe("*", _on_event)
        callback(self.get_user_tasks(user_id, status))
        return unsubscribe
