from __future__ import annotations

import logging
from collections import defaultdict

from taskboard.domain.models import ContentTask, VolunteerProfile, VolunteerWorkload, ensure_utc
from taskboard.domain.state_machine import ACTIVE_STATUSES, TaskStatus
from taskboard.domain.tags import get_tags_by_namespace
from taskboard.infra.stores import ProfileStore, SqlProfileStore
from taskboard.services.task_service import TaskService

logger = logging.getLogger(__name__)


def is_assignable_volunteer(profile: VolunteerProfile) -> bool:
    return profile.is_approved and profile.accepts_task_assignments and bool(profile.tags)


class WorkloadService:
    def __init__(self, task_service: TaskService, profile_store: ProfileStore | None = None) -> None:
        self._tasks = task_service
        self._profiles = profile_store if profile_store is not None else SqlProfileStore()

    def get_volunteer_workloads(self) -> list[VolunteerWorkload]:
        volunteers = [item for item in self._profiles.list_profiles() if is_assignable_volunteer(item)]
        by_assignee: dict[str, list[ContentTask]] = defaultdict(list)
        for task in self._tasks.get_tasks_for_assignees([item.id for item in volunteers]):
            if task.assigned_to:
                by_assignee[task.assigned_to].append(task)

        workloads = [self._workload_for(item, by_assignee.get(item.id, [])) for item in volunteers]
        logger.debug("computed workloads for %d volunteers", len(workloads))
        return workloads

    @staticmethod
    def _workload_for(profile: VolunteerProfile, tasks: list[ContentTask]) -> VolunteerWorkload:
        current = sum(1 for task in tasks if task.status in ACTIVE_STATUSES)
        durations = [
            (ensure_utc(task.updated_at) - ensure_utc(task.created_at)).total_seconds() / 60
            for task in tasks
            if task.status == TaskStatus.COMPLETED
        ]
        return VolunteerWorkload(
            user_id=profile.id,
            user_name=profile.display_name,
            user_email=profile.email,
            current_tasks=current,
            completed_tasks=len(durations),
            average_completion_time=sum(durations) / len(durations) if durations else 0.0,
            skills=get_tags_by_namespace(profile, "skill"),
            availability=profile.availability,
        )
