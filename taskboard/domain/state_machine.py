from __future__ import annotations

from enum import StrEnum


class TaskStatus(StrEnum):
    UNCLAIMED = "unclaimed"
    CLAIMED = "claimed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


ALLOWED_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.UNCLAIMED: {TaskStatus.CLAIMED},
    TaskStatus.CLAIMED: {
        TaskStatus.IN_PROGRESS,
        TaskStatus.UNCLAIMED,
        TaskStatus.COMPLETED,
    },
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.CLAIMED},
    TaskStatus.COMPLETED: set(),
}

ACTIVE_STATUSES: frozenset[TaskStatus] = frozenset({TaskStatus.CLAIMED, TaskStatus.IN_PROGRESS})


def can_transition(source: TaskStatus, target: TaskStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(source, set())
