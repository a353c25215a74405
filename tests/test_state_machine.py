from __future__ import annotations

import itertools

import pytest

from taskboard.domain.state_machine import ALLOWED_TRANSITIONS, TaskStatus, can_transition

LEGAL = {
    (TaskStatus.UNCLAIMED, TaskStatus.CLAIMED),
    (TaskStatus.CLAIMED, TaskStatus.IN_PROGRESS),
    (TaskStatus.CLAIMED, TaskStatus.UNCLAIMED),
    (TaskStatus.CLAIMED, TaskStatus.COMPLETED),
    (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED),
    (TaskStatus.IN_PROGRESS, TaskStatus.CLAIMED),
}


@pytest.mark.parametrize(("source", "target"), list(itertools.product(TaskStatus, TaskStatus)))
def test_transition_table(source: TaskStatus, target: TaskStatus) -> None:
    assert can_transition(source, target) is ((source, target) in LEGAL)


def test_completed_is_terminal() -> None:
    assert ALLOWED_TRANSITIONS[TaskStatus.COMPLETED] == set()


def test_status_values_are_wire_strings() -> None:
    assert TaskStatus.IN_PROGRESS.value == "in-progress"
    assert TaskStatus("claimed") is TaskStatus.CLAIMED
