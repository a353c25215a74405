from __future__ import annotations

import logging
import os
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Any

from taskboard.domain.models import (
    AssignmentConfig,
    Availability,
    TaskAssignmentMethod,
    TaskAssignmentResult,
    TaskCategory,
    TaskPriority,
    VolunteerCandidate,
    VolunteerProfile,
    VolunteerProfileRead,
    VolunteerRole,
    VolunteerWorkload,
)
from taskboard.domain.tags import get_tags_by_namespace
from taskboard.infra.stores import ProfileStore, SqlProfileStore
from taskboard.services.task_service import TaskService
from taskboard.services.workload_service import WorkloadService, is_assignable_volunteer

logger = logging.getLogger(__name__)

TASK_SKILL_REQUIREMENTS: dict[TaskCategory, list[str]] = {
    TaskCategory.REVIEW: ["skill:writing", "skill:editing", "skill:proofreading"],
    TaskCategory.LAYOUT: ["skill:design", "skill:layout", "skill:canva", "skill:graphics"],
    TaskCategory.FACT_CHECK: ["skill:research", "skill:fact-checking", "skill:verification"],
    TaskCategory.APPROVE: ["skill:editing", "skill:management", "skill:decision-making"],
    TaskCategory.PRINT: ["skill:printing", "skill:production", "skill:logistics"],
}

AVAILABILITY_SCORES: dict[Availability, float] = {
    Availability.REGULAR: 1.0,
    Availability.OCCASIONAL: 0.7,
    Availability.ON_CALL: 0.4,
}

ROLE_BOOSTS: dict[VolunteerRole, float] = {
    VolunteerRole.MEMBER: 0.8,
    VolunteerRole.CONTRIBUTOR: 1.0,
    VolunteerRole.CANVA_CONTRIBUTOR: 1.1,
    VolunteerRole.EDITOR: 1.3,
    VolunteerRole.MODERATOR: 1.4,
    VolunteerRole.ADMINISTRATOR: 1.5,
}

ASSIGNABLE_ROLES: frozenset[VolunteerRole] = frozenset(
    {
        VolunteerRole.CONTRIBUTOR,
        VolunteerRole.CANVA_CONTRIBUTOR,
        VolunteerRole.EDITOR,
        VolunteerRole.MODERATOR,
        VolunteerRole.ADMINISTRATOR,
    }
)

MAX_WORKLOAD_PER_VOLUNTEER = int(os.getenv("ASSIGNMENT_MAX_WORKLOAD", "5"))
MIN_REQUIRED_SKILL_MATCH = float(os.getenv("ASSIGNMENT_MIN_SKILL_MATCH", "0.3"))

MANUAL_OVERRIDE_SUGGESTION = "Assign task manually to override automatic assignment"


def default_assignment_config() -> AssignmentConfig:
    return AssignmentConfig(
        max_workload_per_volunteer=MAX_WORKLOAD_PER_VOLUNTEER,
        min_required_skill_match=MIN_REQUIRED_SKILL_MATCH,
    )


def required_skills_for(category: TaskCategory, extra_skills: Iterable[str] = ()) -> list[str]:
    skills: list[str] = []
    for skill in [*TASK_SKILL_REQUIREMENTS[category], *extra_skills]:
        if skill and skill not in skills:
            skills.append(skill)
    return skills


def covered_skill_count(matched: Iterable[str], required_skills: Sequence[str]) -> int:
    """Count required skills satisfied by at least one matched skill value."""
    matched = list(matched)
    return sum(1 for required in required_skills if any(skill in required for skill in matched))


def rejection_categories(reasons: Iterable[str]) -> list[str]:
    """Bucket rejection reasons and return the buckets, most frequent first."""
    counts: Counter[str] = Counter()
    for reason in reasons:
        key = reason.lower()
        if "workload" in key:
            counts["workload"] += 1
        elif "skill" in key:
            counts["skill"] += 1
        elif "availability" in key:
            counts["availability"] += 1
    return [name for name, _ in counts.most_common(3)]


class AssignmentService:
    def __init__(
        self,
        task_service: TaskService,
        workload_service: WorkloadService,
        profile_store: ProfileStore | None = None,
        config: AssignmentConfig | None = None,
    ) -> None:
        self._tasks = task_service
        self._workloads = workload_service
        self._profiles = profile_store if profile_store is not None else SqlProfileStore()
        self._config = config if config is not None else default_assignment_config()

    def get_config(self) -> AssignmentConfig:
        return self._config.model_copy(deep=True)

    def update_config(self, **changes: Any) -> AssignmentConfig:
        merged = self._config.model_dump()
        for key, value in changes.items():
            if value is None:
                continue
            if key == "priority_boost":
                value = {**merged["priority_boost"], **value}
            merged[key] = value
        self._config = AssignmentConfig.model_validate(merged)
        logger.info("assignment config updated changes=%s", sorted(k for k, v in changes.items() if v is not None))
        return self.get_config()

    def eligible_volunteers(self) -> list[VolunteerProfile]:
        return [
            profile
            for profile in self._profiles.list_profiles()
            if is_assignable_volunteer(profile) and profile.role in ASSIGNABLE_ROLES
        ]

    def score_volunteer(
        self,
        volunteer: VolunteerProfile,
        required_skills: Sequence[str],
        priority: TaskPriority,
        workload: VolunteerWorkload | None = None,
    ) -> VolunteerCandidate:
        config = self._config
        candidate = VolunteerCandidate(
            profile=VolunteerProfileRead.model_validate(volunteer),
            current_workload=workload.current_tasks if workload is not None else 0,
        )
        score = 0.0

        matched = [
            skill
            for skill in get_tags_by_namespace(volunteer, "skill")
            if any(skill in required for required in required_skills)
        ]
        candidate.matched_skills = matched
        covered = covered_skill_count(matched, required_skills)
        if covered:
            score += covered / len(required_skills) * config.skill_match_weight
            candidate.reasons_selected.append(
                f"Matches {covered}/{len(required_skills)} required skills"
            )
        else:
            candidate.reasons_rejected.append("No matching skills found")

        availability = AVAILABILITY_SCORES.get(volunteer.availability, 0.0)
        candidate.availability_match = availability > 0.5
        score += availability * config.availability_weight
        if candidate.availability_match:
            candidate.reasons_selected.append(f"Available ({volunteer.availability})")
        else:
            candidate.reasons_rejected.append(f"Limited availability ({volunteer.availability})")

        current = candidate.current_workload
        score += max(0.0, 1 - current / config.max_workload_per_volunteer) * config.workload_weight
        if current < config.max_workload_per_volunteer:
            candidate.reasons_selected.append(f"Low workload ({current} current tasks)")
        else:
            candidate.reasons_rejected.append(f"High workload ({current} current tasks)")

        score *= config.priority_boost.get(priority, 1.0)
        role_boost = ROLE_BOOSTS.get(volunteer.role, 1.0)
        score *= role_boost
        if role_boost > 1:
            candidate.reasons_selected.append(f"Experience level ({volunteer.role})")

        candidate.score = min(100.0, score * 100)
        return candidate

    def meets_minimum_requirements(
        self,
        candidate: VolunteerCandidate,
        required_skills: Sequence[str],
    ) -> bool:
        """Check the qualification thresholds, recording why a candidate fails."""
        config = self._config
        ratio = (
            covered_skill_count(candidate.matched_skills, required_skills) / len(required_skills)
            if required_skills
            else 0.0
        )
        if ratio < config.min_required_skill_match:
            candidate.reasons_rejected.append(
                f"Insufficient skill match ({round(ratio * 100)}% < "
                f"{round(config.min_required_skill_match * 100)}%)"
            )
            return False
        if candidate.current_workload >= config.max_workload_per_volunteer:
            candidate.reasons_rejected.append(
                f"Workload limit exceeded ({candidate.current_workload} >= "
                f"{config.max_workload_per_volunteer})"
            )
            return False
        return True

    def rank_volunteers(
        self,
        volunteers: Sequence[VolunteerProfile],
        required_skills: Sequence[str],
        priority: TaskPriority,
    ) -> list[VolunteerCandidate]:
        workloads = {item.user_id: item for item in self._workloads.get_volunteer_workloads()}
        candidates = [
            self.score_volunteer(volunteer, required_skills, priority, workloads.get(volunteer.id))
            for volunteer in volunteers
        ]
        # stable: equal scores keep profile order
        return sorted(candidates, key=lambda item: item.score, reverse=True)

    def fallback_suggestions(
        self,
        category: TaskCategory,
        candidates: Sequence[VolunteerCandidate],
    ) -> list[str]:
        suggestions: list[str] = []
        if not candidates:
            suggestions.extend(
                ["Recruit volunteers with relevant skills", "Post in community forums for help"]
            )
        else:
            common = rejection_categories(
                reason for candidate in candidates for reason in candidate.reasons_rejected
            )
            if "workload" in common:
                suggestions.extend(["Wait for current tasks to be completed", "Recruit additional volunteers"])
            if "skill" in common:
                skills = ", ".join(TASK_SKILL_REQUIREMENTS[category])
                suggestions.extend(
                    [f"Recruit volunteers with skills: {skills}", "Provide training for existing volunteers"]
                )
            if "availability" in common:
                suggestions.extend(
                    [
                        "Adjust task timeline to accommodate volunteer availability",
                        "Recruit volunteers with more regular availability",
                    ]
                )
        suggestions.append(MANUAL_OVERRIDE_SUGGESTION)
        return suggestions

    def auto_assign_task(
        self,
        content_id: str,
        category: TaskCategory,
        priority: TaskPriority,
        extra_skills: Sequence[str] = (),
        *,
        dry_run: bool = False,
        actor_id: str | None = None,
    ) -> TaskAssignmentResult:
        volunteers = self.eligible_volunteers()
        if not volunteers:
            logger.warning("auto-assign found no eligible volunteers content_id=%s", content_id)
            return TaskAssignmentResult(
                success=False,
                reason="No volunteers available for task assignments",
                fallback_suggestions=[
                    "Contact administrators to recruit more volunteers",
                    MANUAL_OVERRIDE_SUGGESTION,
                ],
            )

        required = required_skills_for(category, extra_skills)
        candidates = self.rank_volunteers(volunteers, required, priority)
        qualified = [item for item in candidates if self.meets_minimum_requirements(item, required)]
        if not qualified:
            logger.warning(
                "auto-assign found no qualified volunteer content_id=%s candidates=%d",
                content_id,
                len(candidates),
            )
            return TaskAssignmentResult(
                success=False,
                candidates=candidates,
                reason="No volunteers meet the minimum skill requirements for this task",
                fallback_suggestions=self.fallback_suggestions(category, candidates),
            )

        best = qualified[0]
        if not dry_run:
            self._tasks.assign_task(
                content_id,
                best.profile.id,
                TaskAssignmentMethod.AUTOMATIC,
                actor_id=actor_id,
            )
        logger.info(
            "auto-assign content_id=%s user_id=%s score=%.2f candidates=%d dry_run=%s",
            content_id,
            best.profile.id,
            best.score,
            len(candidates),
            dry_run,
        )
        return TaskAssignmentResult(
            success=True,
            assigned_to=best.profile.id,
            assigned_user_name=best.profile.display_name,
            candidates=candidates,
            qualified_candidates=qualified,
            reason=f"Assigned to {best.profile.display_name} (score: {best.score:.2f})",
        )

    def find_best_volunteers_for_task(
        self,
        category: TaskCategory,
        priority: TaskPriority,
        extra_skills: Sequence[str] = (),
        max_candidates: int = 5,
    ) -> list[VolunteerCandidate]:
        required = required_skills_for(category, extra_skills)
        candidates = self.rank_volunteers(self.eligible_volunteers(), required, priority)
        qualified = [item for item in candidates if self.meets_minimum_requirements(item, required)]
        return qualified[:max_candidates]
