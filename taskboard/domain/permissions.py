from __future__ import annotations

from typing import Any

from taskboard.domain.models import VolunteerRole

PERM_WILDCARD = "*"
PERM_TASKS_READ = "tasks.read"
PERM_TASKS_WRITE = "tasks.write"
PERM_TASKS_ADMIN = "tasks.admin"
PERM_CONTENT_WRITE = "content.write"
PERM_VOLUNTEERS_WRITE = "volunteers.write"

ELEVATED_ROLES: frozenset[VolunteerRole] = frozenset(
    {VolunteerRole.MODERATOR, VolunteerRole.ADMINISTRATOR}
)

ROLE_PERMISSIONS: dict[VolunteerRole, list[str]] = {
    VolunteerRole.MEMBER: [PERM_TASKS_READ],
    VolunteerRole.CONTRIBUTOR: [PERM_TASKS_READ, PERM_TASKS_WRITE],
    VolunteerRole.CANVA_CONTRIBUTOR: [PERM_TASKS_READ, PERM_TASKS_WRITE],
    VolunteerRole.EDITOR: [PERM_TASKS_READ, PERM_TASKS_WRITE, PERM_CONTENT_WRITE],
    VolunteerRole.MODERATOR: [
        PERM_TASKS_READ,
        PERM_TASKS_WRITE,
        PERM_CONTENT_WRITE,
        PERM_TASKS_ADMIN,
        PERM_VOLUNTEERS_WRITE,
    ],
    VolunteerRole.ADMINISTRATOR: [PERM_WILDCARD],
}


def permissions_for_role(role: VolunteerRole) -> list[str]:
    return list(ROLE_PERMISSIONS.get(role, [PERM_TASKS_READ]))


def is_elevated_role(role: VolunteerRole | str | None) -> bool:
    return role in ELEVATED_ROLES


def has_permission(claims: dict[str, Any], permission: str) -> bool:
    permissions = claims.get("permissions", [])
    if not isinstance(permissions, list):
        return False
    return permission in permissions or PERM_WILDCARD in permissions
