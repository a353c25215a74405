"""Helpers for the namespaced ``namespace:value`` tags on volunteer profiles.

All functions are pure: they read ``profile.tags`` and return new values
without touching the profile.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar

from taskboard.domain.models import Availability

TAG_PATTERN = re.compile(r"^[a-z]+:[a-z0-9_-]+$")

AVAILABILITY_RANK: dict[Availability, int] = {
    Availability.REGULAR: 3,
    Availability.OCCASIONAL: 2,
    Availability.ON_CALL: 1,
}

DEFAULT_PREFERRED_AVAILABILITY: tuple[Availability, ...] = (
    Availability.REGULAR,
    Availability.OCCASIONAL,
)


class Tagged(Protocol):
    tags: list[str]


class TaggedAvailable(Tagged, Protocol):
    availability: Availability


T = TypeVar("T", bound=TaggedAvailable)


def get_tags_by_namespace(profile: Tagged, namespace: str) -> list[str]:
    prefix = f"{namespace}:"
    return [tag[len(prefix):] for tag in profile.tags if tag.startswith(prefix)]


def has_tag(profile: Tagged, tag: str) -> bool:
    """Exact match for ``namespace:value``; a bare value matches any namespace."""
    if ":" in tag:
        return tag in profile.tags
    return any(":" in item and item.partition(":")[2] == tag for item in profile.tags)


def add_tag(profile: Tagged, tag: str) -> list[str]:
    if tag in profile.tags:
        return list(profile.tags)
    return [*profile.tags, tag]


def remove_tag(profile: Tagged, tag: str) -> list[str]:
    return [item for item in profile.tags if item != tag]


def is_valid_tag(tag: str) -> bool:
    return TAG_PATTERN.fullmatch(tag) is not None


def get_namespaces(profile: Tagged) -> list[str]:
    namespaces: list[str] = []
    for tag in profile.tags:
        if not is_valid_tag(tag):
            continue
        namespace = tag.partition(":")[0]
        if namespace not in namespaces:
            namespaces.append(namespace)
    return namespaces


def filter_by_availability(users: Iterable[T], availability: Availability) -> list[T]:
    return [user for user in users if user.availability == availability]


def get_users_with_tags(users: Iterable[T], required_tags: Sequence[str]) -> list[T]:
    return [user for user in users if all(has_tag(user, tag) for tag in required_tags)]


def get_available_users(
    users: Iterable[T],
    required_tags: Sequence[str],
    preferred_availability: Sequence[Availability] = DEFAULT_PREFERRED_AVAILABILITY,
) -> list[T]:
    matches = [
        user
        for user in get_users_with_tags(users, required_tags)
        if user.availability in preferred_availability
    ]
    return sorted(matches, key=lambda user: AVAILABILITY_RANK.get(user.availability, 0), reverse=True)
