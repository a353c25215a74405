from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from taskboard.domain import tags
from taskboard.domain.models import Availability


@dataclass
class _Volunteer:
    name: str
    tags: list[str] = field(default_factory=list)
    availability: Availability = Availability.REGULAR


def test_get_tags_by_namespace_strips_prefix() -> None:
    user = _Volunteer("ana", ["skill:writing", "interest:sports", "skill:editing"])
    assert tags.get_tags_by_namespace(user, "skill") == ["writing", "editing"]
    assert tags.get_tags_by_namespace(user, "language") == []


def test_has_tag_exact_and_bare_value() -> None:
    user = _Volunteer("ana", ["skill:writing", "interest:sports"])
    assert tags.has_tag(user, "skill:writing")
    assert not tags.has_tag(user, "interest:writing")
    assert tags.has_tag(user, "sports")
    assert not tags.has_tag(user, "design")


def test_add_tag_is_idempotent_and_pure() -> None:
    user = _Volunteer("ana", ["skill:writing"])
    once = tags.add_tag(user, "skill:editing")
    twice = tags.add_tag(_Volunteer("ana", once), "skill:editing")
    assert once == ["skill:writing", "skill:editing"]
    assert twice == once
    assert user.tags == ["skill:writing"]


def test_remove_tag_is_idempotent() -> None:
    user = _Volunteer("ana", ["skill:writing", "skill:editing"])
    once = tags.remove_tag(user, "skill:writing")
    assert once == ["skill:editing"]
    assert tags.remove_tag(_Volunteer("ana", once), "skill:writing") == once


@pytest.mark.parametrize(
    ("tag", "valid"),
    [
        ("skill:writing", True),
        ("skill:fact-checking", True),
        ("language:en_gb", True),
        ("skill:web2", True),
        ("Skill:writing", False),
        ("skill:Writing", False),
        ("skill", False),
        ("skill:", False),
        (":writing", False),
        ("skill:writing:extra", False),
        ("skill2:writing", False),
        ("skill:writing\n", False),
    ],
)
def test_is_valid_tag(tag: str, valid: bool) -> None:
    assert tags.is_valid_tag(tag) is valid


def test_get_namespaces_skips_malformed_tags() -> None:
    user = _Volunteer("ana", ["skill:writing", "BAD:tag", "interest:sports", "skill:editing", "nocolon"])
    assert tags.get_namespaces(user) == ["skill", "interest"]


def test_filter_by_availability() -> None:
    users = [
        _Volunteer("ana", availability=Availability.REGULAR),
        _Volunteer("ben", availability=Availability.ON_CALL),
    ]
    assert [item.name for item in tags.filter_by_availability(users, Availability.ON_CALL)] == ["ben"]


def test_get_users_with_tags_requires_all() -> None:
    users = [
        _Volunteer("ana", ["skill:writing", "skill:editing"]),
        _Volunteer("ben", ["skill:writing"]),
    ]
    matches = tags.get_users_with_tags(users, ["skill:writing", "editing"])
    assert [item.name for item in matches] == ["ana"]


def test_get_available_users_orders_by_availability() -> None:
    users = [
        _Volunteer("occasional", ["skill:design"], Availability.OCCASIONAL),
        _Volunteer("on-call", ["skill:design"], Availability.ON_CALL),
        _Volunteer("regular", ["skill:design"], Availability.REGULAR),
        _Volunteer("no-skill", [], Availability.REGULAR),
    ]
    default = tags.get_available_users(users, ["skill:design"])
    assert [item.name for item in default] == ["regular", "occasional"]

    everyone = tags.get_available_users(
        users,
        ["skill:design"],
        [Availability.ON_CALL, Availability.OCCASIONAL, Availability.REGULAR],
    )
    assert [item.name for item in everyone] == ["regular", "occasional", "on-call"]
