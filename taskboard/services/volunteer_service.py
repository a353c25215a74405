from __future__ import annotations

import logging
from collections.abc import Sequence

from taskboard.domain import tags
from taskboard.domain.models import Availability, VolunteerProfile, VolunteerProfileUpsert
from taskboard.infra.stores import ProfileStore, SqlProfileStore
from taskboard.services.task_service import NotFoundError

logger = logging.getLogger(__name__)


class InvalidTagError(ValueError):
    pass


class VolunteerService:
    def __init__(self, profile_store: ProfileStore | None = None) -> None:
        self._profiles = profile_store if profile_store is not None else SqlProfileStore()

    def _get_profile(self, user_id: str) -> VolunteerProfile:
        profile = self._profiles.get_profile(user_id)
        if profile is None:
            raise NotFoundError(f"User profile not found for {user_id}")
        return profile

    @staticmethod
    def _validate_tags(values: Sequence[str]) -> None:
        invalid = [item for item in values if not tags.is_valid_tag(item)]
        if invalid:
            raise InvalidTagError(f"invalid tag(s): {', '.join(invalid)}")

    def get_profile(self, user_id: str) -> VolunteerProfile:
        return self._get_profile(user_id)

    def list_profiles(self) -> list[VolunteerProfile]:
        return self._profiles.list_profiles()

    def upsert_profile(self, payload: VolunteerProfileUpsert) -> VolunteerProfile:
        self._validate_tags(payload.tags)
        existing = self._profiles.get_profile(payload.id) if payload.id else None
        preferences = dict(existing.preferences) if existing is not None else {}
        preferences["task_assignments"] = payload.task_assignments

        profile = VolunteerProfile(
            display_name=payload.display_name,
            email=payload.email,
            role=payload.role,
            tags=list(dict.fromkeys(payload.tags)),
            availability=payload.availability,
            preferences=preferences,
            is_approved=payload.is_approved,
        )
        if payload.id:
            profile.id = payload.id
        if existing is not None:
            profile.created_at = existing.created_at

        saved = self._profiles.save_profile(profile)
        logger.info("volunteer profile saved user_id=%s created=%s", saved.id, existing is None)
        return saved

    def add_tag(self, user_id: str, tag: str) -> VolunteerProfile:
        self._validate_tags([tag])
        profile = self._get_profile(user_id)
        profile.tags = tags.add_tag(profile, tag)
        return self._profiles.save_profile(profile)

    def remove_tag(self, user_id: str, tag: str) -> VolunteerProfile:
        profile = self._get_profile(user_id)
        profile.tags = tags.remove_tag(profile, tag)
        return self._profiles.save_profile(profile)

    def available_volunteers(
        self,
        required_tags: Sequence[str],
        availability: Sequence[Availability] | None = None,
    ) -> list[VolunteerProfile]:
        preferred = tuple(availability) if availability else tags.DEFAULT_PREFERRED_AVAILABILITY
        return tags.get_available_users(self._profiles.list_profiles(), required_tags, preferred)
