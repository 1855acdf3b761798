from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from suite_access.models.profile import UserProfile
from suite_access.services.entitlements import TrialStatusDelta


class ProfileRepo(Protocol):
    def get(self, user_id: str) -> UserProfile | None: ...
    def put(self, profile: UserProfile) -> None: ...
    def update_trial_fields(self, user_id: str, delta: TrialStatusDelta) -> None: ...


class InMemoryProfileRepo:
    def __init__(self) -> None:
        self._store: dict[str, UserProfile] = {}

    def get(self, user_id: str) -> UserProfile | None:
        return self._store.get(user_id)

    def put(self, profile: UserProfile) -> None:
        self._store[profile.user_id] = profile

    def update_trial_fields(self, user_id: str, delta: TrialStatusDelta) -> None:
        existing = self._store.get(user_id)
        if existing is None:
            raise KeyError(user_id)
        self._store[user_id] = replace(existing, **delta.as_update())
