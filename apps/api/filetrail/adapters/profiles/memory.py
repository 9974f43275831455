"""Profile directory backed by the in-memory store."""

from filetrail.adapters.profiles.base import ProfileDirectory
from filetrail.repositories.memory import InMemoryStore, ProfileRecord
from filetrail.schemas.profile import Profile


class MemoryProfileDirectory(ProfileDirectory):
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_profile(self, user_id: str) -> Profile | None:
        record = self._store.get_profile(user_id)
        return _to_profile(record) if record is not None else None

    async def save_profile(self, profile: Profile) -> Profile:
        record = self._store.save_profile(
            user_id=profile.user_id,
            username=profile.username,
            role=profile.role,
        )
        return _to_profile(record)


def _to_profile(record: ProfileRecord) -> Profile:
    return Profile(
        user_id=record.user_id,
        username=record.username,
        role=record.role,
        created_at=record.created_at,
    )


__all__ = ["MemoryProfileDirectory"]
