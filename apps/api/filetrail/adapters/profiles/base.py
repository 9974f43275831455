"""Profile directory interface."""

from abc import ABC, abstractmethod

from filetrail.schemas.profile import Profile


class ProfileDirectory(ABC):
    """Secondary profile records keyed by provider user id."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> Profile | None:
        """Return the profile or None when no record exists."""

    @abstractmethod
    async def save_profile(self, profile: Profile) -> Profile:
        """Insert or replace a profile record."""


__all__ = ["ProfileDirectory"]
