"""Profile/role resolution."""

import logging

from filetrail.adapters.profiles.base import ProfileDirectory
from filetrail.core.logging import safe_log_identifier
from filetrail.errors import not_found
from filetrail.schemas.auth import Identity, ProviderUser, Role
from filetrail.schemas.profile import Profile

logger = logging.getLogger(__name__)


class ProfileRoleResolver:
    """Turn a provider account into an application Identity.

    The profile record's ``role`` column is the only elevation signal. Any doubt
    (lookup failure, missing record) resolves to ``Role.USER``.
    """

    def __init__(self, profiles: ProfileDirectory) -> None:
        self._profiles = profiles

    async def resolve(self, user: ProviderUser) -> Identity:
        return Identity(
            id=user.user_id,
            display_name=user.display_name or user.email,
            email=user.email,
            public_key=user.public_key,
            role=await self.resolve_role(user.user_id),
        )

    async def resolve_role(self, user_id: str) -> Role:
        safe_user_id = safe_log_identifier(user_id, prefix="uid")
        try:
            profile = await self._profiles.get_profile(user_id)
        except Exception:
            logger.warning("role.lookup_failed user_id=%s fallback=user", safe_user_id, exc_info=True)
            return Role.USER

        if profile is None:
            logger.info("role.profile_missing user_id=%s fallback=user", safe_user_id)
            return Role.USER
        return Role.ADMIN if profile.role is Role.ADMIN else Role.USER

    async def assign_role(self, user_id: str, role: Role) -> Profile:
        profile = await self._profiles.get_profile(user_id)
        if profile is None:
            raise not_found()
        updated = await self._profiles.save_profile(profile.model_copy(update={"role": role}))
        logger.info(
            "role.assigned user_id=%s role=%s",
            safe_log_identifier(user_id, prefix="uid"),
            role.value,
        )
        return updated
