"""Profile directory stored in a Firestore collection."""

from __future__ import annotations

import asyncio
from typing import Any

from filetrail.adapters.auth.firebase_auth import load_firebase_admin
from filetrail.adapters.profiles.base import ProfileDirectory
from filetrail.schemas.profile import Profile


class FirestoreProfileDirectory(ProfileDirectory):
    """One document per user id in ``collection``; fields mirror :class:`Profile`."""

    def __init__(self, project_id: str | None, collection: str = "profiles") -> None:
        self._project_id = project_id
        self._collection = collection

    async def get_profile(self, user_id: str) -> Profile | None:
        document = self._client().collection(self._collection).document(user_id)
        snapshot = await asyncio.to_thread(document.get)
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        return Profile.model_validate({**data, "user_id": user_id})

    async def save_profile(self, profile: Profile) -> Profile:
        document = self._client().collection(self._collection).document(profile.user_id)
        await asyncio.to_thread(document.set, profile.model_dump(mode="json", exclude={"user_id"}))
        return profile

    def _client(self) -> Any:
        load_firebase_admin(self._project_id)
        from firebase_admin import firestore

        return firestore.client()


__all__ = ["FirestoreProfileDirectory"]
