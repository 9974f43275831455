"""Firebase identity provider and Firestore profile directory tests with fake SDK modules."""

from __future__ import annotations

import json
import sys
import types
import unittest
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import patch

import httpx

from filetrail.adapters.auth import (
    FirebaseIdentityProvider,
    IdentityExistsError,
    InvalidCredentialsError,
    InvalidTokenError,
    ProviderUnavailableError,
)
from filetrail.adapters.profiles import FirestoreProfileDirectory
from filetrail.schemas.auth import Role
from filetrail.schemas.profile import Profile


def _fake_firebase_modules() -> tuple[dict[str, types.ModuleType], SimpleNamespace]:
    fake_admin = types.ModuleType("firebase_admin")
    fake_auth = types.ModuleType("firebase_admin.auth")
    fake_firestore = types.ModuleType("firebase_admin.firestore")
    calls = SimpleNamespace(claims=[], revoked=[], updated=[], documents={})

    fake_admin._apps = []

    def initialize_app(options: dict | None = None) -> object:
        app_handle = object()
        fake_admin._apps.append(app_handle)
        return app_handle

    class EmailAlreadyExistsError(Exception):
        pass

    class UserNotFoundError(Exception):
        pass

    class InvalidIdTokenError(Exception):
        pass

    def verify_id_token(token: str, check_revoked: bool = True) -> dict[str, str]:
        if token == "valid-jwt":
            return {"uid": "firebase-user-1"}
        if token == "orphan-jwt":
            return {"uid": "deleted-user"}
        raise InvalidIdTokenError("invalid token")

    def create_user(*, email: str, password: str, display_name: str) -> SimpleNamespace:
        if email == "taken@example.com":
            raise EmailAlreadyExistsError("exists")
        return SimpleNamespace(uid="firebase-user-2", email=email, display_name=display_name, custom_claims=None)

    def set_custom_user_claims(uid: str, claims: dict) -> None:
        calls.claims.append((uid, claims))

    def revoke_refresh_tokens(uid: str) -> None:
        calls.revoked.append(uid)

    def get_user(uid: str) -> SimpleNamespace:
        if uid != "firebase-user-1":
            raise UserNotFoundError(uid)
        return SimpleNamespace(
            uid=uid,
            email="ada@example.com",
            display_name="Ada",
            custom_claims={"public_key": "04ab"},
        )

    def update_user(uid: str, *, display_name: str) -> SimpleNamespace:
        calls.updated.append((uid, display_name))
        return SimpleNamespace(uid=uid, email="ada@example.com", display_name=display_name, custom_claims=None)

    class _Snapshot:
        def __init__(self, data: dict | None) -> None:
            self.exists = data is not None
            self._data = data

        def to_dict(self) -> dict | None:
            return dict(self._data) if self._data is not None else None

    class _Document:
        def __init__(self, key: tuple[str, str]) -> None:
            self._key = key

        def get(self) -> _Snapshot:
            return _Snapshot(calls.documents.get(self._key))

        def set(self, data: dict) -> None:
            calls.documents[self._key] = dict(data)

    class _Collection:
        def __init__(self, name: str) -> None:
            self._name = name

        def document(self, document_id: str) -> _Document:
            return _Document((self._name, document_id))

    def client() -> SimpleNamespace:
        return SimpleNamespace(collection=_Collection)

    fake_admin.initialize_app = initialize_app
    fake_auth.EmailAlreadyExistsError = EmailAlreadyExistsError
    fake_auth.UserNotFoundError = UserNotFoundError
    fake_auth.InvalidIdTokenError = InvalidIdTokenError
    fake_auth.verify_id_token = verify_id_token
    fake_auth.create_user = create_user
    fake_auth.set_custom_user_claims = set_custom_user_claims
    fake_auth.revoke_refresh_tokens = revoke_refresh_tokens
    fake_auth.get_user = get_user
    fake_auth.update_user = update_user
    fake_firestore.client = client
    fake_admin.auth = fake_auth
    fake_admin.firestore = fake_firestore

    modules = {
        "firebase_admin": fake_admin,
        "firebase_admin.auth": fake_auth,
        "firebase_admin.firestore": fake_firestore,
    }
    return modules, calls


def _sign_in_handler(request: httpx.Request) -> httpx.Response:
    if request.url.params.get("key") != "api-key":
        return httpx.Response(400, json={"error": {"message": "API_KEY_INVALID"}})
    payload = json.loads(request.content)
    if payload["password"] == "secret-123":
        return httpx.Response(
            200,
            json={
                "idToken": "valid-jwt",
                "localId": "firebase-user-1",
                "email": payload["email"],
                "displayName": "Ada",
                "expiresIn": "3600",
            },
        )
    if payload["password"] == "throttled":
        return httpx.Response(400, json={"error": {"message": "TOO_MANY_ATTEMPTS_TRY_LATER : slow down"}})
    return httpx.Response(400, json={"error": {"message": "INVALID_LOGIN_CREDENTIALS"}})


class FirebaseSignInTests(unittest.IsolatedAsyncioTestCase):
    def _provider(self, handler=_sign_in_handler, api_key: str | None = "api-key") -> FirebaseIdentityProvider:
        return FirebaseIdentityProvider("project-a", api_key, transport=httpx.MockTransport(handler))

    async def test_sign_in_normalizes_session(self) -> None:
        session = await self._provider().sign_in("ada@example.com", "secret-123")

        self.assertEqual(session.token, "valid-jwt")
        self.assertEqual(session.user.user_id, "firebase-user-1")
        self.assertEqual(session.user.display_name, "Ada")
        self.assertGreater(session.expires_at, 0)

    async def test_rejected_credentials_map_to_invalid_credentials(self) -> None:
        with self.assertRaises(InvalidCredentialsError):
            await self._provider().sign_in("ada@example.com", "wrong")

    async def test_other_provider_errors_are_unavailable(self) -> None:
        with self.assertRaises(ProviderUnavailableError):
            await self._provider().sign_in("ada@example.com", "throttled")

    async def test_network_failure_is_unavailable(self) -> None:
        def broken(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with self.assertRaises(ProviderUnavailableError):
            await self._provider(broken).sign_in("ada@example.com", "secret-123")

    async def test_missing_api_key_is_unavailable(self) -> None:
        with self.assertRaises(ProviderUnavailableError):
            await self._provider(api_key=None).sign_in("ada@example.com", "secret-123")


class FirebaseAccountTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.modules, self.calls = _fake_firebase_modules()
        self.patcher = patch.dict(sys.modules, self.modules)
        self.patcher.start()
        self.addCleanup(self.patcher.stop)
        self.provider = FirebaseIdentityProvider("project-a", "api-key")

    async def test_sign_up_sets_public_key_claim(self) -> None:
        user = await self.provider.sign_up("Bob", "bob@example.com", "secret-123", public_key="04cd")

        self.assertEqual(user.user_id, "firebase-user-2")
        self.assertEqual(user.public_key, "04cd")
        self.assertEqual(self.calls.claims, [("firebase-user-2", {"public_key": "04cd"})])

    async def test_sign_up_existing_email_is_identity_exists(self) -> None:
        with self.assertRaises(IdentityExistsError):
            await self.provider.sign_up("Bob", "taken@example.com", "secret-123")

    async def test_get_user_reads_public_key_claim(self) -> None:
        user = await self.provider.get_user("valid-jwt")

        self.assertEqual(user.email, "ada@example.com")
        self.assertEqual(user.public_key, "04ab")

    async def test_invalid_or_orphaned_tokens_are_rejected(self) -> None:
        for token in ("garbage", "orphan-jwt"):
            with self.subTest(token=token):
                with self.assertRaises(InvalidTokenError):
                    await self.provider.get_user(token)

    async def test_sign_out_revokes_refresh_tokens(self) -> None:
        await self.provider.sign_out("valid-jwt")

        self.assertEqual(self.calls.revoked, ["firebase-user-1"])

    async def test_update_user_changes_display_name(self) -> None:
        user = await self.provider.update_user("valid-jwt", display_name="Grace")

        self.assertEqual(user.display_name, "Grace")
        self.assertEqual(self.calls.updated, [("firebase-user-1", "Grace")])


class FirestoreProfileDirectoryTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.modules, self.calls = _fake_firebase_modules()
        self.patcher = patch.dict(sys.modules, self.modules)
        self.patcher.start()
        self.addCleanup(self.patcher.stop)
        self.directory = FirestoreProfileDirectory("project-a")

    async def test_missing_document_is_none(self) -> None:
        self.assertIsNone(await self.directory.get_profile("nobody"))

    async def test_saved_profile_reads_back(self) -> None:
        profile = Profile(
            user_id="user-1",
            username="Root",
            role=Role.ADMIN,
            created_at=datetime(2026, 1, 1, tzinfo=UTC),
        )

        await self.directory.save_profile(profile)
        loaded = await self.directory.get_profile("user-1")

        self.assertEqual(loaded, profile)
        stored = self.calls.documents[("profiles", "user-1")]
        self.assertNotIn("user_id", stored)
        self.assertEqual(stored["role"], "admin")


if __name__ == "__main__":
    unittest.main()
