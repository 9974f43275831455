"""Firebase Auth identity provider adapter."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx

from filetrail.adapters.auth.base import (
    IdentityExistsError,
    IdentityProvider,
    InvalidCredentialsError,
    InvalidTokenError,
    ProviderUnavailableError,
)
from filetrail.schemas.auth import ProviderSession, ProviderUser

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
_CREDENTIAL_ERROR_CODES = frozenset({"EMAIL_NOT_FOUND", "INVALID_PASSWORD", "INVALID_LOGIN_CREDENTIALS", "USER_DISABLED"})


def load_firebase_admin(project_id: str | None) -> Any:
    """Import firebase_admin and initialize the default app once."""
    try:
        import firebase_admin
    except ImportError as exc:  # pragma: no cover - depends on optional package
        raise ProviderUnavailableError("Firebase admin SDK is unavailable") from exc

    if not firebase_admin._apps:
        options = {"projectId": project_id} if project_id else None
        firebase_admin.initialize_app(options=options)
    return firebase_admin


class FirebaseIdentityProvider(IdentityProvider):
    """Password sign-in through the Identity Toolkit REST API; account management through the admin SDK."""

    def __init__(
        self,
        project_id: str | None,
        api_key: str | None,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._project_id = project_id
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def sign_in(self, identifier: str, secret: str) -> ProviderSession:
        if not self._api_key:
            raise ProviderUnavailableError("Firebase web API key is not configured")

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.post(
                    SIGN_IN_URL,
                    params={"key": self._api_key},
                    json={"email": identifier, "password": secret, "returnSecureToken": True},
                )
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError("Firebase sign-in request failed") from exc

        if response.status_code != 200:
            error_code = _error_code(response)
            if error_code in _CREDENTIAL_ERROR_CODES:
                raise InvalidCredentialsError("Invalid login credentials")
            raise ProviderUnavailableError(f"Firebase sign-in failed: {error_code or response.status_code}")

        body = response.json()
        token = str(body.get("idToken") or "")
        user_id = str(body.get("localId") or "").strip()
        if not token or not user_id:
            raise ProviderUnavailableError("Firebase sign-in response missing identity")

        expires_in = int(body.get("expiresIn") or 3600)
        user = ProviderUser(
            user_id=user_id,
            email=str(body.get("email") or identifier),
            display_name=str(body.get("displayName") or ""),
        )
        return ProviderSession(
            token=token,
            user=user,
            expires_at=int(time.time() * 1000) + expires_in * 1000,
        )

    async def sign_up(
        self,
        display_name: str,
        identifier: str,
        secret: str,
        public_key: str | None = None,
    ) -> ProviderUser:
        firebase_auth = self._auth()
        try:
            record = await asyncio.to_thread(
                firebase_auth.create_user,
                email=identifier,
                password=secret,
                display_name=display_name,
            )
        except firebase_auth.EmailAlreadyExistsError as exc:
            raise IdentityExistsError("User already registered") from exc
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise ProviderUnavailableError("Firebase user creation failed") from exc

        if public_key:
            try:
                await asyncio.to_thread(firebase_auth.set_custom_user_claims, record.uid, {"public_key": public_key})
            except Exception as exc:  # pragma: no cover - provider exception surface
                raise ProviderUnavailableError("Firebase claim update failed") from exc

        return _to_user(record, public_key=public_key)

    async def sign_out(self, token: str) -> None:
        firebase_auth = self._auth()
        user_id = await self._verify(firebase_auth, token)
        try:
            await asyncio.to_thread(firebase_auth.revoke_refresh_tokens, user_id)
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise ProviderUnavailableError("Firebase token revocation failed") from exc

    async def get_user(self, token: str) -> ProviderUser:
        firebase_auth = self._auth()
        user_id = await self._verify(firebase_auth, token)
        try:
            record = await asyncio.to_thread(firebase_auth.get_user, user_id)
        except firebase_auth.UserNotFoundError as exc:
            raise InvalidTokenError("Bearer token missing user identity") from exc
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise ProviderUnavailableError("Firebase user lookup failed") from exc
        return _to_user(record)

    async def update_user(self, token: str, *, display_name: str) -> ProviderUser:
        firebase_auth = self._auth()
        user_id = await self._verify(firebase_auth, token)
        try:
            record = await asyncio.to_thread(firebase_auth.update_user, user_id, display_name=display_name)
        except firebase_auth.UserNotFoundError as exc:
            raise InvalidTokenError("Bearer token missing user identity") from exc
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise ProviderUnavailableError("Firebase user update failed") from exc
        return _to_user(record)

    def _auth(self) -> Any:
        load_firebase_admin(self._project_id)
        from firebase_admin import auth as firebase_auth

        return firebase_auth

    async def _verify(self, firebase_auth: Any, token: str) -> str:
        try:
            decoded = await asyncio.to_thread(firebase_auth.verify_id_token, token, check_revoked=True)
        except (ValueError, firebase_auth.InvalidIdTokenError) as exc:
            raise InvalidTokenError("Invalid bearer token") from exc
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise ProviderUnavailableError("Firebase token verification failed") from exc

        user_id = str(decoded.get("uid") or decoded.get("sub") or "").strip()
        if not user_id:
            raise InvalidTokenError("Bearer token missing user identity")
        return user_id


def _error_code(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    error = body.get("error") if isinstance(body, dict) else None
    message = str(error.get("message", "")) if isinstance(error, dict) else ""
    # Messages look like "TOO_MANY_ATTEMPTS_TRY_LATER : Access to this account ..."
    return message.split(":", 1)[0].strip()


def _to_user(record: Any, *, public_key: str | None = None) -> ProviderUser:
    claims = getattr(record, "custom_claims", None) or {}
    return ProviderUser(
        user_id=str(record.uid),
        email=str(getattr(record, "email", None) or ""),
        display_name=str(getattr(record, "display_name", None) or ""),
        public_key=public_key or claims.get("public_key"),
    )


__all__ = ["FirebaseIdentityProvider", "load_firebase_admin"]
