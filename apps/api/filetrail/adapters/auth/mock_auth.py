"""Mock identity provider for local development and tests."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import os
import time
from dataclasses import dataclass
from typing import Literal
from uuid import uuid4

from filetrail.adapters.auth.base import (
    IdentityExistsError,
    IdentityProvider,
    InvalidCredentialsError,
    InvalidTokenError,
    ProviderError,
)
from filetrail.schemas.auth import ProviderSession, ProviderUser

_HASH_ITERATIONS = 10_000

MockOperation = Literal["sign_in", "sign_up", "sign_out", "get_user", "update_user"]


@dataclass(slots=True)
class _MockAccount:
    user_id: str
    email: str
    display_name: str
    public_key: str | None
    secret_salt: str
    secret_hash: str


class MockIdentityProvider(IdentityProvider):
    """Keeps accounts and tokens in memory.

    Tokens have the form ``mock:<user_id>:<nonce>``. ``latency`` delays every call,
    and :meth:`fail_next` injects a one-shot error for a named operation.
    """

    def __init__(self, *, token_ttl_seconds: int = 3600, latency: float = 0.0) -> None:
        self._token_ttl_seconds = token_ttl_seconds
        self.latency = latency
        self._accounts: dict[str, _MockAccount] = {}
        self._tokens: dict[str, tuple[str, int]] = {}
        self._failures: dict[str, ProviderError] = {}
        self.calls: list[str] = []

    def fail_next(self, operation: MockOperation, error: ProviderError) -> None:
        self._failures[operation] = error

    def active_tokens(self) -> set[str]:
        return set(self._tokens)

    async def sign_in(self, identifier: str, secret: str) -> ProviderSession:
        await self._enter("sign_in")
        account = self._accounts.get(identifier.strip().casefold())
        if account is None or not _verify_secret(secret, account.secret_salt, account.secret_hash):
            raise InvalidCredentialsError("Invalid login credentials")

        token = f"mock:{account.user_id}:{uuid4().hex}"
        expires_at = int(time.time() * 1000) + self._token_ttl_seconds * 1000
        self._tokens[token] = (account.user_id, expires_at)
        return ProviderSession(token=token, user=_to_user(account), expires_at=expires_at)

    async def sign_up(
        self,
        display_name: str,
        identifier: str,
        secret: str,
        public_key: str | None = None,
    ) -> ProviderUser:
        await self._enter("sign_up")
        return self.register_account(display_name, identifier, secret, public_key)

    def register_account(
        self,
        display_name: str,
        identifier: str,
        secret: str,
        public_key: str | None = None,
    ) -> ProviderUser:
        """Create an account synchronously; used by :meth:`sign_up` and for seeding."""
        key = identifier.strip().casefold()
        if key in self._accounts:
            raise IdentityExistsError("User already registered")

        salt = os.urandom(16).hex()
        account = _MockAccount(
            user_id=str(uuid4()),
            email=identifier.strip(),
            display_name=display_name,
            public_key=public_key,
            secret_salt=salt,
            secret_hash=_hash_secret(secret, salt),
        )
        self._accounts[key] = account
        return _to_user(account)

    async def sign_out(self, token: str) -> None:
        await self._enter("sign_out")
        self._tokens.pop(token, None)

    async def get_user(self, token: str) -> ProviderUser:
        await self._enter("get_user")
        return _to_user(self._account_for_token(token))

    async def update_user(self, token: str, *, display_name: str) -> ProviderUser:
        await self._enter("update_user")
        account = self._account_for_token(token)
        account.display_name = display_name
        return _to_user(account)

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if self.latency:
            await asyncio.sleep(self.latency)
        failure = self._failures.pop(operation, None)
        if failure is not None:
            raise failure

    def _account_for_token(self, token: str) -> _MockAccount:
        entry = self._tokens.get(token)
        if entry is None:
            raise InvalidTokenError("Invalid bearer token")
        user_id, expires_at = entry
        if int(time.time() * 1000) >= expires_at:
            self._tokens.pop(token, None)
            raise InvalidTokenError("Bearer token expired")
        for account in self._accounts.values():
            if account.user_id == user_id:
                return account
        raise InvalidTokenError("Bearer token missing user identity")


def _hash_secret(secret: str, salt_hex: str) -> str:
    return hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), bytes.fromhex(salt_hex), _HASH_ITERATIONS).hex()


def _verify_secret(secret: str, salt_hex: str, expected_hash: str) -> bool:
    return hmac.compare_digest(_hash_secret(secret, salt_hex), expected_hash)


def _to_user(account: _MockAccount) -> ProviderUser:
    return ProviderUser(
        user_id=account.user_id,
        email=account.email,
        display_name=account.display_name,
        public_key=account.public_key,
    )


__all__ = ["MockIdentityProvider"]
