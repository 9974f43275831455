"""Identity provider interfaces."""

from abc import ABC, abstractmethod

from filetrail.schemas.auth import ProviderSession, ProviderUser


class ProviderError(Exception):
    """Base class for failures reported by an identity provider adapter."""


class InvalidCredentialsError(ProviderError):
    """The identifier/secret pair was rejected."""


class IdentityExistsError(ProviderError):
    """Registration against an identifier that is already taken."""


class InvalidTokenError(ProviderError):
    """The bearer token is unknown, expired or revoked."""


class ProviderUnavailableError(ProviderError):
    """Network or provider failure unrelated to the request's content."""


class IdentityProvider(ABC):
    """Provider-neutral credential exchange and account management."""

    @abstractmethod
    async def sign_in(self, identifier: str, secret: str) -> ProviderSession:
        """Exchange credentials for a provider session."""

    @abstractmethod
    async def sign_up(
        self,
        display_name: str,
        identifier: str,
        secret: str,
        public_key: str | None = None,
    ) -> ProviderUser:
        """Register a new account."""

    @abstractmethod
    async def sign_out(self, token: str) -> None:
        """Invalidate the provider session behind a token."""

    @abstractmethod
    async def get_user(self, token: str) -> ProviderUser:
        """Revalidate a token and return its account."""

    @abstractmethod
    async def update_user(self, token: str, *, display_name: str) -> ProviderUser:
        """Apply a profile change to the account behind a token."""


__all__ = [
    "IdentityExistsError",
    "IdentityProvider",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "ProviderError",
    "ProviderUnavailableError",
]
