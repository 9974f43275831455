"""Identity provider adapters."""

from .base import (
    IdentityExistsError,
    IdentityProvider,
    InvalidCredentialsError,
    InvalidTokenError,
    ProviderError,
    ProviderUnavailableError,
)
from .firebase_auth import FirebaseIdentityProvider
from .mock_auth import MockIdentityProvider

__all__ = [
    "FirebaseIdentityProvider",
    "IdentityExistsError",
    "IdentityProvider",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "MockIdentityProvider",
    "ProviderError",
    "ProviderUnavailableError",
]
