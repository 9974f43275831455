"""Authentication and session schemas."""

from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"


class SessionState(str, Enum):
    ANONYMOUS = "ANONYMOUS"
    AUTHENTICATING = "AUTHENTICATING"
    AUTHENTICATED = "AUTHENTICATED"
    EXPIRED = "EXPIRED"


class Identity(BaseModel, frozen=True):
    """Application-level principal; sessions hold a snapshot, never a live reference."""

    id: str = Field(min_length=1)
    display_name: str
    email: str
    public_key: str | None = None
    role: Role = Role.USER


class Session(BaseModel, frozen=True):
    token: str = Field(min_length=1)
    identity: Identity
    expires_at: int  # epoch milliseconds

    def is_valid(self, now_ms: int) -> bool:
        return now_ms < self.expires_at


class ProviderUser(BaseModel, frozen=True):
    """Identity-provider record normalized by the auth adapters."""

    user_id: str = Field(min_length=1)
    email: str
    display_name: str = ""
    public_key: str | None = None


class ProviderSession(BaseModel, frozen=True):
    token: str = Field(min_length=1)
    user: ProviderUser
    expires_at: int  # epoch milliseconds


# Request bodies are deliberately lax: field rules are enforced by the gateway so
# they surface as ValidationError before any provider call.
class LoginRequest(BaseModel):
    identifier: str = ""
    secret: str = ""
    wants_elevated: bool = False
    next: str | None = None


class RegisterRequest(BaseModel):
    display_name: str = ""
    identifier: str = ""
    secret: str = ""
    confirm_secret: str | None = None


class UpdateProfileRequest(BaseModel):
    display_name: str | None = None


class SessionResponse(BaseModel):
    state: SessionState
    identity: Identity | None = None
    expires_at: int | None = None


class LoginResponse(BaseModel):
    identity: Identity
    expires_at: int
    redirect_to: str
