"""Page view models returned by guarded page routes."""

from pydantic import BaseModel

from filetrail.schemas.auth import Identity, SessionState
from filetrail.schemas.notice import Notice


class PageView(BaseModel):
    page: str
    identity: Identity
    notices: list[Notice]


class LoginView(BaseModel):
    state: SessionState
    next: str | None = None
    notices: list[Notice]
