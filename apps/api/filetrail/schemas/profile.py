"""Profile schemas."""

from datetime import datetime

from pydantic import BaseModel

from filetrail.schemas.auth import Role


class Profile(BaseModel):
    """Secondary record keyed by the provider user id; ``role`` is the only elevation signal."""

    user_id: str
    username: str
    role: Role = Role.USER
    created_at: datetime


class UpdateRoleRequest(BaseModel):
    role: Role
