"""File API schemas."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class FilePermission(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    SHARED = "shared"


class AccessType(str, Enum):
    VIEW = "view"
    DOWNLOAD = "download"
    SHARE = "share"


class FileRecord(BaseModel):
    id: str
    name: str
    owner_id: str
    owner_name: str | None = None
    size: int
    content_type: str
    hash: str
    permission: FilePermission
    shared_with: list[str]
    uploaded_at: datetime


class UpdatePermissionRequest(BaseModel):
    permission: FilePermission
    shared_user_ids: list[str] | None = None


class ShareFileRequest(BaseModel):
    target_user_id: str = Field(min_length=1)


class FileAccessLog(BaseModel):
    id: str
    file_id: str
    file_name: str
    user_id: str
    access_type: AccessType
    occurred_at: datetime
    details: str | None = None


class FileChange(BaseModel):
    sequence: int
    file_id: str
    kind: Literal["created", "updated", "deleted"]
    occurred_at: datetime


class FileChangesPage(BaseModel):
    changes: list[FileChange]
    cursor: int
