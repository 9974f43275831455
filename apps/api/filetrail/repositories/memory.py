"""In-memory repositories used by the API scaffold and tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal
from uuid import uuid4

from filetrail.schemas.auth import Role
from filetrail.schemas.file import AccessType, FilePermission


@dataclass(slots=True)
class ProfileRecord:
    user_id: str
    username: str
    role: Role
    created_at: datetime


@dataclass(slots=True)
class FileRecordRow:
    id: str
    name: str
    owner_id: str
    size: int
    content_type: str
    hash: str
    storage_path: str
    permission: FilePermission
    shared_with: list[str]
    uploaded_at: datetime


@dataclass(slots=True)
class AccessLogRecord:
    id: str
    file_id: str
    file_name: str
    user_id: str
    access_type: AccessType
    occurred_at: datetime
    details: str | None = None


@dataclass(slots=True)
class FileChangeRecord:
    sequence: int
    file_id: str
    kind: Literal["created", "updated", "deleted"]
    occurred_at: datetime


@dataclass(slots=True)
class InMemoryStore:
    """Simple, deterministic persistence layer standing in for the hosted database and object store."""

    profiles: dict[str, ProfileRecord] = field(default_factory=dict)
    files: dict[str, FileRecordRow] = field(default_factory=dict)
    blobs: dict[str, bytes] = field(default_factory=dict)
    access_logs: list[AccessLogRecord] = field(default_factory=list)
    file_changes: list[FileChangeRecord] = field(default_factory=list)
    # One-shot failpoints so tests can exercise provider-side failures.
    profile_lookup_failure_message: str | None = None
    record_insert_failure_message: str | None = None

    def save_profile(self, *, user_id: str, username: str, role: Role) -> ProfileRecord:
        existing = self.profiles.get(user_id)
        profile = ProfileRecord(
            user_id=user_id,
            username=username,
            role=role,
            created_at=existing.created_at if existing is not None else datetime.now(UTC),
        )
        self.profiles[user_id] = profile
        return profile

    def get_profile(self, user_id: str) -> ProfileRecord | None:
        if self.profile_lookup_failure_message is not None:
            message = self.profile_lookup_failure_message
            self.profile_lookup_failure_message = None
            raise RuntimeError(message)
        return self.profiles.get(user_id)

    def create_file(
        self,
        *,
        owner_id: str,
        name: str,
        content_type: str,
        data: bytes,
        digest: str,
    ) -> FileRecordRow:
        now = datetime.now(UTC)
        file_id = str(uuid4())
        storage_path = f"{owner_id}/{int(now.timestamp() * 1000)}-{file_id}"
        self.blobs[storage_path] = data

        if self.record_insert_failure_message is not None:
            message = self.record_insert_failure_message
            self.record_insert_failure_message = None
            # The object upload is rolled back when the record insert fails.
            self.blobs.pop(storage_path, None)
            raise RuntimeError(message)

        record = FileRecordRow(
            id=file_id,
            name=name,
            owner_id=owner_id,
            size=len(data),
            content_type=content_type,
            hash=digest,
            storage_path=storage_path,
            permission=FilePermission.PRIVATE,
            shared_with=[],
            uploaded_at=now,
        )
        self.files[record.id] = record
        self._record_change(record.id, "created")
        return record

    def get_file(self, file_id: str) -> FileRecordRow | None:
        return self.files.get(file_id)

    def get_file_for_owner(self, owner_id: str, file_id: str) -> FileRecordRow | None:
        record = self.files.get(file_id)
        if record is None or record.owner_id != owner_id:
            return None
        return record

    def list_files_for_owner(self, owner_id: str) -> list[FileRecordRow]:
        records = [record for record in self.files.values() if record.owner_id == owner_id]
        records.sort(key=lambda record: record.uploaded_at)
        return records

    def list_files_shared_with(self, user_id: str) -> list[FileRecordRow]:
        records = [
            record
            for record in self.files.values()
            if record.permission is FilePermission.SHARED and user_id in record.shared_with
        ]
        records.sort(key=lambda record: record.uploaded_at)
        return records

    def list_all_files(self) -> list[FileRecordRow]:
        return sorted(self.files.values(), key=lambda record: record.uploaded_at)

    def update_file_sharing(
        self,
        *,
        record: FileRecordRow,
        permission: FilePermission,
        shared_with: list[str],
    ) -> None:
        record.permission = permission
        record.shared_with = list(shared_with)
        self._record_change(record.id, "updated")

    def delete_file(self, record: FileRecordRow) -> None:
        self.files.pop(record.id, None)
        self.blobs.pop(record.storage_path, None)
        self._record_change(record.id, "deleted")

    def read_blob(self, record: FileRecordRow) -> bytes:
        return self.blobs.get(record.storage_path, b"")

    def record_access(
        self,
        *,
        record: FileRecordRow,
        user_id: str,
        access_type: AccessType,
        details: str | None = None,
    ) -> AccessLogRecord:
        entry = AccessLogRecord(
            id=f"log-{uuid4()}",
            file_id=record.id,
            file_name=record.name,
            user_id=user_id,
            access_type=access_type,
            occurred_at=datetime.now(UTC),
            details=details,
        )
        self.access_logs.append(entry)
        return entry

    def query_access_logs(
        self,
        *,
        file_id: str | None = None,
        user_id: str | None = None,
        access_type: AccessType | None = None,
    ) -> list[AccessLogRecord]:
        return [
            entry
            for entry in self.access_logs
            if (file_id is None or entry.file_id == file_id)
            and (user_id is None or entry.user_id == user_id)
            and (access_type is None or entry.access_type is access_type)
        ]

    def changes_since(self, cursor: int) -> list[FileChangeRecord]:
        return [change for change in self.file_changes if change.sequence > cursor]

    def _record_change(self, file_id: str, kind: Literal["created", "updated", "deleted"]) -> None:
        self.file_changes.append(
            FileChangeRecord(
                sequence=len(self.file_changes) + 1,
                file_id=file_id,
                kind=kind,
                occurred_at=datetime.now(UTC),
            )
        )
