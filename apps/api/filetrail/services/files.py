"""File record service layer."""

import hashlib
import logging

from filetrail.adapters.profiles.base import ProfileDirectory
from filetrail.core.logging import safe_log_identifier
from filetrail.errors import TransientBackendError, ValidationError, not_found
from filetrail.repositories.memory import AccessLogRecord, FileRecordRow, InMemoryStore
from filetrail.schemas.auth import Identity, Role
from filetrail.schemas.file import (
    AccessType,
    FileAccessLog,
    FileChange,
    FileChangesPage,
    FilePermission,
    FileRecord,
)

logger = logging.getLogger(__name__)

_DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_digest(data: bytes) -> str:
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


class FileService:
    def __init__(self, store: InMemoryStore, profiles: ProfileDirectory) -> None:
        self._store = store
        self._profiles = profiles

    async def upload(self, *, owner_id: str, name: str, content_type: str | None, data: bytes) -> FileRecord:
        name = name.strip()
        if not name or "/" in name or "\\" in name:
            raise ValidationError("A plain file name is required", details={"fields": ["name"]})
        if not data:
            raise ValidationError("File is empty", details={"fields": ["content"]})

        safe_owner_id = safe_log_identifier(owner_id, prefix="uid")
        try:
            record = self._store.create_file(
                owner_id=owner_id,
                name=name,
                content_type=content_type or _DEFAULT_CONTENT_TYPE,
                data=data,
                digest=content_digest(data),
            )
        except RuntimeError as exc:
            logger.warning("file.upload_failed owner_id=%s reason=%s", safe_owner_id, type(exc).__name__)
            raise TransientBackendError("File upload failed; please retry") from exc

        logger.info(
            "file.uploaded file_id=%s owner_id=%s size=%s",
            safe_log_identifier(record.id, prefix="fid"),
            safe_owner_id,
            record.size,
        )
        return await self._describe(record)

    async def list_files(self, *, owner_id: str) -> list[FileRecord]:
        return await self._describe_all(self._store.list_files_for_owner(owner_id))

    async def list_shared_with(self, *, user_id: str) -> list[FileRecord]:
        return await self._describe_all(self._store.list_files_shared_with(user_id))

    async def list_all_files(self) -> list[FileRecord]:
        return await self._describe_all(self._store.list_all_files())

    async def get_file(self, *, viewer: Identity, file_id: str) -> FileRecord:
        record = self._visible_record(viewer, file_id)
        self._store.record_access(record=record, user_id=viewer.id, access_type=AccessType.VIEW)
        return await self._describe(record)

    async def download(self, *, viewer: Identity, file_id: str) -> tuple[FileRecord, bytes]:
        record = self._visible_record(viewer, file_id)
        self._store.record_access(record=record, user_id=viewer.id, access_type=AccessType.DOWNLOAD)
        return await self._describe(record), self._store.read_blob(record)

    async def set_permission(
        self,
        *,
        owner_id: str,
        file_id: str,
        permission: FilePermission,
        shared_user_ids: list[str] | None,
    ) -> FileRecord:
        record = self._owned_record(owner_id, file_id)
        if permission is FilePermission.SHARED:
            shared_with = _dedupe(shared_user_ids or [])
            if not shared_with:
                raise ValidationError(
                    "Shared files need at least one recipient",
                    details={"fields": ["shared_user_ids"]},
                )
        else:
            shared_with = []

        self._store.update_file_sharing(record=record, permission=permission, shared_with=shared_with)
        logger.info(
            "file.permission_changed file_id=%s permission=%s recipients=%s",
            safe_log_identifier(record.id, prefix="fid"),
            permission.value,
            len(shared_with),
        )
        return await self._describe(record)

    async def share(self, *, owner_id: str, file_id: str, target_user_id: str) -> FileRecord:
        record = self._owned_record(owner_id, file_id)
        target_user_id = target_user_id.strip()
        if not target_user_id or target_user_id == owner_id:
            raise ValidationError("Choose another user to share with", details={"fields": ["target_user_id"]})

        shared_with = _dedupe([*record.shared_with, target_user_id])
        self._store.update_file_sharing(record=record, permission=FilePermission.SHARED, shared_with=shared_with)
        self._store.record_access(
            record=record,
            user_id=owner_id,
            access_type=AccessType.SHARE,
            details=target_user_id,
        )
        return await self._describe(record)

    async def delete(self, *, actor: Identity, file_id: str) -> None:
        record = self._store.get_file(file_id)
        if record is None:
            raise not_found()
        if record.owner_id != actor.id:
            if actor.role is not Role.ADMIN:
                raise not_found()
            logger.info(
                "file.deleted_by_admin file_id=%s admin_id=%s",
                safe_log_identifier(record.id, prefix="fid"),
                safe_log_identifier(actor.id, prefix="uid"),
            )
        self._store.delete_file(record)

    def access_logs(self, *, owner_id: str, file_id: str) -> list[FileAccessLog]:
        record = self._owned_record(owner_id, file_id)
        return [_to_access_log(entry) for entry in self._store.query_access_logs(file_id=record.id)]

    def query_access_logs(
        self,
        *,
        file_id: str | None = None,
        user_id: str | None = None,
        access_type: AccessType | None = None,
    ) -> list[FileAccessLog]:
        entries = self._store.query_access_logs(file_id=file_id, user_id=user_id, access_type=access_type)
        return [_to_access_log(entry) for entry in entries]

    def changes(self, *, cursor: int = 0) -> FileChangesPage:
        if cursor < 0:
            raise ValidationError("Cursor must not be negative", details={"fields": ["cursor"]})
        records = self._store.changes_since(cursor)
        changes = [
            FileChange(
                sequence=change.sequence,
                file_id=change.file_id,
                kind=change.kind,
                occurred_at=change.occurred_at,
            )
            for change in records
        ]
        return FileChangesPage(changes=changes, cursor=changes[-1].sequence if changes else cursor)

    def _visible_record(self, viewer: Identity, file_id: str) -> FileRecordRow:
        record = self._store.get_file(file_id)
        if record is None or not _can_view(record, viewer):
            raise not_found()
        return record

    def _owned_record(self, owner_id: str, file_id: str) -> FileRecordRow:
        record = self._store.get_file_for_owner(owner_id=owner_id, file_id=file_id)
        if record is None:
            raise not_found()
        return record

    async def _describe(self, record: FileRecordRow) -> FileRecord:
        return _to_file(record, await self._owner_name(record.owner_id))

    async def _describe_all(self, records: list[FileRecordRow]) -> list[FileRecord]:
        names: dict[str, str | None] = {}
        for record in records:
            if record.owner_id not in names:
                names[record.owner_id] = await self._owner_name(record.owner_id)
        return [_to_file(record, names[record.owner_id]) for record in records]

    async def _owner_name(self, owner_id: str) -> str | None:
        try:
            profile = await self._profiles.get_profile(owner_id)
        except Exception:
            logger.warning(
                "file.owner_lookup_failed owner_id=%s",
                safe_log_identifier(owner_id, prefix="uid"),
                exc_info=True,
            )
            return None
        return profile.username if profile is not None else None


def _to_file(record: FileRecordRow, owner_name: str | None) -> FileRecord:
    return FileRecord(
        id=record.id,
        name=record.name,
        owner_id=record.owner_id,
        owner_name=owner_name,
        size=record.size,
        content_type=record.content_type,
        hash=record.hash,
        permission=record.permission,
        shared_with=list(record.shared_with),
        uploaded_at=record.uploaded_at,
    )


def _can_view(record: FileRecordRow, viewer: Identity) -> bool:
    if record.owner_id == viewer.id or viewer.role is Role.ADMIN:
        return True
    if record.permission is FilePermission.PUBLIC:
        return True
    return record.permission is FilePermission.SHARED and viewer.id in record.shared_with


def _dedupe(user_ids: list[str]) -> list[str]:
    seen: dict[str, None] = {}
    for user_id in user_ids:
        user_id = user_id.strip()
        if user_id:
            seen.setdefault(user_id, None)
    return list(seen)


def _to_access_log(entry: AccessLogRecord) -> FileAccessLog:
    return FileAccessLog(
        id=entry.id,
        file_id=entry.file_id,
        file_name=entry.file_name,
        user_id=entry.user_id,
        access_type=entry.access_type,
        occurred_at=entry.occurred_at,
        details=entry.details,
    )
