"""File record routes."""

from collections.abc import Awaitable
from typing import Annotated, TypeVar
from urllib.parse import quote

from fastapi import APIRouter, Depends, Header, Path, Query, Request, Response, status

from filetrail.errors import ApiError
from filetrail.routes.dependencies import (
    get_browsing_context,
    get_file_service,
    issue_context_cookie,
    require_session,
)
from filetrail.schemas.auth import Session
from filetrail.schemas.error import ErrorResponse, NoLeakNotFoundError
from filetrail.schemas.file import (
    FileAccessLog,
    FileChangesPage,
    FileRecord,
    ShareFileRequest,
    UpdatePermissionRequest,
)
from filetrail.services.files import FileService
from filetrail.session.context import BrowsingContext

T = TypeVar("T")

router = APIRouter(tags=["Files"])


async def _with_notice(context: BrowsingContext, success: str, failure: str, operation: Awaitable[T]) -> T:
    try:
        result = await operation
    except ApiError as exc:
        context.notices.push("error", failure, exc.payload.message)
        raise
    context.notices.push("success", success, "Your change was saved.")
    return result


@router.post(
    "/files",
    response_model=FileRecord,
    status_code=status.HTTP_201_CREATED,
    responses={401: {"model": ErrorResponse}, 422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def upload_file(
    request: Request,
    name: Annotated[str, Query(min_length=1)],
    session: Annotated[Session, Depends(require_session)],
    service: Annotated[FileService, Depends(get_file_service)],
    context: Annotated[BrowsingContext, Depends(get_browsing_context)],
    content_type: Annotated[str | None, Header()] = None,
) -> FileRecord:
    data = await request.body()
    return await _with_notice(
        context,
        "Upload complete",
        "Upload failed",
        service.upload(owner_id=session.identity.id, name=name, content_type=content_type, data=data),
    )


@router.get("/files", response_model=list[FileRecord])
async def list_files(
    session: Annotated[Session, Depends(require_session)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> list[FileRecord]:
    return await service.list_files(owner_id=session.identity.id)


@router.get("/files/shared", response_model=list[FileRecord])
async def list_shared_files(
    session: Annotated[Session, Depends(require_session)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> list[FileRecord]:
    return await service.list_shared_with(user_id=session.identity.id)


@router.get("/files/changes", response_model=FileChangesPage)
async def list_file_changes(
    _session: Annotated[Session, Depends(require_session)],
    service: Annotated[FileService, Depends(get_file_service)],
    cursor: Annotated[int, Query(ge=0)] = 0,
) -> FileChangesPage:
    return service.changes(cursor=cursor)


@router.get(
    "/files/{fileId}",
    response_model=FileRecord,
    responses={404: {"model": NoLeakNotFoundError}},
)
async def get_file(
    file_id: Annotated[str, Path(alias="fileId")],
    session: Annotated[Session, Depends(require_session)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> FileRecord:
    return await service.get_file(viewer=session.identity, file_id=file_id)


@router.get(
    "/files/{fileId}/content",
    responses={404: {"model": NoLeakNotFoundError}},
)
async def download_file(
    request: Request,
    file_id: Annotated[str, Path(alias="fileId")],
    session: Annotated[Session, Depends(require_session)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> Response:
    record, data = await service.download(viewer=session.identity, file_id=file_id)
    response = Response(
        content=data,
        media_type=record.content_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(record.name)}"},
    )
    issue_context_cookie(request, response)
    return response


@router.put(
    "/files/{fileId}/permission",
    response_model=FileRecord,
    responses={404: {"model": NoLeakNotFoundError}, 422: {"model": ErrorResponse}},
)
async def update_file_permission(
    file_id: Annotated[str, Path(alias="fileId")],
    payload: UpdatePermissionRequest,
    session: Annotated[Session, Depends(require_session)],
    service: Annotated[FileService, Depends(get_file_service)],
    context: Annotated[BrowsingContext, Depends(get_browsing_context)],
) -> FileRecord:
    return await _with_notice(
        context,
        "Permission updated",
        "Permission update failed",
        service.set_permission(
            owner_id=session.identity.id,
            file_id=file_id,
            permission=payload.permission,
            shared_user_ids=payload.shared_user_ids,
        ),
    )


@router.post(
    "/files/{fileId}/share",
    response_model=FileRecord,
    responses={404: {"model": NoLeakNotFoundError}, 422: {"model": ErrorResponse}},
)
async def share_file(
    file_id: Annotated[str, Path(alias="fileId")],
    payload: ShareFileRequest,
    session: Annotated[Session, Depends(require_session)],
    service: Annotated[FileService, Depends(get_file_service)],
    context: Annotated[BrowsingContext, Depends(get_browsing_context)],
) -> FileRecord:
    return await _with_notice(
        context,
        "File shared",
        "Sharing failed",
        service.share(owner_id=session.identity.id, file_id=file_id, target_user_id=payload.target_user_id),
    )


@router.delete(
    "/files/{fileId}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": NoLeakNotFoundError}},
)
async def delete_file(
    file_id: Annotated[str, Path(alias="fileId")],
    session: Annotated[Session, Depends(require_session)],
    service: Annotated[FileService, Depends(get_file_service)],
    context: Annotated[BrowsingContext, Depends(get_browsing_context)],
) -> None:
    await _with_notice(
        context,
        "File deleted",
        "Delete failed",
        service.delete(actor=session.identity, file_id=file_id),
    )


@router.get(
    "/files/{fileId}/access-logs",
    response_model=list[FileAccessLog],
    responses={404: {"model": NoLeakNotFoundError}},
)
async def list_file_access_logs(
    file_id: Annotated[str, Path(alias="fileId")],
    session: Annotated[Session, Depends(require_session)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> list[FileAccessLog]:
    return service.access_logs(owner_id=session.identity.id, file_id=file_id)
