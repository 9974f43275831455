"""Administrator routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from filetrail.errors import ApiError, ValidationError
from filetrail.routes.dependencies import (
    get_browsing_context,
    get_file_service,
    get_profile_resolver,
    require_admin,
)
from filetrail.schemas.auth import Role, Session
from filetrail.schemas.error import ErrorResponse, NoLeakNotFoundError
from filetrail.schemas.file import AccessType, FileAccessLog, FileRecord
from filetrail.schemas.profile import Profile, UpdateRoleRequest
from filetrail.services.files import FileService
from filetrail.services.roles import ProfileRoleResolver
from filetrail.session.context import BrowsingContext

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)


@router.get("/files", response_model=list[FileRecord])
async def list_all_files(
    _admin: Annotated[Session, Depends(require_admin)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> list[FileRecord]:
    return await service.list_all_files()


@router.get("/access-logs", response_model=list[FileAccessLog])
async def query_access_logs(
    _admin: Annotated[Session, Depends(require_admin)],
    service: Annotated[FileService, Depends(get_file_service)],
    file_id: str | None = None,
    user_id: str | None = None,
    access_type: AccessType | None = None,
) -> list[FileAccessLog]:
    return service.query_access_logs(file_id=file_id, user_id=user_id, access_type=access_type)


@router.put(
    "/profiles/{userId}/role",
    response_model=Profile,
    responses={404: {"model": NoLeakNotFoundError}, 422: {"model": ErrorResponse}},
)
async def update_profile_role(
    user_id: Annotated[str, Path(alias="userId")],
    payload: UpdateRoleRequest,
    admin: Annotated[Session, Depends(require_admin)],
    resolver: Annotated[ProfileRoleResolver, Depends(get_profile_resolver)],
    context: Annotated[BrowsingContext, Depends(get_browsing_context)],
) -> Profile:
    try:
        if user_id == admin.identity.id and payload.role is not Role.ADMIN:
            raise ValidationError("Administrators cannot demote themselves", details={"fields": ["role"]})
        profile = await resolver.assign_role(user_id, payload.role)
    except ApiError as exc:
        context.notices.push("error", "Role update failed", exc.payload.message)
        raise
    context.notices.push("success", "Role updated", f"{profile.username} now has the {profile.role.value} role.")
    return profile
