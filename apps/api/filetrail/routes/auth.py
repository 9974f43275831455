"""Authentication routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from filetrail.routes.dependencies import get_auth_gateway, get_browsing_context, get_current_session
from filetrail.schemas.auth import (
    Identity,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    Session,
    SessionResponse,
    UpdateProfileRequest,
)
from filetrail.schemas.error import ErrorResponse
from filetrail.schemas.notice import Notice
from filetrail.services.auth import AuthGateway
from filetrail.session.context import BrowsingContext

router = APIRouter(tags=["Auth"])


@router.post(
    "/auth/login",
    response_model=LoginResponse,
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def login(
    payload: LoginRequest,
    gateway: Annotated[AuthGateway, Depends(get_auth_gateway)],
) -> LoginResponse:
    session = await gateway.login(payload)
    return LoginResponse(
        identity=session.identity,
        expires_at=session.expires_at,
        redirect_to=gateway.consume_return_target(payload.next),
    )


@router.post(
    "/auth/register",
    response_model=Identity,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def register(
    payload: RegisterRequest,
    gateway: Annotated[AuthGateway, Depends(get_auth_gateway)],
) -> Identity:
    return await gateway.register(payload)


@router.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(gateway: Annotated[AuthGateway, Depends(get_auth_gateway)]) -> None:
    await gateway.logout()


@router.get("/auth/session", response_model=SessionResponse)
async def get_session(
    gateway: Annotated[AuthGateway, Depends(get_auth_gateway)],
    session: Annotated[Session | None, Depends(get_current_session)],
) -> SessionResponse:
    return SessionResponse(
        state=gateway.context.store.state,
        identity=session.identity if session is not None else None,
        expires_at=session.expires_at if session is not None else None,
    )


@router.patch(
    "/auth/profile",
    response_model=Identity,
    responses={401: {"model": ErrorResponse}, 422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def update_profile(
    payload: UpdateProfileRequest,
    gateway: Annotated[AuthGateway, Depends(get_auth_gateway)],
    _session: Annotated[Session | None, Depends(get_current_session)],
) -> Identity:
    return await gateway.update_profile(payload)


@router.get("/notices", response_model=list[Notice])
async def drain_notices(context: Annotated[BrowsingContext, Depends(get_browsing_context)]) -> list[Notice]:
    return context.notices.drain()
