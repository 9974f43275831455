"""Guarded page routes.

Pages return a small JSON view model; the browser shell renders it. Guard
failures never reach the handler: they surface as a 303 redirect.
"""

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from filetrail.guards import is_relative_path
from filetrail.routes.dependencies import (
    GuardRedirect,
    admin_page,
    authenticated_page,
    get_auth_gateway,
    get_current_session,
)
from filetrail.schemas.auth import Session
from filetrail.schemas.page import LoginView, PageView
from filetrail.services.auth import AuthGateway

router = APIRouter(tags=["Pages"])

_AUTHENTICATED_PAGES = {
    "/dashboard": "dashboard",
    "/upload": "upload",
    "/history": "history",
    "/share": "share",
    "/settings": "settings",
}
_ADMIN_PAGES = {
    "/admin/files": "admin-files",
    "/admin/logs": "admin-logs",
}


@router.get("/login", response_model=LoginView)
async def login_entry(
    gateway: Annotated[AuthGateway, Depends(get_auth_gateway)],
    session: Annotated[Session | None, Depends(get_current_session)],
    next_path: Annotated[str | None, Query(alias="next")] = None,
) -> LoginView:
    if session is not None:
        raise GuardRedirect(gateway.consume_return_target(next_path))
    context = gateway.context
    return LoginView(
        state=context.store.state,
        next=next_path if is_relative_path(next_path) else context.return_to,
        notices=context.notices.drain(),
    )


def _register_page(path: str, name: str, guard: Callable[..., Awaitable[Session]]) -> None:
    async def view(
        session: Annotated[Session, Depends(guard)],
        gateway: Annotated[AuthGateway, Depends(get_auth_gateway)],
    ) -> PageView:
        return PageView(page=name, identity=session.identity, notices=gateway.context.notices.drain())

    router.add_api_route(path, view, methods=["GET"], response_model=PageView, name=f"page_{name}")


for _path, _name in _AUTHENTICATED_PAGES.items():
    _register_page(_path, _name, authenticated_page)
for _path, _name in _ADMIN_PAGES.items():
    _register_page(_path, _name, admin_page)
