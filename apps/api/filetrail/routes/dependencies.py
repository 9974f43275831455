"""Dependency wiring for routes."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request, Response

from filetrail.adapters.auth import FirebaseIdentityProvider, IdentityProvider, MockIdentityProvider
from filetrail.adapters.profiles import FirestoreProfileDirectory, MemoryProfileDirectory, ProfileDirectory
from filetrail.core.config import Settings
from filetrail.core.logging import safe_log_identifier
from filetrail.errors import AuthorizationError, NotAuthenticatedError
from filetrail.guards import GuardDecision, check_admin, check_authenticated
from filetrail.repositories.memory import InMemoryStore
from filetrail.schemas.auth import Session
from filetrail.services.auth import AuthGateway
from filetrail.services.files import FileService
from filetrail.services.roles import ProfileRoleResolver
from filetrail.session.context import BrowsingContext, BrowsingContextRegistry

logger = logging.getLogger(__name__)


class GuardRedirect(Exception):
    """Raised by page guards; rendered as a 303 to ``location``."""

    def __init__(self, location: str) -> None:
        self.location = location
        super().__init__(location)


def build_identity_provider(settings: Settings) -> IdentityProvider:
    """Resolve provider adapter from configuration."""
    if settings.auth_provider == "firebase":
        return FirebaseIdentityProvider(
            project_id=settings.firebase_project_id,
            api_key=settings.firebase_api_key,
            timeout=settings.provider_timeout_seconds,
        )
    return MockIdentityProvider(token_ttl_seconds=settings.session_ttl_seconds)


def build_profile_directory(settings: Settings, store: InMemoryStore) -> ProfileDirectory:
    if settings.profile_backend == "firestore":
        return FirestoreProfileDirectory(project_id=settings.firebase_project_id)
    return MemoryProfileDirectory(store)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> InMemoryStore:
    return request.app.state.store


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def get_profile_directory(request: Request) -> ProfileDirectory:
    return request.app.state.profiles


def get_registry(request: Request) -> BrowsingContextRegistry:
    return request.app.state.registry


def issue_context_cookie(request: Request, response: Response) -> None:
    """Attach the browsing-context cookie when this request opened a new context."""
    context_id = getattr(request.state, "issued_context_id", None)
    if not context_id:
        return
    settings: Settings = request.app.state.settings
    response.set_cookie(
        settings.context_cookie_name,
        context_id,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )


async def get_browsing_context(
    request: Request,
    response: Response,
    registry: Annotated[BrowsingContextRegistry, Depends(get_registry)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AsyncIterator[BrowsingContext]:
    cookie_value = request.cookies.get(settings.context_cookie_name)
    context = registry.checkout(cookie_value)
    if context.id != cookie_value:
        request.state.issued_context_id = context.id
        issue_context_cookie(request, response)
    request.state.browsing_context = context
    try:
        yield context
    finally:
        registry.release(context)


def get_profile_resolver(
    profiles: Annotated[ProfileDirectory, Depends(get_profile_directory)],
) -> ProfileRoleResolver:
    return ProfileRoleResolver(profiles)


def get_auth_gateway(
    context: Annotated[BrowsingContext, Depends(get_browsing_context)],
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
    resolver: Annotated[ProfileRoleResolver, Depends(get_profile_resolver)],
    profiles: Annotated[ProfileDirectory, Depends(get_profile_directory)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AuthGateway:
    return AuthGateway(context, provider, resolver, profiles, settings)


def get_file_service(
    store: Annotated[InMemoryStore, Depends(get_store)],
    profiles: Annotated[ProfileDirectory, Depends(get_profile_directory)],
) -> FileService:
    return FileService(store, profiles)


async def get_current_session(gateway: Annotated[AuthGateway, Depends(get_auth_gateway)]) -> Session | None:
    return await gateway.resume()


def _requested_path(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


def _log_rejection(request: Request, context: BrowsingContext, reason: str) -> None:
    logger.warning(
        "auth.rejected context_id=%s method=%s path=%s reason=%s",
        safe_log_identifier(context.id, prefix="ctx"),
        request.method,
        request.url.path,
        reason,
    )


async def require_session(
    request: Request,
    context: Annotated[BrowsingContext, Depends(get_browsing_context)],
    session: Annotated[Session | None, Depends(get_current_session)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> Session:
    """API guard: 401 without a valid session."""
    decision = check_authenticated(
        session,
        _requested_path(request),
        now_ms=context.store.now_ms(),
        login_path=settings.login_path,
    )
    if not decision.allowed:
        _log_rejection(request, context, "no_session")
        raise NotAuthenticatedError("Sign in to continue")
    return session


async def require_admin(
    request: Request,
    context: Annotated[BrowsingContext, Depends(get_browsing_context)],
    session: Annotated[Session | None, Depends(get_current_session)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> Session:
    """API guard: 401 without a session, 403 for a non-admin session."""
    decision = check_admin(
        session,
        _requested_path(request),
        now_ms=context.store.now_ms(),
        login_path=settings.login_path,
        landing_path=settings.landing_path,
    )
    if not decision.allowed:
        if decision.return_to is not None:
            _log_rejection(request, context, "no_session")
            raise NotAuthenticatedError("Sign in to continue")
        _log_rejection(request, context, "not_admin")
        raise AuthorizationError("Administrator access required")
    return session


def _apply_page_decision(
    request: Request,
    context: BrowsingContext,
    decision: GuardDecision,
    session: Session | None,
) -> Session:
    if decision.allowed:
        return session
    if decision.return_to is not None:
        context.return_to = decision.return_to
    if decision.notice is not None:
        context.notices.push(decision.notice.level, decision.notice.title, decision.notice.message)
    _log_rejection(request, context, "page_guard")
    raise GuardRedirect(decision.redirect_to)


async def authenticated_page(
    request: Request,
    context: Annotated[BrowsingContext, Depends(get_browsing_context)],
    session: Annotated[Session | None, Depends(get_current_session)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> Session:
    """Page guard: redirect to the login entry, remembering the requested path."""
    decision = check_authenticated(
        session,
        _requested_path(request),
        now_ms=context.store.now_ms(),
        login_path=settings.login_path,
    )
    return _apply_page_decision(request, context, decision, session)


async def admin_page(
    request: Request,
    context: Annotated[BrowsingContext, Depends(get_browsing_context)],
    session: Annotated[Session | None, Depends(get_current_session)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> Session:
    """Page guard: anonymous callers go to login, non-admins to the landing page."""
    decision = check_admin(
        session,
        _requested_path(request),
        now_ms=context.store.now_ms(),
        login_path=settings.login_path,
        landing_path=settings.landing_path,
    )
    return _apply_page_decision(request, context, decision, session)
