"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from filetrail.adapters.auth import IdentityExistsError, MockIdentityProvider
from filetrail.core.config import Settings, get_settings
from filetrail.core.logging import safe_log_identifier, setup_logging
from filetrail.errors import ApiError
from filetrail.repositories.memory import InMemoryStore
from filetrail.routes import admin_router, auth_router, files_router, pages_router
from filetrail.routes.dependencies import (
    GuardRedirect,
    build_identity_provider,
    build_profile_directory,
    issue_context_cookie,
)
from filetrail.schemas.auth import Role
from filetrail.schemas.error import ErrorResponse
from filetrail.session.context import BrowsingContextRegistry, file_storage_factory

logger = logging.getLogger(__name__)

_AUTH_VALIDATION_PATHS: set[tuple[str, str]] = {
    ("POST", "/api/v1/auth/login"),
    ("POST", "/api/v1/auth/register"),
    ("PATCH", "/api/v1/auth/profile"),
}


def _seed_bootstrap_admin(settings: Settings, provider: MockIdentityProvider, store: InMemoryStore) -> None:
    identifier = settings.bootstrap_admin_identifier
    secret = settings.bootstrap_admin_secret
    if not identifier or not secret:
        return
    if settings.profile_backend != "memory":
        logger.warning("bootstrap.admin_skipped reason=profile_backend_not_memory")
        return

    try:
        user = provider.register_account("Administrator", identifier, secret)
    except IdentityExistsError:
        logger.info("bootstrap.admin_exists identifier=%s", safe_log_identifier(identifier, prefix="idn"))
        return
    store.save_profile(user_id=user.user_id, username="Administrator", role=Role.ADMIN)
    logger.info("bootstrap.admin_seeded user_id=%s", safe_log_identifier(user.user_id, prefix="uid"))


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    store = InMemoryStore()
    provider = build_identity_provider(settings)
    storage_factory = file_storage_factory(settings.device_storage_dir) if settings.device_storage_dir else None
    registry = BrowsingContextRegistry(
        storage_factory,
        idle_seconds=settings.context_idle_seconds,
        cleanup_interval_seconds=settings.context_cleanup_interval_seconds,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        registry.start_cleanup()
        yield
        await registry.stop_cleanup()

    app = FastAPI(title="FileTrail API", version="0.1.0", lifespan=lifespan)

    app.state.settings = settings
    app.state.store = store
    app.state.identity_provider = provider
    app.state.profiles = build_profile_directory(settings, store)
    app.state.registry = registry

    if isinstance(provider, MockIdentityProvider):
        _seed_bootstrap_admin(settings, provider, store)

    logger.info(
        "app.configured auth_provider=%s profile_backend=%s persistent_device_storage=%s",
        settings.auth_provider,
        settings.profile_backend,
        storage_factory is not None,
    )

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        response = JSONResponse(
            status_code=exc.status_code,
            content=exc.payload.model_dump(mode="json", exclude_none=True),
        )
        issue_context_cookie(request, response)
        return response

    @app.exception_handler(GuardRedirect)
    async def handle_guard_redirect(request: Request, exc: GuardRedirect) -> RedirectResponse:
        response = RedirectResponse(url=exc.location, status_code=303)
        issue_context_cookie(request, response)
        return response

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Auth forms report malformed bodies with the same payload as field-level validation.
        route = request.scope.get("route")
        route_path = getattr(route, "path", request.url.path)
        if (request.method.upper(), route_path) in _AUTH_VALIDATION_PATHS:
            payload = ErrorResponse(code="VALIDATION_ERROR", message="Invalid request payload")
            response = JSONResponse(status_code=422, content=payload.model_dump(exclude_none=True))
            issue_context_cookie(request, response)
            return response

        return await request_validation_exception_handler(request, exc)

    api_prefix = "/api/v1"
    app.include_router(auth_router, prefix=api_prefix)
    app.include_router(files_router, prefix=api_prefix)
    app.include_router(admin_router, prefix=api_prefix)
    app.include_router(pages_router)

    return app


app = create_app()
