"""Auth gateway: the only place credentials are exchanged for sessions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TypeVar

from filetrail.adapters.auth.base import (
    IdentityExistsError,
    IdentityProvider,
    InvalidCredentialsError,
    InvalidTokenError,
    ProviderError,
    ProviderUnavailableError,
)
from filetrail.adapters.profiles.base import ProfileDirectory
from filetrail.core.config import Settings
from filetrail.core.logging import safe_log_identifier
from filetrail.errors import (
    ApiError,
    AuthorizationError,
    CredentialError,
    DuplicateIdentityError,
    NotAuthenticatedError,
    TransientBackendError,
    ValidationError,
)
from filetrail.guards import is_relative_path
from filetrail.schemas.auth import (
    Identity,
    LoginRequest,
    RegisterRequest,
    Role,
    Session,
    SessionState,
    UpdateProfileRequest,
)
from filetrail.schemas.profile import Profile
from filetrail.services.keys import KeyPair, generate_keypair
from filetrail.services.roles import ProfileRoleResolver
from filetrail.session.context import BrowsingContext
from filetrail.session.storage import PRIVATE_KEY_KEY

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AuthGateway:
    """Login, registration, logout and profile updates for one browsing context.

    Provider exceptions never cross this boundary: they are translated into the
    application taxonomy in :mod:`filetrail.errors`. Every state-changing call
    leaves a success or failure notice on the context.
    """

    def __init__(
        self,
        context: BrowsingContext,
        provider: IdentityProvider,
        resolver: ProfileRoleResolver,
        profiles: ProfileDirectory,
        settings: Settings,
        *,
        keypair_factory: Callable[[], KeyPair] = generate_keypair,
    ) -> None:
        self._context = context
        self._provider = provider
        self._resolver = resolver
        self._profiles = profiles
        self._settings = settings
        self._keypair_factory = keypair_factory

    @property
    def context(self) -> BrowsingContext:
        return self._context

    async def login(self, request: LoginRequest) -> Session:
        try:
            identifier = self._validate_login(request)
        except ValidationError as exc:
            self._failure_notice("Login failed", exc)
            raise

        store = self._context.store
        previous = store.peek()
        generation = store.begin()
        store.transition(SessionState.AUTHENTICATING, generation=generation)
        try:
            session = await self._establish_session(identifier, request, generation)
        except ApiError as exc:
            self._failure_notice("Login failed", exc)
            raise
        finally:
            if store.is_current(generation) and store.state is SessionState.AUTHENTICATING:
                store.set_current(None, generation=generation)
            await self._revoke_replaced(previous)

        self._context.revalidation_pending = False
        self._context.notices.push("success", "Signed in", f"Welcome back, {session.identity.display_name}!")
        return session

    async def register(self, request: RegisterRequest) -> Identity:
        try:
            display_name, identifier = self._validate_registration(request)
        except ValidationError as exc:
            self._failure_notice("Registration failed", exc)
            raise

        safe_identifier = safe_log_identifier(identifier, prefix="idn")
        keypair = self._keypair_factory() if self._settings.generate_keypair else None
        try:
            user = await self._call(
                self._provider.sign_up(
                    display_name,
                    identifier,
                    request.secret,
                    keypair.public_key if keypair is not None else None,
                ),
                operation="sign_up",
            )
        except IdentityExistsError as exc:
            logger.info("auth.register_rejected identifier=%s reason=identity_exists", safe_identifier)
            error = DuplicateIdentityError("An account with this identifier already exists")
            self._failure_notice("Registration failed", error)
            raise error from exc
        except TransientBackendError as exc:
            self._failure_notice("Registration failed", exc)
            raise

        if keypair is not None:
            self._context.store.storage.set_item(PRIVATE_KEY_KEY, keypair.private_key)

        try:
            await self._profiles.save_profile(
                Profile(
                    user_id=user.user_id,
                    username=display_name,
                    role=Role.USER,
                    created_at=datetime.now(UTC),
                )
            )
        except Exception:
            # A missing profile resolves to Role.USER, so the account stays usable.
            logger.warning(
                "auth.profile_insert_failed user_id=%s",
                safe_log_identifier(user.user_id, prefix="uid"),
                exc_info=True,
            )

        logger.info(
            "auth.registered identifier=%s user_id=%s keypair=%s",
            safe_identifier,
            safe_log_identifier(user.user_id, prefix="uid"),
            keypair is not None,
        )
        self._context.notices.push("success", "Registration complete", "Your account was created. Please sign in.")
        return Identity(
            id=user.user_id,
            display_name=user.display_name or display_name,
            email=user.email,
            public_key=user.public_key,
            role=Role.USER,
        )

    async def logout(self) -> None:
        store = self._context.store
        session = store.peek()
        # The new generation fences any login still in flight.
        generation = store.begin()
        store.set_current(None, generation=generation)
        self._context.revalidation_pending = False

        if session is not None:
            await self._revoke(session.token, reason="logout")
        self._context.notices.push("success", "Signed out", "You have been signed out.")

    async def update_profile(self, request: UpdateProfileRequest) -> Identity:
        store = self._context.store
        session = store.get_current()
        if session is None:
            error = NotAuthenticatedError("Sign in to update your profile")
            self._failure_notice("Profile update failed", error)
            raise error

        if request.display_name is None:
            return session.identity
        display_name = request.display_name.strip()
        if not display_name:
            error = ValidationError("Display name cannot be empty")
            self._failure_notice("Profile update failed", error)
            raise error

        generation = store.begin()
        try:
            user = await self._call(
                self._provider.update_user(session.token, display_name=display_name),
                operation="update_user",
            )
        except InvalidTokenError as exc:
            store.set_current(None, generation=generation)
            error = NotAuthenticatedError("Your session is no longer valid; please sign in again")
            self._failure_notice("Profile update failed", error)
            raise error from exc
        except TransientBackendError as exc:
            self._failure_notice("Profile update failed", exc)
            raise

        await self._update_profile_row(user.user_id, display_name)

        identity = session.identity.model_copy(update={"display_name": user.display_name or display_name})
        refreshed = session.model_copy(update={"identity": identity})
        if not refreshed.is_valid(store.now_ms()) or not store.set_current(refreshed, generation=generation):
            error = NotAuthenticatedError("Your session changed while the profile was being updated")
            self._failure_notice("Profile update failed", error)
            raise error

        self._context.notices.push("success", "Profile updated", "Your display name was saved.")
        return identity

    async def revalidate(self) -> Session | None:
        """Confirm the held session with the provider.

        An expired session is dropped without a network call. A provider rejection
        clears the session; a transient failure keeps the cached hint pending and
        raises :class:`TransientBackendError`.
        """
        store = self._context.store
        session = store.peek()
        if session is None:
            self._context.revalidation_pending = False
            return None

        if not session.is_valid(store.now_ms()):
            self.expire()
            return None

        generation = store.begin()
        try:
            user = await self._call(self._provider.get_user(session.token), operation="get_user")
        except InvalidTokenError:
            logger.info(
                "auth.revalidation_rejected user_id=%s",
                safe_log_identifier(session.identity.id, prefix="uid"),
            )
            store.set_current(None, generation=generation)
            self._context.revalidation_pending = False
            self._context.notices.push("info", "Session ended", "Please sign in again.")
            return None

        identity = await self._resolver.resolve(user)
        refreshed = Session(token=session.token, identity=identity, expires_at=session.expires_at)
        if not store.is_current(generation):
            return store.get_current()
        if not refreshed.is_valid(store.now_ms()):
            self.expire()
            return None
        store.set_current(refreshed, generation=generation)
        self._context.revalidation_pending = False
        return store.get_current()

    async def resume(self) -> Session | None:
        """Settle the context before a request reads it: expire stale sessions, confirm restored ones."""
        store = self._context.store
        if store.state is SessionState.EXPIRED:
            self.expire()
            return None
        if self._context.revalidation_pending:
            try:
                return await self.revalidate()
            except TransientBackendError as exc:
                self._failure_notice("Could not verify your session", exc)
                return None
        return store.get_current()

    def expire(self) -> None:
        store = self._context.store
        session = store.peek()
        if session is None:
            return
        logger.info("session.expired user_id=%s", safe_log_identifier(session.identity.id, prefix="uid"))
        store.set_current(None, generation=store.begin())
        self._context.revalidation_pending = False
        self._context.notices.push("info", "Session expired", "Your session expired. Please sign in again.")

    def return_target(self, requested: str | None = None) -> str:
        """Post-login destination: ``requested``, then the guard's remembered path, then the landing page."""
        for candidate in (requested, self._context.return_to):
            if is_relative_path(candidate):
                return candidate
        return self._settings.landing_path

    def consume_return_target(self, requested: str | None = None) -> str:
        target = self.return_target(requested)
        self._context.return_to = None
        return target

    async def _establish_session(self, identifier: str, request: LoginRequest, generation: int) -> Session:
        store = self._context.store
        safe_identifier = safe_log_identifier(identifier, prefix="idn")
        try:
            provider_session = await self._call(
                self._provider.sign_in(identifier, request.secret),
                operation="sign_in",
            )
        except InvalidCredentialsError as exc:
            logger.warning("auth.login_rejected identifier=%s reason=invalid_credentials", safe_identifier)
            raise CredentialError("Invalid identifier or secret") from exc

        identity = await self._resolver.resolve(provider_session.user)
        safe_user_id = safe_log_identifier(identity.id, prefix="uid")
        if request.wants_elevated and identity.role is not Role.ADMIN:
            logger.warning("auth.login_rejected user_id=%s reason=not_admin", safe_user_id)
            await self._revoke(provider_session.token, reason="elevation_denied")
            raise AuthorizationError("This account does not have administrator access")

        ttl_ms = self._settings.session_ttl_seconds * 1000
        session = Session(
            token=provider_session.token,
            identity=identity,
            expires_at=min(provider_session.expires_at, store.now_ms() + ttl_ms),
        )
        if not store.set_current(session, generation=generation):
            logger.info("auth.login_superseded user_id=%s", safe_user_id)
            await self._revoke(provider_session.token, reason="superseded")
            raise ApiError(
                status_code=409,
                code="LOGIN_SUPERSEDED",
                message="A newer sign-in or sign-out replaced this login",
            )

        logger.info("auth.login_succeeded user_id=%s role=%s", safe_user_id, identity.role.value)
        return session

    async def _call(self, awaitable: Awaitable[T], *, operation: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._settings.provider_timeout_seconds)
        except TimeoutError as exc:
            logger.warning(
                "auth.provider_timeout operation=%s timeout_seconds=%s",
                operation,
                self._settings.provider_timeout_seconds,
            )
            raise TransientBackendError("The sign-in service did not respond; please retry") from exc
        except ProviderUnavailableError as exc:
            logger.warning("auth.provider_unavailable operation=%s reason=%s", operation, exc)
            raise TransientBackendError("The sign-in service is unavailable; please retry") from exc

    async def _revoke(self, token: str, *, reason: str) -> None:
        """Best-effort remote sign-out; local state never depends on it."""
        try:
            await self._call(self._provider.sign_out(token), operation="sign_out")
        except (ProviderError, TransientBackendError) as exc:
            logger.warning("auth.revoke_failed reason=%s error=%s", reason, type(exc).__name__)

    async def _revoke_replaced(self, previous: Session | None) -> None:
        """Revoke a session the context held before a login, once the context no longer holds it."""
        if previous is None:
            return
        held = self._context.store.peek()
        if held is not None and held.token == previous.token:
            return
        logger.info("auth.session_replaced user_id=%s", safe_log_identifier(previous.identity.id, prefix="uid"))
        await self._revoke(previous.token, reason="replaced")

    async def _update_profile_row(self, user_id: str, display_name: str) -> None:
        try:
            existing = await self._profiles.get_profile(user_id)
            if existing is not None:
                await self._profiles.save_profile(existing.model_copy(update={"username": display_name}))
        except Exception:
            logger.warning(
                "auth.profile_update_failed user_id=%s",
                safe_log_identifier(user_id, prefix="uid"),
                exc_info=True,
            )

    def _validate_login(self, request: LoginRequest) -> str:
        identifier = request.identifier.strip()
        if not identifier or not request.secret:
            raise ValidationError("Identifier and secret are required")
        return identifier

    def _validate_registration(self, request: RegisterRequest) -> tuple[str, str]:
        display_name = request.display_name.strip()
        identifier = request.identifier.strip()
        missing = [
            name
            for name, value in (("display_name", display_name), ("identifier", identifier), ("secret", request.secret))
            if not value
        ]
        if missing:
            raise ValidationError("Required fields are missing", details={"fields": missing})
        if "@" not in identifier:
            raise ValidationError("Identifier must be an email address", details={"fields": ["identifier"]})
        if len(request.secret) < self._settings.min_secret_length:
            raise ValidationError(
                f"Secret must be at least {self._settings.min_secret_length} characters",
                details={"fields": ["secret"], "min_length": self._settings.min_secret_length},
            )
        if request.confirm_secret is not None and request.confirm_secret != request.secret:
            raise ValidationError("Secrets do not match", details={"fields": ["confirm_secret"]})
        return display_name, identifier

    def _failure_notice(self, title: str, error: ApiError) -> None:
        self._context.notices.push("error", title, error.payload.message)


__all__ = ["AuthGateway"]
