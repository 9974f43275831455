"""Route guards as pure predicates over the current session.

Roles are resolved when the session is composed, so a guard never performs its
own lookup: it only reads ``session.identity.role``.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode

from filetrail.schemas.auth import Role, Session
from filetrail.schemas.notice import Notice

SIGN_IN_REQUIRED = Notice(level="error", title="Sign-in required", message="Please sign in to view this page.")
ACCESS_DENIED = Notice(
    level="error",
    title="Access denied",
    message="You do not have administrator access to this page.",
)


@dataclass(frozen=True, slots=True)
class GuardDecision:
    allowed: bool
    redirect_to: str | None = None
    # Location to offer back after login; only set for authentication failures.
    return_to: str | None = None
    notice: Notice | None = None


ALLOW = GuardDecision(allowed=True)


def login_redirect(login_path: str, requested_path: str) -> str:
    """Relative login URL carrying the originally requested location."""
    return f"{login_path}?{urlencode({'next': requested_path})}"


def is_relative_path(candidate: str | None) -> bool:
    """Only same-origin absolute paths are accepted as redirect targets."""
    if not candidate or not candidate.startswith("/") or candidate.startswith("//"):
        return False
    # Browsers drop tabs and newlines from URLs, so "/\t/host" would turn into "//host".
    return not any(ch == "\\" or ch < " " or ch == "\x7f" for ch in candidate)


def check_authenticated(
    session: Session | None,
    requested_path: str,
    *,
    now_ms: int,
    login_path: str = "/login",
) -> GuardDecision:
    if session is not None and session.is_valid(now_ms):
        return ALLOW
    return GuardDecision(
        allowed=False,
        redirect_to=login_redirect(login_path, requested_path),
        return_to=requested_path,
        notice=SIGN_IN_REQUIRED,
    )


def check_admin(
    session: Session | None,
    requested_path: str,
    *,
    now_ms: int,
    login_path: str = "/login",
    landing_path: str = "/dashboard",
) -> GuardDecision:
    if session is None or not session.is_valid(now_ms):
        return check_authenticated(session, requested_path, now_ms=now_ms, login_path=login_path)
    if session.identity.role is Role.ADMIN:
        return ALLOW
    # Authenticated but not elevated: an authorization failure, so no trip through the login page.
    return GuardDecision(allowed=False, redirect_to=landing_path, notice=ACCESS_DENIED)
