"""Browsing-context session lifecycle rules."""

from filetrail.errors import ApiError
from filetrail.schemas.auth import SessionState

_ALLOWED_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.ANONYMOUS: {SessionState.ANONYMOUS, SessionState.AUTHENTICATING},
    SessionState.AUTHENTICATING: {
        SessionState.AUTHENTICATING,
        SessionState.AUTHENTICATED,
        SessionState.ANONYMOUS,
    },
    SessionState.AUTHENTICATED: {
        SessionState.AUTHENTICATED,
        SessionState.AUTHENTICATING,
        SessionState.EXPIRED,
        SessionState.ANONYMOUS,
    },
    SessionState.EXPIRED: {SessionState.ANONYMOUS, SessionState.AUTHENTICATING},
}


def allowed_next_states(state: SessionState) -> list[SessionState]:
    """Return deterministically ordered allowed successors for a state."""
    return sorted(_ALLOWED_TRANSITIONS.get(state, set()), key=lambda s: s.value)


def can_transition(old_state: SessionState, new_state: SessionState) -> bool:
    return new_state in _ALLOWED_TRANSITIONS.get(old_state, set())


def ensure_transition(old_state: SessionState, new_state: SessionState) -> None:
    """Validate transition according to lifecycle rules."""
    if not can_transition(old_state, new_state):
        raise ApiError(
            status_code=409,
            code="SESSION_TRANSITION_INVALID",
            message="Invalid session state transition",
            details={
                "current_state": old_state,
                "attempted_state": new_state,
                "allowed_next_states": allowed_next_states(old_state),
            },
        )
