"""Observable session store: the single owner of "who is logged in" for a browsing context.

All mutation funnels through :meth:`SessionStore.set_current`, which writes device
storage first, then memory, then notifies observers synchronously. Every state
change it implies is checked against :mod:`filetrail.domain.session_fsm`. Writers that
claimed a generation with :meth:`SessionStore.begin` are fenced: a write tagged
with a superseded generation is discarded, so a slow login finishing after a
logout cannot resurrect the cleared session.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from pydantic import ValidationError as PydanticValidationError

from filetrail.domain.session_fsm import ensure_transition
from filetrail.schemas.auth import Session, SessionState
from filetrail.session.storage import SESSION_KEY, TOKEN_KEY, DeviceStorage

logger = logging.getLogger(__name__)

SessionObserver = Callable[[Session | None], None]


def epoch_ms() -> int:
    return int(time.time() * 1000)


class SessionStore:
    def __init__(self, storage: DeviceStorage, *, clock: Callable[[], int] = epoch_ms) -> None:
        self._storage = storage
        self._clock = clock
        self._session: Session | None = None
        self._state = SessionState.ANONYMOUS
        self._observers: list[SessionObserver] = []
        self._generation = 0

    @property
    def storage(self) -> DeviceStorage:
        return self._storage

    def now_ms(self) -> int:
        return self._clock()

    @property
    def state(self) -> SessionState:
        if (
            self._state is SessionState.AUTHENTICATED
            and self._session is not None
            and not self._session.is_valid(self._clock())
        ):
            return SessionState.EXPIRED
        return self._state

    def get_current(self) -> Session | None:
        """Return the usable session; expired or not-yet-revalidated sessions read as None."""
        if self.state is not SessionState.AUTHENTICATED:
            return None
        return self._session

    def peek(self) -> Session | None:
        """Return the held session even when expired or pending revalidation."""
        return self._session

    def begin(self) -> int:
        """Claim a new write generation; earlier generations can no longer write."""
        self._generation += 1
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def transition(self, new_state: SessionState, *, generation: int | None = None) -> bool:
        if generation is not None and not self.is_current(generation):
            return False
        ensure_transition(self.state, new_state)
        self._state = new_state
        return True

    def set_current(self, session: Session | None, *, generation: int | None = None) -> bool:
        if generation is not None and not self.is_current(generation):
            logger.info(
                "session.write_discarded generation=%s current_generation=%s",
                generation,
                self._generation,
            )
            return False

        ensure_transition(
            self.state,
            SessionState.AUTHENTICATED if session is not None else SessionState.ANONYMOUS,
        )
        if session is None:
            self._storage.remove_item(SESSION_KEY)
            self._storage.remove_item(TOKEN_KEY)
        else:
            self._storage.set_item(SESSION_KEY, session.model_dump_json())
            self._storage.set_item(TOKEN_KEY, session.token)

        self._session = session
        self._state = SessionState.AUTHENTICATED if session is not None else SessionState.ANONYMOUS
        self._notify()
        return True

    def subscribe(self, observer: SessionObserver) -> Callable[[], None]:
        """Register an observer; it is called at once with the current value, then on every change."""
        self._observers.append(observer)
        observer(self.get_current())

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def restore(self) -> Session | None:
        """Load the persisted session as an unverified hint pending revalidation."""
        raw_session = self._storage.get_item(SESSION_KEY)
        raw_token = self._storage.get_item(TOKEN_KEY)
        self._session = None
        self._state = SessionState.ANONYMOUS

        if raw_session is None or raw_token is None:
            if raw_session is not None or raw_token is not None:
                logger.warning("session.restore_discarded reason=partial_storage")
                self._clear_storage()
            return None

        try:
            session = Session.model_validate_json(raw_session)
        except PydanticValidationError:
            logger.warning("session.restore_discarded reason=unparseable_storage")
            self._clear_storage()
            return None

        if session.token != raw_token:
            logger.warning("session.restore_discarded reason=token_mismatch")
            self._clear_storage()
            return None

        self._session = session
        self._state = SessionState.AUTHENTICATING
        return session

    def _clear_storage(self) -> None:
        self._storage.remove_item(SESSION_KEY)
        self._storage.remove_item(TOKEN_KEY)

    def _notify(self) -> None:
        current = self.get_current()
        for observer in list(self._observers):
            try:
                observer(current)
            except Exception:
                logger.exception("session.observer_failed observer=%r", observer)
