"""Session lifecycle transition tests."""

from __future__ import annotations

import unittest

from filetrail.domain.session_fsm import allowed_next_states, can_transition, ensure_transition
from filetrail.errors import ApiError
from filetrail.schemas.auth import SessionState


class SessionFsmUnitTests(unittest.TestCase):
    def test_allowed_transition_examples_across_lifecycle(self) -> None:
        allowed_pairs = [
            (SessionState.ANONYMOUS, SessionState.ANONYMOUS),
            (SessionState.ANONYMOUS, SessionState.AUTHENTICATING),
            (SessionState.AUTHENTICATING, SessionState.AUTHENTICATED),
            (SessionState.AUTHENTICATING, SessionState.ANONYMOUS),
            (SessionState.AUTHENTICATED, SessionState.AUTHENTICATED),
            (SessionState.AUTHENTICATED, SessionState.EXPIRED),
            (SessionState.AUTHENTICATED, SessionState.ANONYMOUS),
            (SessionState.EXPIRED, SessionState.ANONYMOUS),
            (SessionState.EXPIRED, SessionState.AUTHENTICATING),
        ]
        for old_state, new_state in allowed_pairs:
            with self.subTest(old_state=old_state, new_state=new_state):
                ensure_transition(old_state, new_state)
                self.assertTrue(can_transition(old_state, new_state))

    def test_forbidden_transitions_return_contract_shape(self) -> None:
        invalid_pairs = [
            (SessionState.ANONYMOUS, SessionState.AUTHENTICATED),
            (SessionState.ANONYMOUS, SessionState.EXPIRED),
            (SessionState.EXPIRED, SessionState.AUTHENTICATED),
        ]
        for old_state, new_state in invalid_pairs:
            with self.subTest(old_state=old_state, new_state=new_state):
                with self.assertRaises(ApiError) as context:
                    ensure_transition(old_state, new_state)
                self.assertEqual(context.exception.status_code, 409)
                self.assertEqual(context.exception.payload.code, "SESSION_TRANSITION_INVALID")
                details = context.exception.payload.details
                self.assertEqual(details["current_state"], old_state)
                self.assertEqual(details["attempted_state"], new_state)
                self.assertEqual(details["allowed_next_states"], allowed_next_states(old_state))

    def test_allowed_next_states_are_sorted(self) -> None:
        self.assertEqual(
            allowed_next_states(SessionState.EXPIRED),
            [SessionState.ANONYMOUS, SessionState.AUTHENTICATING],
        )


if __name__ == "__main__":
    unittest.main()
