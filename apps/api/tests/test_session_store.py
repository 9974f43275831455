"""Session store, device storage and browsing-context tests."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from filetrail.errors import ApiError
from filetrail.schemas.auth import Identity, Role, Session, SessionState
from filetrail.session.context import BrowsingContextRegistry, file_storage_factory
from filetrail.session.storage import (
    PRIVATE_KEY_KEY,
    SESSION_KEY,
    TOKEN_KEY,
    FileDeviceStorage,
    MemoryDeviceStorage,
)
from filetrail.session.store import SessionStore


class _Clock:
    def __init__(self, now_ms: int = 1_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


def _session(*, token: str = "tok-1", expires_at: int = 2_000_000, role: Role = Role.USER) -> Session:
    return Session(
        token=token,
        identity=Identity(id="user-1", display_name="Ada", email="ada@example.com", role=role),
        expires_at=expires_at,
    )


def _authenticate(store: SessionStore, session: Session) -> bool:
    store.transition(SessionState.AUTHENTICATING)
    return store.set_current(session)


class SessionStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _Clock()
        self.storage = MemoryDeviceStorage()
        self.store = SessionStore(self.storage, clock=self.clock)

    def test_set_current_persists_before_notifying(self) -> None:
        seen: list[tuple[Session | None, str | None]] = []
        self.store.subscribe(lambda session: seen.append((session, self.storage.get_item(TOKEN_KEY))))

        session = _session()
        self.assertTrue(_authenticate(self.store, session))

        self.assertEqual(seen, [(None, None), (session, "tok-1")])
        self.assertEqual(self.store.state, SessionState.AUTHENTICATED)
        self.assertEqual(self.store.get_current(), session)
        self.assertEqual(Session.model_validate_json(self.storage.get_item(SESSION_KEY)), session)

    def test_clearing_removes_both_keys_and_keeps_other_entries(self) -> None:
        self.storage.set_item(PRIVATE_KEY_KEY, "ab" * 32)
        _authenticate(self.store, _session())

        self.store.set_current(None)

        self.assertIsNone(self.storage.get_item(SESSION_KEY))
        self.assertIsNone(self.storage.get_item(TOKEN_KEY))
        self.assertEqual(self.storage.get_item(PRIVATE_KEY_KEY), "ab" * 32)
        self.assertEqual(self.store.state, SessionState.ANONYMOUS)

    def test_expired_session_reads_as_none(self) -> None:
        _authenticate(self.store, _session(expires_at=1_500_000))
        self.clock.now_ms = 1_500_000

        self.assertEqual(self.store.state, SessionState.EXPIRED)
        self.assertIsNone(self.store.get_current())
        self.assertIsNotNone(self.store.peek())

    def test_superseded_generation_cannot_write(self) -> None:
        stale = self.store.begin()
        fresh = self.store.begin()

        self.assertFalse(self.store.set_current(_session(), generation=stale))
        self.assertIsNone(self.store.get_current())
        self.assertIsNone(self.storage.get_item(SESSION_KEY))

        self.assertTrue(self.store.transition(SessionState.AUTHENTICATING, generation=fresh))
        self.assertTrue(self.store.set_current(_session(), generation=fresh))
        self.assertFalse(self.store.transition(SessionState.AUTHENTICATING, generation=stale))

    def test_session_cannot_be_stored_without_authenticating_first(self) -> None:
        seen: list[Session | None] = []
        self.store.subscribe(seen.append)

        with self.assertRaises(ApiError) as context:
            self.store.set_current(_session())

        self.assertEqual(context.exception.payload.code, "SESSION_TRANSITION_INVALID")
        self.assertEqual(self.store.state, SessionState.ANONYMOUS)
        self.assertIsNone(self.storage.get_item(SESSION_KEY))
        self.assertEqual(seen, [None])

    def test_expired_session_cannot_be_refreshed_in_place(self) -> None:
        _authenticate(self.store, _session(expires_at=1_500_000))
        self.clock.now_ms = 1_600_000

        with self.assertRaises(ApiError):
            self.store.set_current(_session(expires_at=3_000_000))

        self.store.set_current(None)
        self.assertEqual(self.store.state, SessionState.ANONYMOUS)

    def test_unsubscribe_stops_notifications(self) -> None:
        seen: list[Session | None] = []
        unsubscribe = self.store.subscribe(seen.append)
        unsubscribe()

        _authenticate(self.store, _session())

        self.assertEqual(seen, [None])

    def test_failing_observer_does_not_block_others(self) -> None:
        seen: list[Session | None] = []

        def broken(_session: Session | None) -> None:
            raise RuntimeError("observer bug")

        self.store._observers.append(broken)
        self.store.subscribe(seen.append)

        with self.assertLogs("filetrail.session.store", level="ERROR"):
            _authenticate(self.store, _session())

        self.assertEqual(len(seen), 2)


class SessionRestoreTests(unittest.TestCase):
    def test_restore_holds_session_pending_revalidation(self) -> None:
        storage = MemoryDeviceStorage()
        session = _session()
        storage.set_item(SESSION_KEY, session.model_dump_json())
        storage.set_item(TOKEN_KEY, session.token)
        store = SessionStore(storage, clock=_Clock())

        self.assertEqual(store.restore(), session)
        self.assertEqual(store.state, SessionState.AUTHENTICATING)
        self.assertIsNone(store.get_current())
        self.assertEqual(store.peek(), session)

    def test_restore_discards_partial_or_inconsistent_storage(self) -> None:
        session = _session()
        cases = {
            "session_only": {SESSION_KEY: session.model_dump_json()},
            "token_only": {TOKEN_KEY: session.token},
            "unparseable": {SESSION_KEY: "{not json", TOKEN_KEY: session.token},
            "token_mismatch": {SESSION_KEY: session.model_dump_json(), TOKEN_KEY: "other-token"},
        }
        for name, initial in cases.items():
            with self.subTest(case=name):
                storage = MemoryDeviceStorage(initial)
                store = SessionStore(storage, clock=_Clock())

                with self.assertLogs("filetrail.session.store", level="WARNING"):
                    self.assertIsNone(store.restore())

                self.assertEqual(store.state, SessionState.ANONYMOUS)
                self.assertIsNone(storage.get_item(SESSION_KEY))
                self.assertIsNone(storage.get_item(TOKEN_KEY))


class FileDeviceStorageTests(unittest.TestCase):
    def test_values_survive_a_new_storage_instance(self) -> None:
        with tempfile.TemporaryDirectory() as directory:
            path = Path(directory) / "ctx.json"
            FileDeviceStorage(path).set_item(TOKEN_KEY, "tok-1")

            reopened = FileDeviceStorage(path)
            self.assertEqual(reopened.get_item(TOKEN_KEY), "tok-1")

            reopened.remove_item(TOKEN_KEY)
            self.assertIsNone(FileDeviceStorage(path).get_item(TOKEN_KEY))

    def test_corrupt_file_reads_as_empty(self) -> None:
        with tempfile.TemporaryDirectory() as directory:
            path = Path(directory) / "ctx.json"
            path.write_text("not json", encoding="utf-8")

            self.assertIsNone(FileDeviceStorage(path).get_item(SESSION_KEY))


class BrowsingContextRegistryTests(unittest.TestCase):
    def test_contexts_are_isolated(self) -> None:
        registry = BrowsingContextRegistry()
        first = registry.create()
        second = registry.create()

        _authenticate(first.store, _session())

        self.assertNotEqual(first.id, second.id)
        self.assertIsNone(second.store.get_current())
        self.assertIs(registry.get_or_create(first.id), first)

    def test_reopened_context_restores_persisted_session(self) -> None:
        with tempfile.TemporaryDirectory() as directory:
            registry = BrowsingContextRegistry(file_storage_factory(directory), clock=_Clock())
            context = registry.create("context-abc123")
            _authenticate(context.store, _session())

            restarted = BrowsingContextRegistry(file_storage_factory(directory), clock=_Clock())
            reopened = restarted.get_or_create("context-abc123")

            self.assertEqual(reopened.id, "context-abc123")
            self.assertTrue(reopened.revalidation_pending)
            self.assertEqual(reopened.store.state, SessionState.AUTHENTICATING)

    def test_released_context_holding_nothing_is_dropped(self) -> None:
        registry = BrowsingContextRegistry()

        for _ in range(50):
            registry.release(registry.checkout(None))

        self.assertEqual(len(registry), 0)

    def test_context_stays_while_another_request_uses_it(self) -> None:
        registry = BrowsingContextRegistry()
        first = registry.checkout(None)
        second = registry.checkout(first.id)
        self.assertIs(first, second)

        registry.release(first)
        self.assertIs(registry.get(first.id), first)

        registry.release(second)
        self.assertIsNone(registry.get(first.id))

    def test_idle_cleanup_evicts_contexts_without_a_usable_session(self) -> None:
        clock = _Clock()
        registry = BrowsingContextRegistry(clock=clock, idle_seconds=60)
        noticed = registry.checkout(None)
        noticed.notices.push("info", "Session ended", "Please sign in again.")
        registry.release(noticed)
        signed_in = registry.checkout(None)
        _authenticate(signed_in.store, _session(expires_at=2_000_000))
        registry.release(signed_in)

        self.assertEqual(registry.cleanup_idle(), 0)
        self.assertEqual(len(registry), 2)

        clock.now_ms += 60_000
        self.assertEqual(registry.cleanup_idle(), 1)
        self.assertIsNone(registry.get(noticed.id))
        self.assertIs(registry.get(signed_in.id), signed_in)

        clock.now_ms = 2_000_000
        self.assertEqual(registry.cleanup_idle(), 1)
        self.assertEqual(len(registry), 0)

    def test_unsafe_context_id_gets_a_fresh_context(self) -> None:
        registry = BrowsingContextRegistry()

        context = registry.get_or_create("../../etc/passwd")

        self.assertNotEqual(context.id, "../../etc/passwd")


if __name__ == "__main__":
    unittest.main()
