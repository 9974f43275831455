"""Browsing contexts: one session store and notice queue per browser tab."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from filetrail.core.logging import safe_log_identifier
from filetrail.schemas.notice import Notice, NoticeLevel
from filetrail.session.storage import PRIVATE_KEY_KEY, DeviceStorage, FileDeviceStorage, MemoryDeviceStorage
from filetrail.session.store import SessionStore, epoch_ms

logger = logging.getLogger(__name__)

StorageFactory = Callable[[str], DeviceStorage]


class NoticeBoard:
    """Pending user-visible notices, drained by the next page or API read."""

    def __init__(self) -> None:
        self._pending: list[Notice] = []

    def push(self, level: NoticeLevel, title: str, message: str) -> Notice:
        notice = Notice(level=level, title=title, message=message)
        self._pending.append(notice)
        return notice

    def drain(self) -> list[Notice]:
        pending, self._pending = self._pending, []
        return pending

    def __len__(self) -> int:
        return len(self._pending)


@dataclass
class BrowsingContext:
    id: str
    store: SessionStore
    notices: NoticeBoard = field(default_factory=NoticeBoard)
    # Path a guard turned away, offered back after the next successful login.
    return_to: str | None = None
    # Set when a persisted session was restored and not yet confirmed with the provider.
    revalidation_pending: bool = False
    last_seen_ms: int = 0
    active_requests: int = 0

    def holds_state(self) -> bool:
        """Whether dropping the context would lose something its browser can come back for."""
        return (
            self.store.peek() is not None
            or self.return_to is not None
            or len(self.notices) > 0
            or self.store.storage.get_item(PRIVATE_KEY_KEY) is not None
        )


def memory_storage_factory() -> StorageFactory:
    return lambda _context_id: MemoryDeviceStorage()


def file_storage_factory(directory: Path | str) -> StorageFactory:
    base = Path(directory)
    return lambda context_id: FileDeviceStorage(base / f"{context_id}.json")


class BrowsingContextRegistry:
    """Open browsing contexts keyed by cookie id.

    Requests pair :meth:`checkout` with :meth:`release`. A released context that holds
    nothing is dropped at once; contexts left without a usable session are evicted by
    :meth:`cleanup_idle` once idle for ``idle_seconds``. Call :meth:`start_cleanup` on
    app startup and :meth:`stop_cleanup` on shutdown.
    """

    def __init__(
        self,
        storage_factory: StorageFactory | None = None,
        *,
        clock: Callable[[], int] = epoch_ms,
        idle_seconds: int = 3600,
        cleanup_interval_seconds: float = 300.0,
    ) -> None:
        self._storage_factory = storage_factory or memory_storage_factory()
        self._clock = clock
        self._idle_ms = idle_seconds * 1000
        self._cleanup_interval_seconds = cleanup_interval_seconds
        self._contexts: dict[str, BrowsingContext] = {}
        self._cleanup_task: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._contexts)

    def get(self, context_id: str) -> BrowsingContext | None:
        return self._contexts.get(context_id)

    def create(self, context_id: str | None = None) -> BrowsingContext:
        context_id = context_id or secrets.token_urlsafe(24)
        store = SessionStore(self._storage_factory(context_id), clock=self._clock)
        restored = store.restore()
        context = BrowsingContext(
            id=context_id,
            store=store,
            revalidation_pending=restored is not None,
            last_seen_ms=self._clock(),
        )
        self._contexts[context_id] = context
        logger.info(
            "context.opened context_id=%s restored_session=%s",
            safe_log_identifier(context_id, prefix="ctx"),
            restored is not None,
        )
        return context

    def get_or_create(self, context_id: str | None) -> BrowsingContext:
        if context_id:
            existing = self.get(context_id)
            if existing is not None:
                return existing
            # A cookie from before a restart or eviction: reopen it so persisted device storage is reused.
            if _is_safe_context_id(context_id):
                return self.create(context_id)
        return self.create()

    def checkout(self, context_id: str | None) -> BrowsingContext:
        context = self.get_or_create(context_id)
        context.active_requests += 1
        context.last_seen_ms = self._clock()
        return context

    def release(self, context: BrowsingContext) -> None:
        context.active_requests = max(context.active_requests - 1, 0)
        context.last_seen_ms = self._clock()
        if context.active_requests == 0 and not context.holds_state():
            self._discard(context)

    def cleanup_idle(self) -> int:
        """Evict idle contexts without a usable session. Return count of evicted contexts."""
        cutoff = self._clock() - self._idle_ms
        idle = [
            context
            for context in self._contexts.values()
            if context.active_requests == 0
            and context.last_seen_ms <= cutoff
            and context.store.get_current() is None
        ]
        for context in idle:
            self._discard(context)
        if idle:
            logger.info("context.evicted count=%s remaining=%s", len(idle), len(self._contexts))
        return len(idle)

    def start_cleanup(self) -> None:
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop_cleanup(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._cleanup_task
            self._cleanup_task = None

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self._cleanup_interval_seconds)
            self.cleanup_idle()

    def _discard(self, context: BrowsingContext) -> None:
        if self._contexts.get(context.id) is context:
            del self._contexts[context.id]


def _is_safe_context_id(context_id: str) -> bool:
    return 8 <= len(context_id) <= 64 and all(ch.isalnum() or ch in "-_" for ch in context_id)
