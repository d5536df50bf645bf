"""Per-conversation bounded window of recent turns, hydrated lazily from the durable store."""

import asyncio
from collections import OrderedDict, deque
from typing import Optional

from loguru import logger

from durable_store import DurableStore
from errors import StoreUnavailable
from schemas import ConversationWindow, Turn


class HistoryCache:
    """Owns every cached window; all mutation goes through ``get_or_load``/``append``.

    Operations on one conversation id are serialized by a per-id ``asyncio.Lock``.
    With ``max_conversations > 0`` the least recently used idle windows are
    dropped and rehydrated from the store on next use. A window is idle when
    its lock is free and no durable write for it is outstanding
    (``write_started``/``write_finished``).
    """

    def __init__(self, store: DurableStore, window_size: int = 50, max_conversations: int = 0):
        self.store = store
        self.window_size = max(1, int(window_size))
        self.max_conversations = max(0, int(max_conversations))
        self._windows: "OrderedDict[str, deque[Turn]]" = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}
        # durable writes still in flight per conversation; such windows are never evicted
        self._pending_writes: dict[str, int] = {}

    def _lock_for(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    def _snapshot(self, conversation_id: str, warning: Optional[str] = None) -> ConversationWindow:
        return ConversationWindow(
            conversation_id=conversation_id,
            turns=list(self._windows[conversation_id]),
            load_warning=warning,
        )

    async def _ensure_loaded(self, conversation_id: str) -> Optional[str]:
        # caller holds the conversation lock
        if conversation_id in self._windows:
            self._windows.move_to_end(conversation_id)
            return None

        warning = None
        try:
            turns = await asyncio.to_thread(self.store.load_recent, conversation_id, self.window_size)
            logger.debug(f"Loaded {len(turns)} recent messages for conversation {conversation_id}.")
        except StoreUnavailable as exc:
            logger.warning(f"History load failed for {conversation_id}, starting empty: {exc}")
            turns = []
            warning = str(exc)

        self._windows[conversation_id] = deque(turns, maxlen=self.window_size)
        self._evict_cold(keep=conversation_id)
        return warning

    def _evict_cold(self, keep: str) -> None:
        if not self.max_conversations:
            return
        for cid in list(self._windows.keys()):
            if len(self._windows) <= self.max_conversations:
                break
            if cid == keep:
                continue
            lock = self._locks.get(cid)
            if lock is not None and lock.locked():
                continue
            if self._pending_writes.get(cid):
                continue
            del self._windows[cid]
            self._locks.pop(cid, None)
            logger.debug(f"Evicted cold conversation window {cid}.")

    async def get_or_load(self, conversation_id: str) -> ConversationWindow:
        async with self._lock_for(conversation_id):
            warning = await self._ensure_loaded(conversation_id)
            return self._snapshot(conversation_id, warning)

    async def append(self, conversation_id: str, turn: Turn) -> ConversationWindow:
        """Append to the in-memory window only; persistence is the caller's job."""
        async with self._lock_for(conversation_id):
            warning = await self._ensure_loaded(conversation_id)
            # deque(maxlen=N) drops from the left once full
            self._windows[conversation_id].append(turn)
            return self._snapshot(conversation_id, warning)

    def peek(self, conversation_id: str) -> Optional[ConversationWindow]:
        """Cached window without hydrating; None when not materialized."""
        if conversation_id not in self._windows:
            return None
        return self._snapshot(conversation_id)

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._windows

    def __len__(self) -> int:
        return len(self._windows)

    def write_started(self, conversation_id: str) -> None:
        self._pending_writes[conversation_id] = self._pending_writes.get(conversation_id, 0) + 1

    def write_finished(self, conversation_id: str) -> None:
        remaining = self._pending_writes.get(conversation_id, 0) - 1
        if remaining > 0:
            self._pending_writes[conversation_id] = remaining
        else:
            self._pending_writes.pop(conversation_id, None)
