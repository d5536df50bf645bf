"""Per-scope moderation word lists mirrored from the durable store."""

import asyncio
import re
from functools import lru_cache
from typing import Optional

from loguru import logger

from durable_store import DurableStore
from errors import StoreUnavailable
from schemas import FilterAddResult, FilterRemoveResult


def normalize_term(term: str) -> str:
    folded = " ".join((term or "").split()).casefold()
    if not folded:
        raise ValueError("filter term must not be empty")
    return folded


@lru_cache(maxsize=4096)
def term_pattern(term: str) -> re.Pattern:
    """Literal term bounded by non-word characters (or the text edges)."""
    return re.compile(rf"(?<!\w){re.escape(term)}(?!\w)", re.IGNORECASE)


class FilterCache:
    """Scope id -> set of case-folded terms.

    A missing key means "not materialized yet", an empty set means "loaded, no
    filters". ``add``/``remove`` are serialized per scope so the durable write
    and the in-memory mirror never interleave with another mutation.
    """

    def __init__(self, store: DurableStore):
        self.store = store
        self.loaded = False
        self._sets: dict[Optional[str], set[str]] = {}
        self._locks: dict[Optional[str], asyncio.Lock] = {}
        self._load_lock = asyncio.Lock()

    def _lock_for(self, scope_id: Optional[str]) -> asyncio.Lock:
        lock = self._locks.get(scope_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[scope_id] = lock
        return lock

    async def load_all(self) -> int:
        """Bulk hydrate at startup. On store failure moderation starts empty."""
        try:
            entries = await asyncio.to_thread(self.store.load_all_filters)
        except StoreUnavailable as exc:
            logger.error(f"Error loading all filters, moderation starts with an empty cache: {exc}")
            self._sets = {}
            self.loaded = True
            return 0

        fresh: dict[Optional[str], set[str]] = {}
        for entry in entries:
            fresh.setdefault(entry.scope_id, set()).add(entry.term.casefold())
        self._sets = fresh
        self.loaded = True
        logger.info(f"Loaded filters into cache. Cache size: {len(fresh)} scopes.")
        return len(entries)

    async def ensure_loaded(self) -> None:
        """Moderation must not run against a cache that was never hydrated."""
        if self.loaded:
            return
        async with self._load_lock:
            if not self.loaded:
                await self.load_all()

    async def _load_scope(self, scope_id: Optional[str]) -> set[str]:
        # caller holds the scope lock
        words = await asyncio.to_thread(self.store.load_filters, scope_id)
        merged = self._sets.setdefault(scope_id, set())
        merged.update(w.casefold() for w in words)
        return merged

    async def add(self, scope_id: Optional[str], term: str) -> FilterAddResult:
        word = normalize_term(term)
        async with self._lock_for(scope_id):
            inserted = await asyncio.to_thread(self.store.insert_filter, scope_id, word)
            if scope_id not in self._sets:
                try:
                    await self._load_scope(scope_id)
                except StoreUnavailable as exc:
                    logger.warning(f"Could not hydrate filters for scope {scope_id}: {exc}")
            self._sets.setdefault(scope_id, set()).add(word)

        if inserted:
            logger.info(f"Added filtered word '{word}' for scope {scope_id}.")
            return FilterAddResult.ADDED
        logger.info(f"Filtered word '{word}' already exists for scope {scope_id}.")
        return FilterAddResult.ALREADY_PRESENT

    async def remove(self, scope_id: Optional[str], term: str) -> FilterRemoveResult:
        word = normalize_term(term)
        async with self._lock_for(scope_id):
            deleted = await asyncio.to_thread(self.store.delete_filter, scope_id, word)
            if not deleted:
                return FilterRemoveResult.NOT_FOUND
            # emptied scopes stay as empty sets: "loaded, no filters"
            self._sets.get(scope_id, set()).discard(word)

        logger.info(f"Removed filtered word '{word}' for scope {scope_id}.")
        return FilterRemoveResult.REMOVED

    async def list(self, scope_id: Optional[str]) -> set[str]:
        cached = self._sets.get(scope_id)
        if cached is not None:
            return set(cached)
        async with self._lock_for(scope_id):
            if scope_id in self._sets:
                return set(self._sets[scope_id])
            return set(await self._load_scope(scope_id))

    def contains_filtered_term(self, text: str, scope_id: Optional[str]) -> bool:
        if not text or not isinstance(text, str):
            return False
        terms = self._sets.get(scope_id) or ()
        if not terms:
            return False
        folded = text.casefold()
        return any(term_pattern(term).search(folded) for term in tuple(terms))

    def __contains__(self, scope_id: Optional[str]) -> bool:
        return scope_id in self._sets
