import asyncio

from conftest import BrokenStore
from history_cache import HistoryCache
from schemas import SpeakerRole, Turn


def _texts(window):
    return [t.text for t in window.turns]


def test_window_never_exceeds_size_and_keeps_latest(store):
    cache = HistoryCache(store, window_size=3)

    async def run():
        lengths = []
        for i in range(7):
            window = await cache.append("c1", Turn.user("alice", f"m{i}"))
            lengths.append(len(window.turns))
        return lengths, await cache.get_or_load("c1")

    lengths, window = asyncio.run(run())
    assert lengths == [1, 2, 3, 3, 3, 3, 3]
    assert _texts(window) == ["m4", "m5", "m6"]


def test_short_sequence_keeps_everything_in_order(store):
    cache = HistoryCache(store, window_size=10)

    async def run():
        await cache.append("c1", Turn.user("alice", "one"))
        await cache.append("c1", Turn.assistant("bot", "two"))
        return await cache.get_or_load("c1")

    window = asyncio.run(run())
    assert _texts(window) == ["one", "two"]
    assert [t.speaker_role for t in window.turns] == [SpeakerRole.USER, SpeakerRole.ASSISTANT]


def test_lazy_load_hydrates_most_recent_from_store(store):
    for i in range(6):
        store.append_turn("c1", Turn.user("alice", f"old{i}"))
    cache = HistoryCache(store, window_size=4)

    window = asyncio.run(cache.get_or_load("c1"))
    assert _texts(window) == ["old2", "old3", "old4", "old5"]
    assert window.load_warning is None


def test_append_does_not_write_to_store(store):
    cache = HistoryCache(store, window_size=4)
    asyncio.run(cache.append("c1", Turn.user("alice", "hello")))
    assert store.count_turns("c1") == 0


def test_windows_are_independent(store):
    cache = HistoryCache(store, window_size=2)

    async def run():
        await cache.append("a", Turn.user("alice", "a1"))
        await cache.append("b", Turn.user("bob", "b1"))
        await cache.append("a", Turn.user("alice", "a2"))
        return await cache.get_or_load("a"), await cache.get_or_load("b")

    a, b = asyncio.run(run())
    assert _texts(a) == ["a1", "a2"]
    assert _texts(b) == ["b1"]


def test_store_failure_installs_empty_window_with_warning():
    cache = HistoryCache(BrokenStore(), window_size=5)

    async def run():
        first = await cache.get_or_load("c1")
        appended = await cache.append("c1", Turn.user("alice", "still works"))
        return first, appended

    first, appended = asyncio.run(run())
    assert first.turns == []
    assert "unavailable" in first.load_warning
    # second access uses the installed window, no second failed load
    assert appended.load_warning is None
    assert _texts(appended) == ["still works"]


def test_concurrent_appends_to_one_conversation_are_not_lost(store):
    cache = HistoryCache(store, window_size=100)

    async def run():
        await asyncio.gather(*(cache.append("c1", Turn.user("u", str(i))) for i in range(40)))
        return await cache.get_or_load("c1")

    window = asyncio.run(run())
    assert sorted(int(t) for t in _texts(window)) == list(range(40))


def test_lru_bound_evicts_cold_windows_and_reloads_from_store(store):
    cache = HistoryCache(store, window_size=5, max_conversations=2)

    async def run():
        await cache.append("a", Turn.user("u", "a-cached-only"))
        store.append_turn("a", Turn.user("u", "a-durable"))
        await cache.append("b", Turn.user("u", "b1"))
        await cache.append("c", Turn.user("u", "c1"))
        evicted = "a" not in cache
        reloaded = await cache.get_or_load("a")
        return evicted, reloaded

    evicted, reloaded = asyncio.run(run())
    assert evicted
    assert _texts(reloaded) == ["a-durable"]
    assert len(cache) == 2


def test_peek_does_not_hydrate(store):
    store.append_turn("c1", Turn.user("alice", "persisted"))
    cache = HistoryCache(store, window_size=5)
    assert cache.peek("c1") is None
    asyncio.run(cache.get_or_load("c1"))
    assert _texts(cache.peek("c1")) == ["persisted"]


def test_windows_with_outstanding_writes_survive_eviction(store):
    cache = HistoryCache(store, window_size=5, max_conversations=1)

    async def run():
        await cache.append("a", Turn.user("u", "a1"))
        cache.write_started("a")
        await cache.append("b", Turn.user("u", "b1"))
        kept = "a" in cache
        cache.write_finished("a")
        await cache.append("c", Turn.user("u", "c1"))
        return kept

    kept = asyncio.run(run())
    assert kept
    assert "a" not in cache
    assert "c" in cache
