"""Alias store atomicity and snapshot tests."""

import asyncio
import datetime
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from shortener.errors import AliasAlreadyExists, StoreUnavailable
from shortener.models import AliasRecord, ClickEvent
from shortener.store import InMemoryAliasStore

NOW = datetime.datetime(2025, 1, 1, tzinfo=datetime.timezone.utc)


def _factory(alias_text: str, minutes: int = 30):
    return lambda: AliasRecord.create(alias_text, "https://example.com", minutes, NOW)


def _click(alias_text: str, referrer: str = "direct") -> ClickEvent:
    return ClickEvent(alias_text=alias_text, timestamp=NOW, ip_address="203.0.113.1", user_agent="pytest", referrer=referrer)


@pytest.mark.asyncio
async def test_create_if_absent_inserts_and_get_returns(store: InMemoryAliasStore) -> None:
    record = await store.create_if_absent("abc123", _factory("abc123"))
    assert await store.get("abc123") is record
    assert await store.get("missing") is None
    assert len(store) == 1


@pytest.mark.asyncio
async def test_create_if_absent_rejects_duplicate_without_calling_factory(store: InMemoryAliasStore) -> None:
    await store.create_if_absent("dup", _factory("dup"))
    calls = []

    def factory() -> AliasRecord:
        calls.append(1)
        return AliasRecord.create("dup", "https://other.example", 5, NOW)

    with pytest.raises(AliasAlreadyExists):
        await store.create_if_absent("dup", factory)
    assert calls == []
    assert (await store.get("dup")).original_url == "https://example.com"


@pytest.mark.asyncio
async def test_concurrent_tasks_racing_on_same_alias_have_one_winner(store: InMemoryAliasStore) -> None:
    results = await asyncio.gather(
        *(store.create_if_absent("race", _factory("race")) for _ in range(50)),
        return_exceptions=True,
    )
    winners = [r for r in results if isinstance(r, AliasRecord)]
    losers = [r for r in results if isinstance(r, AliasAlreadyExists)]
    assert len(winners) == 1
    assert len(losers) == 49


def test_concurrent_threads_racing_on_same_alias_have_one_winner(store: InMemoryAliasStore) -> None:
    workers = 16
    barrier = threading.Barrier(workers)

    def attempt() -> bool:
        barrier.wait()
        try:
            asyncio.run(store.create_if_absent("thread", _factory("thread")))
            return True
        except AliasAlreadyExists:
            return False

    with ThreadPoolExecutor(max_workers=workers) as pool:
        outcomes = list(pool.map(lambda _: attempt(), range(workers)))

    assert outcomes.count(True) == 1
    assert len(store) == 1


@pytest.mark.asyncio
async def test_append_click_unknown_alias_returns_false(store: InMemoryAliasStore) -> None:
    assert await store.append_click("nope", _click("nope")) is False


@pytest.mark.asyncio
async def test_append_click_preserves_order(store: InMemoryAliasStore) -> None:
    await store.create_if_absent("ordered", _factory("ordered"))
    for i in range(5):
        assert await store.append_click("ordered", _click("ordered", referrer=f"ref{i}")) is True

    record = await store.get("ordered")
    assert [c.referrer for c in record.click_snapshot()] == [f"ref{i}" for i in range(5)]


def test_concurrent_appends_from_threads_are_all_kept(store: InMemoryAliasStore) -> None:
    asyncio.run(store.create_if_absent("busy", _factory("busy")))
    per_thread = 200

    def worker(thread_no: int) -> None:
        async def run() -> None:
            for i in range(per_thread):
                await store.append_click("busy", _click("busy", referrer=f"t{thread_no}-{i}"))

        asyncio.run(run())

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(worker, range(8)))

    clicks = asyncio.run(store.get("busy")).click_snapshot()
    assert len(clicks) == 8 * per_thread
    for thread_no in range(8):
        own = [c.referrer for c in clicks if c.referrer.startswith(f"t{thread_no}-")]
        assert own == [f"t{thread_no}-{i}" for i in range(per_thread)]


@pytest.mark.asyncio
async def test_list_all_is_a_snapshot(store: InMemoryAliasStore) -> None:
    await store.create_if_absent("one", _factory("one"))
    snapshot = await store.list_all()
    await store.create_if_absent("two", _factory("two"))

    assert [r.alias_text for r in snapshot] == ["one"]
    assert [r.alias_text for r in await store.list_all()] == ["one", "two"]


@pytest.mark.asyncio
async def test_set_active_and_list_active(store: InMemoryAliasStore) -> None:
    await store.create_if_absent("live", _factory("live"))
    await store.create_if_absent("off", _factory("off"))
    await store.create_if_absent("short", _factory("short", minutes=1))

    assert await store.set_active("off", False) is True
    assert await store.set_active("ghost", False) is False

    later = NOW + datetime.timedelta(minutes=5)
    assert [r.alias_text for r in await store.list_active(later)] == ["live"]


@pytest.mark.asyncio
async def test_closed_store_is_unavailable(store: InMemoryAliasStore) -> None:
    await store.create_if_absent("abc", _factory("abc"))
    await store.close()

    assert store.is_open is False
    with pytest.raises(StoreUnavailable):
        await store.get("abc")
    with pytest.raises(StoreUnavailable):
        await store.create_if_absent("def", _factory("def"))
    with pytest.raises(StoreUnavailable):
        await store.list_all()
