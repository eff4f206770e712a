"""
Tests for CacheNode memory and backing-store operations.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from cachetree.cache.node import CacheNode
from cachetree.events import CacheEvent


@pytest.mark.asyncio
async def test_memory_only_node_without_hooks():
    """cache/get/has/exists work with no hooks configured."""
    node = CacheNode()

    node.cache("a", 1)

    assert node.get("a") == 1
    assert node.has("a") is True
    assert await node.exists("a") is True
    assert await node.exists("b") is False


def test_get_missing_returns_none_and_never_loads():
    loader = AsyncMock(return_value="x")
    node = CacheNode(loader=loader)

    assert node.get("a") is None
    loader.assert_not_called()


def test_cache_updates_existing_item_in_place():
    node = CacheNode()
    node.cache("a", 1)
    item = node.entries["a"]
    item.mark_saved()

    node.cache("a", 2)

    assert node.entries["a"] is item
    assert item.data == 2
    assert item.dirty is True


@pytest.mark.asyncio
async def test_cache_never_calls_saver():
    saver = AsyncMock()
    node = CacheNode(saver=saver)

    node.cache("a", 1)
    await asyncio.sleep(0)

    saver.assert_not_called()
    assert node.entries["a"].dirty is True


@pytest.mark.asyncio
async def test_fetch_loads_missing_value_clean(store):
    store.data["/a"] = {"v": 1}
    node = CacheNode(**store.hooks())

    value = await node.fetch("a")

    assert value == {"v": 1}
    assert store.loads == ["/a"]
    item = node.entries["a"]
    assert item.dirty is False
    assert item.last_save == item.last_access


@pytest.mark.asyncio
async def test_fetch_resident_value_never_loads(store):
    node = CacheNode(**store.hooks())
    node.cache("a", 5)

    assert await node.fetch("a") == 5
    assert store.loads == []


@pytest.mark.asyncio
async def test_fetch_not_found_caches_nothing():
    node = CacheNode(loader=AsyncMock(return_value=None))

    assert await node.fetch("missing") is None
    assert node.has("missing") is False


@pytest.mark.asyncio
async def test_fetch_without_loader_returns_none():
    assert await CacheNode().fetch("a") is None


@pytest.mark.asyncio
async def test_fetch_applies_reviver_to_loaded_values_only():
    reviver = lambda raw: {"revived": raw}  # noqa: E731
    node = CacheNode(loader=AsyncMock(return_value=3), reviver=reviver)

    assert await node.fetch("a") == {"revived": 3}
    assert node.get("a") == {"revived": 3}

    node.cache("b", 4)
    assert await node.fetch("b") == 4


@pytest.mark.asyncio
async def test_fetch_failure_emits_error_and_returns_none():
    loader = AsyncMock(side_effect=OSError("unreadable"))
    node = CacheNode(loader=loader)
    errors = []
    node.on(CacheEvent.ERROR, lambda phase, key: errors.append((phase, key)))

    assert await node.fetch("a") is None
    assert errors == [("fetch", "a")]
    assert node.has("a") is False


@pytest.mark.asyncio
async def test_fetch_reviver_failure_is_swallowed():
    def reviver(raw):
        raise ValueError("bad payload")

    node = CacheNode(loader=AsyncMock(return_value="raw"), reviver=reviver)
    errors = []
    node.on("error", lambda *args: errors.append(args))

    assert await node.fetch("a") is None
    assert errors == [("fetch", "a")]


@pytest.mark.asyncio
async def test_concurrent_misses_each_invoke_loader():
    """Overlapping fetches of the same key are not coalesced."""
    release = asyncio.Event()
    results = iter(["first", "second"])
    calls = []

    async def loader(key):
        calls.append(key)
        await release.wait()
        return next(results)

    node = CacheNode(loader=loader)
    first = asyncio.create_task(node.fetch("k"))
    second = asyncio.create_task(node.fetch("k"))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    release.set()

    assert await first == "first"
    assert await second == "second"
    assert calls == ["/k", "/k"]
    assert node.get("k") == "second"


@pytest.mark.asyncio
async def test_store_saves_and_caches_clean(store):
    node = CacheNode(**store.hooks())

    assert await node.store("x", {"a": 1}) is None

    assert node.get("x") == {"a": 1}
    assert store.saves == [("/x", {"a": 1})]
    assert store.loads == []
    assert node.entries["x"].dirty is False


@pytest.mark.asyncio
async def test_store_failure_resolves_to_error():
    node = CacheNode(saver=AsyncMock(side_effect=RuntimeError("disk-full")))

    outcome = await node.store("x", {"a": 1})

    assert isinstance(outcome, RuntimeError)
    assert str(outcome) == "disk-full"
    assert node.get("x") == {"a": 1}


@pytest.mark.asyncio
async def test_store_marks_saved_before_saver_runs():
    seen = {}
    node = CacheNode()

    async def saver(key, value):
        seen["dirty"] = node.entries["x"].dirty

    node.saver = saver
    await node.store("x", 1)

    assert seen == {"dirty": False}


@pytest.mark.asyncio
async def test_store_without_saver_is_local_only():
    node = CacheNode()

    assert await node.store("x", 1) is None
    assert node.get("x") == 1


@pytest.mark.asyncio
async def test_store_replaces_existing_item():
    node = CacheNode()
    node.cache("x", 1)
    old = node.entries["x"]

    await node.store("x", 2)

    assert node.entries["x"] is not old
    assert node.get("x") == 2


@pytest.mark.asyncio
async def test_delete_removes_locally_then_calls_deleter(store):
    store.data["/a"] = 1
    node = CacheNode(**store.hooks())
    node.cache("a", 1)

    assert await node.delete("a") is True

    assert node.has("a") is False
    assert store.deletes == ["/a"]
    assert "/a" not in store.data


@pytest.mark.asyncio
async def test_delete_failure_resolves_to_error():
    node = CacheNode(deleter=AsyncMock(side_effect=PermissionError("denied")))
    node.cache("a", 1)

    outcome = await node.delete("a")

    assert isinstance(outcome, PermissionError)
    assert node.has("a") is False


@pytest.mark.asyncio
async def test_delete_without_deleter_is_local_only():
    node = CacheNode()
    node.cache("a", 1)

    assert await node.delete("a") is None
    assert node.has("a") is False


@pytest.mark.asyncio
async def test_free_never_calls_deleter():
    deleter = AsyncMock(return_value=True)
    node = CacheNode(deleter=deleter)
    node.cache("a", 1)

    node.free("a")
    node.free("not-there")

    assert node.has("a") is False
    deleter.assert_not_called()


@pytest.mark.asyncio
async def test_exists_consults_checker_only_on_local_miss():
    checker = AsyncMock(return_value=True)
    node = CacheNode(checker=checker)
    node.cache("a", 1)

    assert await node.exists("a") is True
    checker.assert_not_called()

    assert await node.exists("b") is True
    checker.assert_awaited_once_with("/b")


def test_root_cache_key_is_normalized():
    assert CacheNode().cache_key == "/"
    assert CacheNode(cache_key="app").cache_key == "app/"
    assert CacheNode(cache_key="app", separator=":").cache_key == "app:"


@pytest.mark.asyncio
async def test_full_key_uses_prefix(store):
    node = CacheNode(cache_key="app/", **store.hooks())

    await node.store("x", 1)

    assert store.saves == [("app/x", 1)]


def test_options_and_keywords_are_exclusive():
    with pytest.raises(TypeError):
        CacheNode({"cache_key": "a"}, cache_key="b")


def test_entries_view_is_read_only():
    node = CacheNode()
    node.cache("a", 1)

    with pytest.raises(TypeError):
        node.entries["b"] = 2  # type: ignore[index]
    assert len(node) == 1
    assert "a" in node


@pytest.mark.asyncio
async def test_plain_function_hooks_are_accepted():
    backing = {"/a": "loaded"}
    saved = []
    node = CacheNode(
        loader=backing.get,
        saver=lambda key, value: saved.append((key, value)),
        checker=lambda key: key in backing,
        deleter=lambda key: backing.pop(key, None) is not None,
    )

    assert await node.fetch("a") == "loaded"
    assert await node.exists("b") is False
    backing["/b"] = 1
    assert await node.exists("b") is True
    assert await node.store("c", 3) is None
    assert saved == [("/c", 3)]
    assert await node.delete("b") is True


@pytest.mark.asyncio
async def test_plain_function_loader_failure_emits_error():
    def loader(key):
        raise KeyError(key)

    node = CacheNode(loader=loader)
    errors = []
    node.on(CacheEvent.ERROR, lambda *args: errors.append(args))

    assert await node.fetch("a") is None
    assert errors == [("fetch", "a")]


def test_unknown_option_is_rejected():
    with pytest.raises(ValidationError):
        CacheNode(cacheKey="app")
