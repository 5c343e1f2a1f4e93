import asyncio

import pytest

from content_worker.core.inflight import InFlightRegistry


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_execution():
    registry = InFlightRegistry()
    calls = 0
    release = asyncio.Event()

    async def work():
        nonlocal calls
        calls += 1
        await release.wait()
        return "done"

    first = asyncio.create_task(registry.run("content:1", work))
    await asyncio.sleep(0)
    second = asyncio.create_task(registry.run("content:1", work))
    await asyncio.sleep(0)
    assert registry.is_running("content:1")

    release.set()
    assert await asyncio.gather(first, second) == ["done", "done"]
    assert calls == 1
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_entry_removed_after_failure():
    registry = InFlightRegistry()

    async def boom():
        raise RuntimeError("failed")

    with pytest.raises(RuntimeError):
        await registry.run("content:1", boom)
    assert not registry.is_running("content:1")

    async def ok():
        return 42

    assert await registry.run("content:1", ok) == 42


@pytest.mark.asyncio
async def test_different_keys_run_independently():
    registry = InFlightRegistry()
    calls = []

    async def work(key):
        calls.append(key)
        await asyncio.sleep(0)
        return key

    results = await asyncio.gather(
        registry.run("a", lambda: work("a")),
        registry.run("b", lambda: work("b")),
    )
    assert results == ["a", "b"]
    assert sorted(calls) == ["a", "b"]
