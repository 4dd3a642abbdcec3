import asyncio

import pytest

from relgraph.features.network_sync.services.sync_gate import SyncGate


@pytest.mark.asyncio
async def test_same_user_is_serialized():
    gate = SyncGate()
    order = []

    async def run(tag):
        async with gate.hold("user-1"):
            order.append(f"{tag}-start")
            await asyncio.sleep(0.01)
            order.append(f"{tag}-end")

    await asyncio.gather(run("a"), run("b"))

    assert order == ["a-start", "a-end", "b-start", "b-end"]


@pytest.mark.asyncio
async def test_different_users_do_not_wait():
    gate = SyncGate()
    entered = asyncio.Event()

    async def first():
        async with gate.hold("user-1"):
            await asyncio.wait_for(entered.wait(), timeout=1)

    async def second():
        async with gate.hold("user-2"):
            entered.set()

    await asyncio.gather(first(), second())


@pytest.mark.asyncio
async def test_is_busy_and_cleanup():
    gate = SyncGate()

    async with gate.hold("user-1"):
        assert gate.is_busy("user-1") is True
        assert gate.is_busy("user-2") is False

    assert gate.is_busy("user-1") is False
    assert gate._locks == {}


@pytest.mark.asyncio
async def test_lock_released_on_error():
    gate = SyncGate()

    with pytest.raises(RuntimeError):
        async with gate.hold("user-1"):
            raise RuntimeError("boom")

    async with gate.hold("user-1"):
        assert gate.is_busy("user-1") is True
