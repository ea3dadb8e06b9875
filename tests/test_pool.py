import asyncio

import pytest

from searchengine.pool import CrawlPool, PoolShutdownError


@pytest.mark.asyncio
async def test_slot_bounds_concurrency():
    pool = CrawlPool(2, name="test")
    running = 0
    peak = 0

    async def job():
        nonlocal running, peak
        async with pool.slot():
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

    tasks = [pool.submit(job()) for _ in range(6)]
    await asyncio.gather(*tasks)

    assert peak == 2
    assert pool.active_tasks == 0


@pytest.mark.asyncio
async def test_parent_waiting_on_children_holds_no_slot():
    pool = CrawlPool(1, name="test")
    visited = []

    async def visit(depth: int):
        async with pool.slot():
            visited.append(depth)
        if depth < 3:
            await asyncio.gather(pool.submit(visit(depth + 1)), pool.submit(visit(depth + 1)))

    await asyncio.wait_for(pool.submit(visit(0)), timeout=5)

    assert len(visited) == 15


@pytest.mark.asyncio
async def test_submit_after_shutdown_is_rejected():
    pool = CrawlPool(1, name="test")
    pool.shutdown()

    async def job():
        return 1

    coro = job()
    with pytest.raises(PoolShutdownError):
        pool.submit(coro)
    assert coro.cr_frame is None
    assert pool.is_terminated


@pytest.mark.asyncio
async def test_wait_terminated_returns_after_running_tasks():
    pool = CrawlPool(2, name="test")
    gate = asyncio.Event()
    done = []

    async def job():
        await gate.wait()
        done.append(True)

    pool.submit(job())
    pool.shutdown()
    assert not pool.is_terminated

    waiter = asyncio.create_task(pool.wait_terminated())
    await asyncio.sleep(0)
    assert not waiter.done()

    gate.set()
    await asyncio.wait_for(waiter, timeout=1)
    assert done == [True]
    assert pool.is_terminated


def test_pool_size_must_be_positive():
    with pytest.raises(ValueError):
        CrawlPool(0)
