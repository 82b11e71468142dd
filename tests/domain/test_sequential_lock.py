from __future__ import annotations

import asyncio

import pytest

from optisync.domain.lock import SequentialLock


def test_jobs_run_one_at_a_time_in_submission_order() -> None:
    async def scenario() -> list[str]:
        lock = SequentialLock()
        events: list[str] = []

        async def job(name: str, delay: float) -> str:
            events.append(f"start {name}")
            await asyncio.sleep(delay)
            events.append(f"end {name}")
            return name

        results = await asyncio.gather(
            lock.run(lambda: job("a", 0.03)),
            lock.run(lambda: job("b", 0.0)),
            lock.run(lambda: job("c", 0.01)),
        )
        assert results == ["a", "b", "c"]
        assert not lock.busy
        return events

    events = asyncio.run(scenario())

    assert events == ["start a", "end a", "start b", "end b", "start c", "end c"]


def test_failure_does_not_block_later_jobs() -> None:
    async def scenario() -> str:
        lock = SequentialLock()

        async def boom() -> str:
            raise RuntimeError("boom")

        async def ok() -> str:
            return "ok"

        first = asyncio.ensure_future(lock.run(boom))
        second = asyncio.ensure_future(lock.run(ok))
        with pytest.raises(RuntimeError):
            await first
        return await second

    assert asyncio.run(scenario()) == "ok"


def test_cancelled_waiter_does_not_stall_queue() -> None:
    async def scenario() -> list[str]:
        lock = SequentialLock()
        events: list[str] = []
        gate = asyncio.Event()

        async def holder() -> None:
            events.append("holder")
            await gate.wait()

        async def record(name: str) -> None:
            events.append(name)

        first = asyncio.ensure_future(lock.run(holder))
        await asyncio.sleep(0)
        doomed = asyncio.ensure_future(lock.run(lambda: record("doomed")))
        last = asyncio.ensure_future(lock.run(lambda: record("last")))
        await asyncio.sleep(0)
        assert lock.queued == 2

        doomed.cancel()
        await asyncio.sleep(0)
        gate.set()
        await asyncio.wait_for(asyncio.gather(first, last), timeout=1)
        assert doomed.cancelled()
        return events

    assert asyncio.run(scenario()) == ["holder", "last"]
