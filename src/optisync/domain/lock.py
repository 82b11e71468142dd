"""Strict FIFO serialisation of asynchronous work."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


T = TypeVar("T")


class SequentialLock:
    """Run submitted coroutines one at a time, in submission order.

    Unlike ``asyncio.Lock`` the hand-over is explicit: the finishing task passes
    the turn to the oldest live waiter, so no later submission can overtake an
    earlier one. Failures in one job never block the jobs queued behind it.
    """

    def __init__(self) -> None:
        self._active = False
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def busy(self) -> bool:
        return self._active

    @property
    def queued(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        await self._acquire()
        try:
            return await fn()
        finally:
            self._release()

    async def _acquire(self) -> None:
        if not self._active:
            self._active = True
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            # The turn may have been handed to us right before cancellation.
            if waiter.done() and not waiter.cancelled():
                self._release()
            raise

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._active = False
