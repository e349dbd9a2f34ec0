"""Background execution for LLM calls.

Created: 2026-10-03

``WorkerPool`` bounds how many requests hit the API at once; every send and
categorize call runs on a task spawned here. ``OwnerDispatcher`` is the
single re-entry channel back to the event loop that owns application state:
callbacks that touch shared state are wrapped with it instead of assuming
they already run there.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Coroutine
from contextlib import asynccontextmanager
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkerPool:
    """Bounded pool of asyncio tasks.

    ``spawn()`` always creates the task immediately; ``slot()`` is what
    bounds concurrency, so a task waiting for a slot can still be cancelled
    and clean up after itself.
    """

    def __init__(self, max_workers: int = 4):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self._semaphore = asyncio.Semaphore(max_workers)
        self._tasks: set[asyncio.Task] = set()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        async with self._semaphore:
            yield

    def spawn(self, coro: Coroutine[Any, Any, T], *, name: str | None = None) -> asyncio.Task[T]:
        """Schedule *coro* on the running loop and track it until it finishes."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(self, coro: Coroutine[Any, Any, T], *, name: str | None = None) -> T:
        """Run *coro* on its own task inside a worker slot and wait for the result."""

        async def _bounded() -> T:
            async with self.slot():
                return await coro

        return await self.spawn(_bounded(), name=name)

    @property
    def active(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        """Cancel every tracked task and wait for them to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug("Worker pool shut down (%d tasks cancelled)", len(tasks))


class OwnerDispatcher:
    """Re-dispatch callbacks onto the owning event loop.

    Unbound dispatchers call through directly. Once bound, wrapped callbacks
    are queued with ``call_soon`` from the owner loop and with
    ``call_soon_threadsafe`` from anywhere else, so delivery order is kept.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def bind(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    @property
    def loop(self) -> asyncio.AbstractEventLoop | None:
        return self._loop

    def call(self, callback: Callable[..., Any], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            callback(*args)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            loop.call_soon(callback, *args)
        else:
            loop.call_soon_threadsafe(callback, *args)

    def wrap(self, callback: Callable[..., Any]) -> Callable[..., None]:
        def _dispatch(*args: Any) -> None:
            self.call(callback, *args)

        return _dispatch
