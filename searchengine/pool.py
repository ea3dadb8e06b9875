import asyncio
from contextlib import asynccontextmanager
from typing import Any, Coroutine, Set


class PoolShutdownError(RuntimeError):
    pass


class CrawlPool:
    """Bounded task pool for one site crawl.

    ``slot()`` limits how many tasks do I/O at once; tasks waiting on their
    children hold no slot. After ``shutdown()`` no task is accepted and
    ``wait_terminated()`` returns once the running ones are done.
    """

    def __init__(self, size: int, name: str = "crawl"):
        if size < 1:
            raise ValueError("pool size must be positive")
        self.size = size
        self.name = name
        self._slots = asyncio.Semaphore(size)
        self._tasks: Set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._shutdown = False

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    @property
    def is_terminated(self) -> bool:
        return self._shutdown and not self._tasks

    @property
    def active_tasks(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        if self._shutdown:
            coro.close()
            raise PoolShutdownError(f"pool {self.name} is shut down")

        task = asyncio.create_task(coro)
        self._tasks.add(task)
        self._idle.clear()
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not self._tasks:
            self._idle.set()

    @asynccontextmanager
    async def slot(self):
        async with self._slots:
            yield

    def shutdown(self) -> None:
        self._shutdown = True

    async def wait_terminated(self) -> None:
        await self._idle.wait()
