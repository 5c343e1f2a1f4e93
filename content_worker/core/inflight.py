import asyncio
from typing import Any, Awaitable, Callable, Dict, TypeVar

from content_worker.core.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class InFlightRegistry:
    """
    Collapses concurrent duplicate work for the same key.

    The first caller for a key starts the work; callers arriving while it runs
    await the same task. The entry is removed when the task settles, whatever
    the outcome, so the next trigger starts fresh.
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, asyncio.Task] = {}

    def is_running(self, key: str) -> bool:
        return key in self._tasks

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._tasks.get(key)
        if task is not None:
            logger.info(f"[InFlight] Joining in-flight work for key={key}")
            return await asyncio.shield(task)

        task = asyncio.ensure_future(factory())
        self._tasks[key] = task
        try:
            return await asyncio.shield(task)
        finally:
            if task.done() and self._tasks.get(key) is task:
                del self._tasks[key]
            elif not task.done():
                task.add_done_callback(lambda t, k=key: self._release(k, t))

    def _release(self, key: str, task: "asyncio.Task[Any]") -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    def __len__(self) -> int:
        return len(self._tasks)
