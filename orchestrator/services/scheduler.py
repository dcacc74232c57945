from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List

logger = logging.getLogger(__name__)


class DeferredDispatcher:
    """Fire-and-forget delayed jobs keyed by event id.

    Jobs live as asyncio tasks on the running loop. The owning engine does
    not cancel them on reload, so a dispatch scheduled before a reload still
    runs afterwards; `cancel_all()` exists for callers that want otherwise.
    A repeated key (a retried webhook) adds a job; it never replaces one.
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, List[asyncio.Task]] = {}

    def schedule(
        self, key: str, delay: float, job: Callable[[], Awaitable[object]]
    ) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._run(key, delay, job))
        self._tasks.setdefault(key, []).append(task)
        task.add_done_callback(lambda t: self._forget(key, t))
        return task

    async def _run(self, key: str, delay: float, job: Callable[[], Awaitable[object]]) -> None:
        await asyncio.sleep(delay)
        try:
            await job()
        except Exception:
            logger.exception(f"Deferred job {key} failed")

    def _forget(self, key: str, task: asyncio.Task) -> None:
        tasks = self._tasks.get(key)
        if tasks and task in tasks:
            tasks.remove(task)
            if not tasks:
                del self._tasks[key]

    def pending(self) -> List[str]:
        """One key per outstanding job, so duplicates mean repeated events."""
        return [key for key, tasks in self._tasks.items() for _ in tasks]

    def cancel_all(self) -> int:
        tasks = [task for group in self._tasks.values() for task in group]
        for task in tasks:
            task.cancel()
        return len(tasks)
