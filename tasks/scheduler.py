"""Simple asyncio-based task scheduler."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List

logger = logging.getLogger(__name__)

Job = tuple[Callable[[], Awaitable[None]], float, float]


class TaskScheduler:
    """Run coroutines periodically."""

    def __init__(self, name: str = "scheduler") -> None:
        self.name = name
        self._tasks: List[asyncio.Task[None]] = []
        self._jobs: List[Job] = []

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    def add_periodic(
        self,
        coro_factory: Callable[[], Awaitable[None]],
        interval: float,
        initial_delay: float = 0,
    ) -> None:
        """Schedule ``coro_factory`` to run every ``interval`` seconds.

        If ``initial_delay`` > 0, waits that many seconds before the first run.
        """

        # Store the job so ``start`` can recreate tasks after a stop
        self._jobs.append((coro_factory, interval, initial_delay))

        # If already active, start the task immediately
        if self._tasks:
            self._start_job(coro_factory, interval, initial_delay)

    def _start_job(
        self,
        coro_factory: Callable[[], Awaitable[None]],
        interval: float,
        initial_delay: float,
    ) -> None:
        async def _runner(
            cf: Callable[[], Awaitable[None]] = coro_factory,
            iv: float = interval,
            delay: float = initial_delay,
        ) -> None:
            try:
                if delay and delay > 0:
                    await asyncio.sleep(delay)
                while True:
                    try:
                        await cf()
                    except asyncio.CancelledError:
                        break
                    except Exception as exc:
                        logger.exception(
                            "periodic_task_failed",
                            extra={"scheduler": self.name, "error": str(exc)},
                        )
                    await asyncio.sleep(iv)
            except asyncio.CancelledError:
                pass

        self._tasks.append(
            asyncio.create_task(_runner(), name=f"{self.name}-job-{len(self._tasks)}")
        )

    def start(self) -> None:
        """Materialize tasks from stored jobs without waiting on them."""
        if self._jobs and not self._tasks:
            for coro_factory, interval, initial_delay in self._jobs:
                self._start_job(coro_factory, interval, initial_delay)

    async def stop(self) -> None:
        """Cancel all scheduled tasks and wait for them to finish."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["TaskScheduler"]
