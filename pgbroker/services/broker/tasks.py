"""
Ownership of asynchronous provisioning and teardown work
"""
import asyncio
import logging
from typing import Awaitable, Callable, Coroutine, Any, Optional, Set


logger = logging.getLogger(__name__)

FailureCallback = Callable[[BaseException], Awaitable[None]]


class TaskTracker:
    """
    Spawns background tasks and keeps them reachable.

    In-flight work can be awaited with `join()` (tests, shutdown) or
    cancelled with `cancel_all()`. An optional timeout bounds every task.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self._tasks: Set[asyncio.Task] = set()

    def spawn(
        self,
        coro: Coroutine[Any, Any, None],
        name: str,
        on_failure: Optional[FailureCallback] = None
    ) -> asyncio.Task:
        """
        Run `coro` concurrently with the caller

        Args:
            coro: Work to run
            name: Task name, used in logs
            on_failure: Awaited with the exception if the work raises,
                times out, or is cancelled

        Returns:
            asyncio.Task: The tracked task
        """
        task = asyncio.create_task(self._run(coro, name, on_failure), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        coro: Coroutine[Any, Any, None],
        name: str,
        on_failure: Optional[FailureCallback]
    ) -> None:
        try:
            if self.timeout:
                await asyncio.wait_for(coro, timeout=self.timeout)
            else:
                await coro
        except asyncio.CancelledError as e:
            logger.warning(f"Task {name} was cancelled")
            await self._report(name, e, on_failure)
            raise
        except asyncio.TimeoutError as e:
            logger.error(f"Task {name} timed out after {self.timeout} seconds")
            await self._report(name, e, on_failure)
        except Exception as e:
            logger.error(f"Task {name} failed: {str(e)}")
            await self._report(name, e, on_failure)

    async def _report(
        self,
        name: str,
        error: BaseException,
        on_failure: Optional[FailureCallback]
    ) -> None:
        if on_failure is None:
            return
        try:
            await on_failure(error)
        except Exception as e:
            logger.error(f"Failure handler for task {name} failed: {str(e)}")

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def join(self) -> None:
        """Wait until every tracked task (including ones spawned meanwhile) is done"""
        while True:
            running = [task for task in self._tasks if not task.done()]
            if not running:
                return
            await asyncio.gather(*running, return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.join()
