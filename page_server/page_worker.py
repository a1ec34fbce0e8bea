"""
Page Worker

Serializes operations on one page. Each page gets a queue drained by a
single task, so navigation, input and snapshots on the same page never
interleave while different pages proceed in parallel.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple

from .errors import PageClosedError

Operation = Callable[[], Awaitable[Any]]
_Job = Tuple[str, Operation, "asyncio.Future[Any]"]


class PageWorker:
    """Runs submitted operations one at a time, in submission order"""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(f"PageWorker-{name}")

        self._queue: "asyncio.Queue[Optional[_Job]]" = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._accepting = True

    @property
    def accepting(self) -> bool:
        return self._accepting

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"page-worker-{self.name}")

    async def submit(self, operation: Operation, label: str = "operation", final: bool = False) -> Any:
        """Queue an operation and wait for its result.

        Cancelling the caller does not cancel the operation: it still runs to
        completion on the worker and an unobserved failure is logged.
        ``final`` stops the worker from accepting anything after this job.
        """
        if not self._accepting:
            raise PageClosedError(self.name)
        if final:
            self._accepting = False

        future: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((label, operation, future))
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            future.add_done_callback(self._report_orphan(label))
            raise

    async def stop(self) -> None:
        """Finish queued work and end the worker task"""
        self._accepting = False
        if self._task is None:
            return
        self._queue.put_nowait(None)
        task, self._task = self._task, None
        if task is not asyncio.current_task():
            await task

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                if job is None:
                    return
                label, operation, future = job
                try:
                    result = await operation()
                except Exception as e:
                    self.logger.debug(f"{label} failed: {e}")
                    if not future.done():
                        future.set_exception(e)
                else:
                    if not future.done():
                        future.set_result(result)
            finally:
                self._queue.task_done()

    def _report_orphan(self, label: str) -> Callable[["asyncio.Future[Any]"], None]:
        def _callback(future: "asyncio.Future[Any]") -> None:
            if future.cancelled():
                return
            error = future.exception()
            if error is not None:
                self.logger.error(f"{label} finished with no caller waiting: {error}")
            else:
                self.logger.info(f"{label} finished with no caller waiting")
        return _callback
