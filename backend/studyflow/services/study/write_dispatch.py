"""
Ordered Fire-and-Forget Writes

The session tracker never waits for heartbeat, counter or finalisation writes.
WriteDispatcher queues them and runs them one at a time, in submission order,
on a single worker task. A failed write is logged and counted; it is never
raised back to the tracker.

Sealing:
    Submitting with seal=True marks the key (a session id) as finalised. Any
    later submission for that key is dropped, so a stale heartbeat can never
    overwrite a record after its final write was issued.

Usage:
    dispatcher = WriteDispatcher("tracker:user-1")
    dispatcher.submit(session_id, "heartbeat", lambda: store.update_session(...))
    done = dispatcher.submit(session_id, "finalize", finalize_op, seal=True)
    persisted = await done
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional

logger = logging.getLogger(__name__)

WriteOperation = Callable[[], Awaitable[Any]]


class WriteDispatcher:
    """
    FIFO queue of best-effort writes with a single worker.

    The queue and worker are created lazily on the running event loop at the
    first submission.
    """

    def __init__(self, name: str = "writes"):
        self.name = name
        self.completed = 0
        self.failures = 0
        self.dropped = 0
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._sealed: set[str] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def is_sealed(self, key: str) -> bool:
        return key in self._sealed

    def submit(
        self,
        key: str,
        label: str,
        operation: WriteOperation,
        seal: bool = False,
    ) -> asyncio.Future:
        """
        Queue a write without waiting for it.

        Args:
            key: Record the write targets (session id)
            label: Short name used in log messages
            operation: Zero-argument coroutine function performing the write
            seal: Reject every later write for this key

        Returns:
            Future resolving to True if the write succeeded, False if it
            failed or was dropped. Awaiting it is optional.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        if self._closed:
            logger.warning(f"[{self.name}] Dropped {label} for {key}: dispatcher closed")
            self.dropped += 1
            future.set_result(False)
            return future

        if key in self._sealed:
            logger.warning(f"[{self.name}] Dropped {label} for {key}: record already finalised")
            self.dropped += 1
            future.set_result(False)
            return future

        if seal:
            self._sealed.add(key)

        self._ensure_worker()
        self._queue.put_nowait((key, label, operation, future))
        return future

    async def drain(self) -> None:
        """Wait until every queued write has run."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Reject new writes, run the queued ones, then stop the worker."""
        self._closed = True
        await self.drain()

        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None

        logger.debug(
            f"[{self.name}] Closed: {self.completed} written, "
            f"{self.failures} failed, {self.dropped} dropped"
        )

    def _ensure_worker(self) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            key, label, operation, future = await self._queue.get()
            try:
                ok = await self._execute(key, label, operation)
                if not future.done():
                    future.set_result(ok)
            finally:
                self._queue.task_done()

    async def _execute(self, key: str, label: str, operation: WriteOperation) -> bool:
        try:
            await operation()
        except Exception as e:
            self.failures += 1
            logger.warning(f"[{self.name}] {label} write for {key} failed: {e}")
            return False

        self.completed += 1
        return True
