"""
Background Analytics Dispatch

Cache-hit redirects return before their click is recorded. The click is
handed to an AnalyticsDispatcher: a bounded asyncio queue drained by a fixed
set of worker tasks that call ClickRecorder.record.

Design Decisions:
- submit() never blocks or raises. When the queue is full the job is
  dropped and logged on the dead-letter logger, so a burst of traffic
  cannot back-pressure redirects.
- A failing job is logged and confined to that job; the worker carries on.
- Delivery is at-most-once. Jobs still queued when stop() times out are lost.
"""

import asyncio
import logging
from typing import Optional

from shortlink.services.click_recorder import ClickRecorder, RequestMetadata

logger = logging.getLogger(__name__)
dead_letter_logger = logging.getLogger(f"{__name__}.dead_letter")


class AnalyticsDispatcher:
    """Bounded queue of pending click jobs with a pool of async workers."""

    def __init__(self, recorder: ClickRecorder, workers: int = 4, queue_size: int = 10000):
        self.recorder = recorder
        self.worker_count = workers
        self.queue_size = queue_size
        self._queue: Optional[asyncio.Queue] = None
        self._workers: list[asyncio.Task] = []
        self.processed = 0
        self.dropped = 0

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> None:
        """Spawn the worker tasks. Must be called from a running event loop."""
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self.queue_size)
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"analytics-worker-{index}")
            for index in range(self.worker_count)
        ]
        logger.info(f"Analytics dispatcher started with {self.worker_count} workers")

    def submit(self, code: str, metadata: RequestMetadata) -> bool:
        """
        Enqueue a click job without waiting.

        Returns:
            True if queued, False if the job was dropped
        """
        if self._queue is None:
            self.dropped += 1
            dead_letter_logger.warning(f"Dispatcher not running, dropped click for {code}")
            return False
        try:
            self._queue.put_nowait((code, metadata))
        except asyncio.QueueFull:
            self.dropped += 1
            dead_letter_logger.warning(
                f"Analytics queue full ({self.queue_size}), dropped click for {code}"
            )
            return False
        return True

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self, timeout: float = 5.0) -> None:
        """Drain the queue for up to ``timeout`` seconds, then cancel workers."""
        if not self.running:
            return
        try:
            await asyncio.wait_for(self.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Analytics queue not drained, abandoning {self.pending} jobs")

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        logger.info("Analytics dispatcher stopped")

    async def _worker(self, index: int) -> None:
        queue = self._queue
        while True:
            code, metadata = await queue.get()
            try:
                await self.recorder.record(code, metadata)
                self.processed += 1
            except Exception as e:
                logger.error(f"Analytics worker {index} failed on {code}: {e}", exc_info=True)
            finally:
                queue.task_done()
