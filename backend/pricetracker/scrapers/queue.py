"""In-process delay-aware priority queue for price update jobs.

Jobs enqueued with a delay sit in a due-time heap until they are due, then
move to the ready heap where the lowest priority number wins and ties go
to the job enqueued first.
"""

import asyncio
import heapq
import itertools
import time
from dataclasses import dataclass
from typing import List, Tuple
from uuid import UUID

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class UpdateJob:
    """Request to refresh one product's price."""

    product_id: UUID
    priority: int = 3  # 1 = most urgent
    scheduled_delay_ms: int = 0
    attempts: int = 0

    def __post_init__(self):
        if self.priority < 1:
            raise ValueError("priority must be >= 1")


class QueueClosed(Exception):
    """Raised by add() and get() once the queue is closed."""


class JobQueue:
    """Priority queue with delayed delivery.

    Safe for many consumers on one event loop. ``close()`` stops new jobs
    from being added and drops anything not yet handed to a consumer;
    consumers then get ``QueueClosed``. Jobs already being processed are
    unaffected. Dropped jobs are picked up again by the next scheduling pass.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._seq = itertools.count()
        self._delayed: List[Tuple[float, int, UpdateJob]] = []
        self._ready: List[Tuple[int, int, UpdateJob]] = []
        self._changed = asyncio.Condition()
        self._closed = False
        self._unfinished = 0
        self._all_done = asyncio.Event()
        self._all_done.set()

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return len(self._delayed) + len(self._ready)

    async def add(self, job: UpdateJob, delay_ms: int = 0) -> None:
        """Enqueue a job, optionally delivering it after ``delay_ms``."""
        if self._closed:
            raise QueueClosed("queue is closed")

        job.scheduled_delay_ms = delay_ms
        seq = next(self._seq)
        if delay_ms > 0:
            heapq.heappush(self._delayed, (self._clock() + delay_ms / 1000, seq, job))
        else:
            heapq.heappush(self._ready, (job.priority, seq, job))

        self._unfinished += 1
        self._all_done.clear()
        async with self._changed:
            self._changed.notify_all()

    async def get(self) -> UpdateJob:
        """Wait for the next due job.

        Raises:
            QueueClosed: When the queue is closed and nothing is left
        """
        async with self._changed:
            while True:
                self._promote_due()
                if self._ready:
                    _, _, job = heapq.heappop(self._ready)
                    return job

                if self._closed:
                    raise QueueClosed("queue is closed")

                timeout = None
                if self._delayed:
                    timeout = max(0.0, self._delayed[0][0] - self._clock())
                try:
                    await asyncio.wait_for(self._changed.wait(), timeout)
                except asyncio.TimeoutError:
                    pass

    def task_done(self) -> None:
        if self._unfinished <= 0:
            raise ValueError("task_done() called too many times")
        self._unfinished -= 1
        if self._unfinished == 0:
            self._all_done.set()

    async def join(self) -> None:
        """Wait until every added job has been marked done."""
        await self._all_done.wait()

    async def close(self) -> None:
        self._closed = True
        dropped = self.pending()
        self._delayed.clear()
        self._ready.clear()
        self._unfinished -= dropped
        if self._unfinished == 0:
            self._all_done.set()
        async with self._changed:
            self._changed.notify_all()
        logger.info("job_queue_closed", dropped=dropped)

    def _promote_due(self) -> None:
        now = self._clock()
        while self._delayed and self._delayed[0][0] <= now:
            _, seq, job = heapq.heappop(self._delayed)
            heapq.heappush(self._ready, (job.priority, seq, job))
