"""Batches stale products into update jobs and runs the daily refresh.

The recurring trigger is an APScheduler cron job; the batching itself is
plain asyncio so it can also be invoked on demand (CLI, tests).
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from pricetracker.models import Product
from pricetracker.repositories.interfaces import ProductRepository
from pricetracker.scrapers.queue import JobQueue, UpdateJob

logger = structlog.get_logger(__name__)

# Delay step between jobs of the same batch
JOB_STAGGER_MS = 1000
# Pause between two batches
BATCH_PAUSE_SECONDS = 5
DEFAULT_BATCH_SIZE = 50

PRIORITY_NORMAL = 3
PRIORITY_STALE = 2      # not checked for over a day
PRIORITY_VERY_STALE = 1  # not checked for over two days
STALE_HOURS = 24
VERY_STALE_HOURS = 48

DAILY_JOB_ID = "daily_price_update"


def calculate_priority(product: Product, now: Optional[datetime] = None) -> int:
    """Queue priority for a product; lower numbers run first.

    Never-checked products count as very stale.
    """
    if product.last_checked is None:
        return PRIORITY_VERY_STALE

    now = now or datetime.now(timezone.utc)
    hours = (now - product.last_checked).total_seconds() / 3600

    priority = PRIORITY_NORMAL
    if hours > VERY_STALE_HOURS:
        priority -= 2
    elif hours > STALE_HOURS:
        priority -= 1
    return max(PRIORITY_VERY_STALE, priority)


class UpdateScheduler:
    """Enqueues price update jobs for every tracked product.

    This scheduler:
    - Orders products oldest-checked first
    - Splits them into batches and staggers jobs inside a batch
    - Pauses between batches so the queue never receives a burst
    - Runs the whole pass daily through APScheduler
    """

    def __init__(
        self,
        products: ProductRepository,
        queue: JobQueue,
        cron: str = "0 0 * * *",
        default_batch_size: int = DEFAULT_BATCH_SIZE,
        sleep=asyncio.sleep,
    ):
        """Initialize update scheduler.

        Args:
            products: Product repository
            queue: Job queue consumed by the worker pool
            cron: Crontab expression (UTC) for the recurring pass
            default_batch_size: Batch size used by the recurring pass
            sleep: Coroutine used for the pause between batches
        """
        self.products = products
        self.queue = queue
        self.cron = cron
        self.default_batch_size = default_batch_size
        self._sleep = sleep
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="update_scheduler")

    def start(self) -> Optional[Job]:
        """Register the recurring job and start APScheduler."""
        if self.scheduler.running:
            self.logger.warning("scheduler_already_running")
            return None

        job = self.scheduler.add_job(
            func=self._run_daily_update_wrapper,
            trigger=CronTrigger.from_crontab(self.cron, timezone="UTC"),
            id=DAILY_JOB_ID,
            name="Daily price update",
            replace_existing=True,
            max_instances=1,  # A slow pass must not overlap the next one
        )
        self.scheduler.start()
        self.logger.info(
            "scheduler_started",
            cron=self.cron,
            next_run=job.next_run_time.isoformat() if job.next_run_time else None,
        )
        return job

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    async def _run_daily_update_wrapper(self) -> None:
        """Called by APScheduler. Errors are logged so the next run still fires."""
        try:
            await self.schedule_product_updates(self.default_batch_size)
        except Exception as e:
            self.logger.error("daily_update_failed", error=str(e), exc_info=True)

    async def schedule_product_updates(self, batch_size: int = DEFAULT_BATCH_SIZE) -> dict:
        """Enqueue one update job per tracked product.

        Args:
            batch_size: Products per batch

        Returns:
            ``{"scheduled": n}`` with the number of jobs enqueued
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        products = await self.products.find_all(order_by_staleness=True)
        products.sort(key=_staleness_key)

        now = datetime.now(timezone.utc)
        scheduled = 0
        batches = [products[i:i + batch_size] for i in range(0, len(products), batch_size)]

        for batch_index, batch in enumerate(batches):
            for index, product in enumerate(batch):
                job = UpdateJob(product_id=product.id, priority=calculate_priority(product, now))
                await self.queue.add(job, delay_ms=index * JOB_STAGGER_MS)
                scheduled += 1

            self.logger.debug("batch_enqueued", batch=batch_index, size=len(batch))

            if batch_index < len(batches) - 1:
                await self._sleep(BATCH_PAUSE_SECONDS)

        self.logger.info("product_updates_scheduled", scheduled=scheduled, batches=len(batches))
        return {"scheduled": scheduled}


def _staleness_key(product: Product):
    # Never-checked products first, then oldest check first
    if product.last_checked is None:
        return (0, datetime.min.replace(tzinfo=timezone.utc))
    return (1, product.last_checked)
