"""Price update worker and the bounded pool that drains the job queue."""

import asyncio
import random
from datetime import datetime, timezone
from typing import List, Optional

import structlog
from tenacity.wait import wait_base

from pricetracker.core.exceptions import (
    BlockedDomainError,
    ParseError,
    PriceTrackerException,
    ProductNotFoundError,
    TransientNetworkError,
)
from pricetracker.repositories.interfaces import (
    PriceAlertRepository,
    PriceHistoryRepository,
    ProductRepository,
    ScrapingLogRepository,
)
from pricetracker.scrapers.queue import JobQueue, QueueClosed, UpdateJob
from pricetracker.scrapers.scraper import Scraper
from pricetracker.scrapers.utils.domain_manager import DomainManager
from pricetracker.scrapers.utils.normalizer import extract_hostname
from pricetracker.scrapers.utils.retry import MAX_ATTEMPTS, job_retrying
from pricetracker.services.cache_service import Cache
from pricetracker.services.price_analytics import PriceAnalytics

logger = structlog.get_logger(__name__)

# Shops known to rate-limit aggressively get a longer pause before each scrape
STRICT_DOMAINS = (
    "amazon.com",
    "amazon.com.ar",
    "mercadolibre.com",
    "mercadolibre.com.ar",
    "ebay.com",
    "walmart.com",
    "bestbuy.com",
)
STRICT_DELAY_RANGE_MS = (5000, 10000)
DEFAULT_DELAY_RANGE_MS = (2000, 5000)
UNPARSABLE_URL_DELAY_MS = 3000


def calculate_domain_delay(url: str, rng: Optional[random.Random] = None) -> int:
    """Extra pause in milliseconds before scraping ``url``."""
    rng = rng or random
    hostname = extract_hostname(url)
    if not hostname:
        return UNPARSABLE_URL_DELAY_MS

    if any(strict in hostname for strict in STRICT_DOMAINS):
        return rng.randint(*STRICT_DELAY_RANGE_MS)
    return rng.randint(*DEFAULT_DELAY_RANGE_MS)


class PriceUpdateWorker:
    """Refreshes one product per job and records the outcome.

    Processing order for a job: cooling check, domain delay, scrape, attempt
    log, then either the price-change path (history append, product update,
    cache invalidation, alert check) or a last-checked touch.
    """

    def __init__(
        self,
        scraper: Scraper,
        domain_manager: DomainManager,
        products: ProductRepository,
        price_history: PriceHistoryRepository,
        alerts: PriceAlertRepository,
        scraping_logs: ScrapingLogRepository,
        cache: Cache,
        analytics: PriceAnalytics,
        sleep=asyncio.sleep,
        max_attempts: int = MAX_ATTEMPTS,
        retry_wait: Optional[wait_base] = None,
        rng: Optional[random.Random] = None,
    ):
        self.scraper = scraper
        self.domain_manager = domain_manager
        self.products = products
        self.price_history = price_history
        self.alerts = alerts
        self.scraping_logs = scraping_logs
        self.cache = cache
        self.analytics = analytics
        self._sleep = sleep
        self.max_attempts = max_attempts
        self._retry_wait = retry_wait
        self._rng = rng or random.Random()
        self.logger = logger.bind(service="price_update_worker")
        self.stats = {
            "processed": 0,
            "updated": 0,
            "unchanged": 0,
            "failed": 0,
        }

    async def run_job(self, job: UpdateJob) -> bool:
        """Process a job with retries for transient network errors.

        Terminal failures, including unexpected repository errors, are logged
        and counted as failed; the job is not re-queued.

        Returns:
            True if the job completed, False if it failed terminally
        """
        self.stats["processed"] += 1
        try:
            async for attempt in job_retrying(self.max_attempts, self._retry_wait):
                with attempt:
                    job.attempts += 1
                    # A retry follows a transient failure that already put the
                    # domain into cooling; only the first attempt is gated
                    outcome = await self.process(
                        job, check_cooling=attempt.retry_state.attempt_number == 1
                    )
        except PriceTrackerException as e:
            self.stats["failed"] += 1
            self.logger.warning(
                "update_job_failed",
                product_id=str(job.product_id),
                attempts=job.attempts,
                error_type=type(e).__name__,
                error=str(e),
            )
            return False
        except Exception as e:
            self.stats["failed"] += 1
            self.logger.error(
                "update_job_crashed",
                product_id=str(job.product_id),
                attempts=job.attempts,
                error=str(e),
                exc_info=True,
            )
            return False

        self.stats[outcome] += 1
        return True

    async def process(self, job: UpdateJob, check_cooling: bool = True) -> str:
        """Run one attempt of an update job.

        Args:
            job: The job to run
            check_cooling: Fail fast when the domain is cooling down

        Returns:
            "updated" if the price changed, "unchanged" otherwise

        Raises:
            ProductNotFoundError: Product was deleted after the job was queued
            BlockedDomainError: Domain is cooling down or the scrape hit a block
            ParseError: Page fetched but price or name missing
            TransientNetworkError: Network failure, eligible for retry
        """
        product = await self.products.find_by_id(job.product_id)
        if product is None:
            raise ProductNotFoundError(str(job.product_id))

        url = product.url
        domain = extract_hostname(url)
        if check_cooling and self.domain_manager.is_domain_cooling(domain):
            raise BlockedDomainError(domain, "cooling down")

        delay_ms = calculate_domain_delay(url, self._rng)
        await self._sleep(delay_ms / 1000)

        try:
            result = await self.scraper.scrape_product_info(url)
        except TransientNetworkError as e:
            await self.scraping_logs.create(url, domain, False, str(e))
            raise

        if result is None:
            blocked = self.scraper.is_domain_blocked(domain)
            error_message = "domain blocked" if blocked else "product info not found"
            await self.scraping_logs.create(url, domain, False, error_message)
            if blocked:
                raise BlockedDomainError(domain)
            raise ParseError(url)

        await self.scraping_logs.create(url, domain, True)

        now = datetime.now(timezone.utc)
        if result.price == product.current_price:
            await self.products.update(product.id, {"last_checked": now})
            self.logger.debug("price_unchanged", product_id=str(product.id), price=float(result.price))
            return "unchanged"

        # History first: a rejected sample must leave current_price untouched
        await self.price_history.create(product.id, result.price, now)
        await self.products.update(
            product.id,
            {
                "current_price": result.price,
                "previous_price": product.current_price,
                "last_checked": now,
            },
        )
        await self.cache.invalidate_product_cache(str(product.id))
        await self.analytics.invalidate_analysis_cache(str(product.id), product.name)
        triggered = await self.alerts.check_alerts_for_product(product.id, result.price)

        self.logger.info(
            "price_updated",
            product_id=str(product.id),
            old_price=float(product.current_price),
            new_price=float(result.price),
            alerts_triggered=len(triggered),
        )
        return "updated"


class WorkerPool:
    """Fixed number of consumers draining a JobQueue."""

    def __init__(self, queue: JobQueue, worker: PriceUpdateWorker, concurrency: int = 5):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.queue = queue
        self.worker = worker
        self.concurrency = concurrency
        self._tasks: List[asyncio.Task] = []
        self.logger = logger.bind(service="worker_pool")

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            self.logger.warning("worker_pool_already_running")
            return
        self._tasks = [
            asyncio.create_task(self._consume(index), name=f"price-worker-{index}")
            for index in range(self.concurrency)
        ]
        self.logger.info("worker_pool_started", concurrency=self.concurrency)

    async def _consume(self, index: int) -> None:
        while True:
            try:
                job = await self.queue.get()
            except QueueClosed:
                return

            try:
                await self.worker.run_job(job)
            except Exception as e:
                # Keep the consumer alive whatever a single job does
                self.logger.error(
                    "worker_job_crashed",
                    worker=index,
                    product_id=str(job.product_id),
                    error=str(e),
                    exc_info=True,
                )
            finally:
                self.queue.task_done()

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self.queue.join()

    async def shutdown(self) -> None:
        """Close the queue and wait for in-flight jobs to finish.

        Call ``join()`` first to process everything that is already queued.
        """
        await self.queue.close()
        if self._tasks:
            await asyncio.gather(*self._tasks)
        self.logger.info("worker_pool_stopped", **self.worker.stats)
