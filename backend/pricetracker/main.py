"""Price tracker service entry point.

Builds every service explicitly and wires them together: no module-level
singletons. ``python -m pricetracker.main`` runs the worker pool and the
daily update schedule until SIGINT/SIGTERM.
"""

import asyncio
import logging
import signal
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from pricetracker.config import Settings, settings as default_settings
from pricetracker.db.session import create_engine, create_session_factory, init_models
from pricetracker.repositories import (
    SQLPriceAlertRepository,
    SQLPriceHistoryRepository,
    SQLProductRepository,
    SQLScrapingLogRepository,
    SQLStoreRepository,
)
from pricetracker.scrapers.fetchers import BrowserFetcher, StaticFetcher
from pricetracker.scrapers.profiles import FetchStrategy, ProfileRegistry
from pricetracker.scrapers.queue import JobQueue
from pricetracker.scrapers.scheduler import UpdateScheduler
from pricetracker.scrapers.scraper import Scraper
from pricetracker.scrapers.utils.browser_manager import BrowserManager
from pricetracker.scrapers.utils.domain_manager import DomainManager
from pricetracker.scrapers.utils.proxy_checker import check_all_proxies
from pricetracker.scrapers.utils.proxy_manager import ProxyManager
from pricetracker.scrapers.worker import PriceUpdateWorker, WorkerPool
from pricetracker.services.cache_service import Cache, RedisCacheBackend, create_cache
from pricetracker.services.monitoring import ScrapingMonitor
from pricetracker.services.price_analytics import PriceAnalytics
from pricetracker.services.tracking_service import TrackingService

logger = logging.getLogger(__name__)


@dataclass
class Application:
    """Every long-lived service, built once at startup."""

    settings: Settings
    engine: AsyncEngine
    cache: Cache
    browser_manager: BrowserManager
    proxy_manager: ProxyManager
    domain_manager: DomainManager
    scraper: Scraper
    queue: JobQueue
    worker: PriceUpdateWorker
    pool: WorkerPool
    scheduler: UpdateScheduler
    analytics: PriceAnalytics
    monitor: ScrapingMonitor
    tracking: TrackingService


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def build_application(config: Optional[Settings] = None, check_proxies: bool = True) -> Application:
    """Construct and wire all services.

    Args:
        config: Settings to use (module settings when omitted)
        check_proxies: Drop proxies that fail a liveness check before use

    Raises:
        ConfigurationError: Selector profile file is missing or invalid
    """
    config = config or default_settings

    # Fail fast on bad scraping rules before touching any external system
    profiles = ProfileRegistry.from_file(config.SELECTOR_PROFILES_PATH)

    engine = create_engine(config.DATABASE_URL, echo=config.DEBUG)
    await init_models(engine)
    session_factory = create_session_factory(engine)

    products = SQLProductRepository(session_factory)
    price_history = SQLPriceHistoryRepository(session_factory)
    alerts = SQLPriceAlertRepository(session_factory)
    scraping_logs = SQLScrapingLogRepository(session_factory)
    stores = SQLStoreRepository(session_factory)

    cache = create_cache(config.REDIS_URL)
    if isinstance(cache.backend, RedisCacheBackend) and not await cache.backend.health_check():
        logger.warning("Redis unreachable, requests will bypass the cache until it recovers")

    proxies = config.get_proxy_list()
    if proxies and check_proxies:
        working = await check_all_proxies(proxies, config.PROXY_CHECK_URL, config.PROXY_CHECK_TIMEOUT_SECONDS)
        if working:
            proxies = working
        else:
            logger.warning("No proxy passed the liveness check; keeping the configured list")
    proxy_manager = ProxyManager(proxies)
    domain_manager = DomainManager()

    browser_manager = BrowserManager(headless=config.BROWSER_HEADLESS)
    scraper = Scraper(
        proxy_manager,
        domain_manager,
        profiles=profiles,
        fetchers={
            FetchStrategy.STATIC: StaticFetcher(timeout=config.REQUEST_TIMEOUT_SECONDS),
            FetchStrategy.BROWSER: BrowserFetcher(
                browser_manager, timeout_ms=int(config.REQUEST_TIMEOUT_SECONDS * 1000)
            ),
        },
    )

    analytics = PriceAnalytics(products, price_history, cache)
    queue = JobQueue()
    worker = PriceUpdateWorker(
        scraper,
        domain_manager,
        products,
        price_history,
        alerts,
        scraping_logs,
        cache,
        analytics,
        max_attempts=config.MAX_JOB_ATTEMPTS,
    )

    return Application(
        settings=config,
        engine=engine,
        cache=cache,
        browser_manager=browser_manager,
        proxy_manager=proxy_manager,
        domain_manager=domain_manager,
        scraper=scraper,
        queue=queue,
        worker=worker,
        pool=WorkerPool(queue, worker, concurrency=config.WORKER_CONCURRENCY),
        scheduler=UpdateScheduler(
            products,
            queue,
            cron=config.DAILY_UPDATE_CRON,
            default_batch_size=config.UPDATE_BATCH_SIZE,
        ),
        analytics=analytics,
        monitor=ScrapingMonitor(scraping_logs),
        tracking=TrackingService(scraper, products, price_history, stores, alerts, cache),
    )


async def shutdown_application(app: Application) -> None:
    """Stop scheduling, let in-flight jobs finish, then release resources."""
    if app.scheduler.scheduler.running:
        app.scheduler.stop()
    await app.pool.shutdown()
    if app.browser_manager.is_running:
        await app.browser_manager.stop()
    await app.cache.close()
    await app.engine.dispose()
    logger.info("Price tracker stopped")


@asynccontextmanager
async def lifespan(config: Optional[Settings] = None) -> AsyncIterator[Application]:
    """Build the application, start the pipeline and tear it down on exit."""
    app = await build_application(config)
    logger.info(f"Environment: {app.settings.ENVIRONMENT}")

    app.pool.start()
    if app.settings.ENVIRONMENT != "test":
        app.scheduler.start()
    else:
        logger.info("Daily schedule disabled (test environment)")

    try:
        yield app
    finally:
        await shutdown_application(app)


async def run() -> None:
    configure_logging(default_settings.DEBUG)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with lifespan():
        logger.info("Price tracker running")
        await stop.wait()
        logger.info("Shutdown requested")


if __name__ == "__main__":
    asyncio.run(run())
