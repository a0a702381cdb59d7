"""Product tracking: start tracking a URL and read product details/history."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List
from uuid import UUID

import structlog

from pricetracker.core.exceptions import ParseError, ProductNotFoundError
from pricetracker.models import PriceAlert, Product
from pricetracker.repositories.interfaces import (
    PriceAlertRepository,
    PriceHistoryRepository,
    ProductRepository,
    StoreRepository,
)
from pricetracker.repositories.product_repository import calculate_percentage_change
from pricetracker.schemas.product import HistoryPeriod, PriceHistoryPoint, ProductDetailResponse
from pricetracker.scrapers.scraper import Scraper
from pricetracker.scrapers.utils.normalizer import extract_hostname
from pricetracker.services.cache_service import Cache

logger = structlog.get_logger(__name__)

PERIOD_DAYS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}
DEFAULT_PERIOD = "30d"


class TrackingService:
    """Entry points used when a user adds or views a product."""

    def __init__(
        self,
        scraper: Scraper,
        products: ProductRepository,
        price_history: PriceHistoryRepository,
        stores: StoreRepository,
        alerts: PriceAlertRepository,
        cache: Cache,
    ):
        self.scraper = scraper
        self.products = products
        self.price_history = price_history
        self.stores = stores
        self.alerts = alerts
        self.cache = cache
        self.logger = logger.bind(service="tracking_service")

    async def track_product(self, url: str) -> Product:
        """Start tracking ``url``, or return the product if already tracked.

        Scrapes the page, creates the store for its hostname on first sight
        and records the first price sample.

        Raises:
            ParseError: The page could not be scraped
            TransientNetworkError: Network failure while fetching
        """
        existing = await self.products.find_by_url(url)
        if existing is not None:
            self.logger.info("product_already_tracked", product_id=str(existing.id), url=url)
            return existing

        result = await self.scraper.scrape_product_info(url)
        if result is None:
            raise ParseError(url, "could not scrape product information")

        hostname = extract_hostname(url)
        store = await self.stores.find_by_domain(hostname)
        if store is None:
            store = await self.stores.create(
                name=hostname,
                url=hostname,
                scrape_config={"selectors": result.selectors_used},
            )
            self.logger.info("store_created", store_id=str(store.id), domain=hostname)

        now = datetime.now(timezone.utc)
        product = await self.products.create(
            url=url,
            name=result.name,
            image_url=result.image_url,
            current_price=result.price,
            previous_price=None,
            last_checked=now,
            store_id=store.id,
        )
        await self.price_history.create(product.id, result.price, now)

        self.logger.info(
            "product_tracked",
            product_id=str(product.id),
            price=float(result.price),
            domain=hostname,
        )
        return product

    async def get_product_details(self, product_id: UUID) -> ProductDetailResponse:
        """Product with percentage change and historical low/high.

        Raises:
            ProductNotFoundError: Unknown product
        """

        async def load() -> ProductDetailResponse:
            product = await self.products.find_by_id(product_id)
            if product is None:
                raise ProductNotFoundError(str(product_id))

            return ProductDetailResponse.model_validate(
                {
                    "id": product.id,
                    "name": product.name,
                    "url": product.url,
                    "image_url": product.image_url,
                    "current_price": product.current_price,
                    "previous_price": product.previous_price,
                    "last_checked": product.last_checked,
                    "store_id": product.store_id,
                    "percentage_change": calculate_percentage_change(
                        product.current_price, product.previous_price
                    ),
                    "lowest_price": await self.price_history.get_lowest_price(product.id),
                    "highest_price": await self.price_history.get_highest_price(product.id),
                }
            )

        return await self.cache.get_cached_product_info(str(product_id), load, ProductDetailResponse)

    async def get_price_history(
        self, product_id: UUID, period: HistoryPeriod = DEFAULT_PERIOD
    ) -> List[PriceHistoryPoint]:
        """Price samples in the trailing ``period``, oldest first."""
        if period not in PERIOD_DAYS:
            raise ValueError(f"Unknown period '{period}', expected one of {sorted(PERIOD_DAYS)}")

        async def load() -> List[PriceHistoryPoint]:
            end = datetime.now(timezone.utc)
            start = end - timedelta(days=PERIOD_DAYS[period])
            samples = await self.price_history.find_by_date_range(product_id, start, end)
            return [PriceHistoryPoint.model_validate(s) for s in samples]

        return await self.cache.get_cached_price_history(
            str(product_id), period, load, List[PriceHistoryPoint]
        )

    async def create_price_alert(self, product_id: UUID, user_id: str, target_price: Decimal) -> PriceAlert:
        """Subscribe ``user_id`` to a price drop at or below ``target_price``."""
        product = await self.products.find_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        if target_price <= 0:
            raise ValueError("target_price must be positive")

        alert = await self.alerts.create(product_id, user_id, target_price)
        self.logger.info(
            "price_alert_created",
            product_id=str(product_id),
            user_id=user_id,
            target_price=float(target_price),
        )
        return alert
