"""Storage contracts consumed by the scraping pipeline and analytics.

The core services only depend on these protocols. SQLAlchemy-backed
implementations live next to this module; tests substitute in-memory fakes.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol
from uuid import UUID

from pricetracker.models import PriceAlert, PriceHistory, Product, ScrapingLog, Store


class ProductRepository(Protocol):
    async def find_by_id(self, product_id: UUID) -> Optional[Product]: ...

    async def find_all(self, order_by_staleness: bool = False) -> List[Product]: ...

    async def find_by_url(self, url: str) -> Optional[Product]: ...

    async def search_by_name(self, term: str) -> List[Product]: ...

    async def create(self, **fields: Any) -> Product: ...

    async def update(self, product_id: UUID, values: Dict[str, Any]) -> Product: ...


class PriceHistoryRepository(Protocol):
    async def create(
        self, product_id: UUID, price: Decimal, timestamp: Optional[datetime] = None
    ) -> PriceHistory: ...

    async def find_by_product_id(self, product_id: UUID) -> List[PriceHistory]: ...

    async def find_by_date_range(
        self, product_id: UUID, start: datetime, end: datetime
    ) -> List[PriceHistory]: ...

    async def get_lowest_price(self, product_id: UUID) -> Optional[Decimal]: ...

    async def get_highest_price(self, product_id: UUID) -> Optional[Decimal]: ...

    async def get_average_price(self, product_id: UUID) -> Optional[Decimal]: ...


class PriceAlertRepository(Protocol):
    async def create(self, product_id: UUID, user_id: str, target_price: Decimal) -> PriceAlert: ...

    async def check_alerts_for_product(self, product_id: UUID, current_price: Decimal) -> List[PriceAlert]: ...


class ScrapingLogRepository(Protocol):
    async def create(
        self, url: str, domain: str, success: bool, error_message: Optional[str] = None
    ) -> ScrapingLog: ...

    async def find_since(self, since: datetime) -> List[ScrapingLog]: ...


class StoreRepository(Protocol):
    async def find_by_id(self, store_id: UUID) -> Optional[Store]: ...

    async def find_by_domain(self, domain: str) -> Optional[Store]: ...

    async def create(self, name: str, url: str, scrape_config: Optional[dict] = None) -> Store: ...
