"""Repository implementations backed by SQLAlchemy."""

from pricetracker.repositories.price_alert_repository import SQLPriceAlertRepository
from pricetracker.repositories.price_history_repository import (
    OutOfOrderSampleError,
    SQLPriceHistoryRepository,
)
from pricetracker.repositories.product_repository import SQLProductRepository
from pricetracker.repositories.scraping_log_repository import SQLScrapingLogRepository
from pricetracker.repositories.store_repository import SQLStoreRepository

__all__ = [
    "OutOfOrderSampleError",
    "SQLPriceAlertRepository",
    "SQLPriceHistoryRepository",
    "SQLProductRepository",
    "SQLScrapingLogRepository",
    "SQLStoreRepository",
]
