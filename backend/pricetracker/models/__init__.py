"""SQLAlchemy models for the price tracker.

All models are imported here so ``Base.metadata`` sees every table.
"""

from pricetracker.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from pricetracker.models.store import Store
from pricetracker.models.product import Product
from pricetracker.models.price_history import PriceHistory
from pricetracker.models.price_alert import PriceAlert
from pricetracker.models.scraping_log import ScrapingLog

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Store",
    "Product",
    "PriceHistory",
    "PriceAlert",
    "ScrapingLog",
]
