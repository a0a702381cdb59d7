"""SQLAlchemy repository for append-only price samples."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pricetracker.core.exceptions import PriceTrackerException
from pricetracker.models import PriceHistory

logger = structlog.get_logger(__name__)


class OutOfOrderSampleError(PriceTrackerException):
    """Raised when a sample would be older than the newest stored one."""


class SQLPriceHistoryRepository:
    """Price history queries. Rows are only ever inserted."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.logger = logger.bind(service="price_history_repository")

    async def create(
        self, product_id: UUID, price: Decimal, timestamp: Optional[datetime] = None
    ) -> PriceHistory:
        """Append a sample.

        Raises:
            OutOfOrderSampleError: If ``timestamp`` is earlier than the latest
                sample already stored for the product
        """
        timestamp = timestamp or datetime.now(timezone.utc)
        async with self.session_factory() as db:
            latest = await db.scalar(
                select(func.max(PriceHistory.timestamp)).where(PriceHistory.product_id == product_id)
            )
            if latest is not None:
                if latest.tzinfo is None:
                    latest = latest.replace(tzinfo=timezone.utc)
                if timestamp < latest:
                    raise OutOfOrderSampleError(
                        f"Sample at {timestamp.isoformat()} precedes latest {latest.isoformat()} "
                        f"for product {product_id}"
                    )

            sample = PriceHistory(product_id=product_id, price=price, timestamp=timestamp)
            db.add(sample)
            await db.commit()
            await db.refresh(sample)

        self.logger.debug("price_sample_recorded", product_id=str(product_id), price=float(price))
        return sample

    async def find_by_product_id(self, product_id: UUID) -> List[PriceHistory]:
        """All samples for a product, oldest first."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(PriceHistory)
                .where(PriceHistory.product_id == product_id)
                .order_by(PriceHistory.timestamp.asc())
            )
            return list(result.scalars().all())

    async def find_by_date_range(
        self, product_id: UUID, start: datetime, end: datetime
    ) -> List[PriceHistory]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(PriceHistory)
                .where(
                    PriceHistory.product_id == product_id,
                    PriceHistory.timestamp >= start,
                    PriceHistory.timestamp <= end,
                )
                .order_by(PriceHistory.timestamp.asc())
            )
            return list(result.scalars().all())

    async def get_lowest_price(self, product_id: UUID) -> Optional[Decimal]:
        return await self._aggregate(func.min(PriceHistory.price), product_id)

    async def get_highest_price(self, product_id: UUID) -> Optional[Decimal]:
        return await self._aggregate(func.max(PriceHistory.price), product_id)

    async def get_average_price(self, product_id: UUID) -> Optional[Decimal]:
        value = await self._aggregate(func.avg(PriceHistory.price), product_id)
        if value is None:
            return None
        return Decimal(str(value)).quantize(Decimal("0.01"))

    async def _aggregate(self, expression, product_id: UUID):
        async with self.session_factory() as db:
            value = await db.scalar(
                select(expression).where(PriceHistory.product_id == product_id)
            )
        if value is None:
            return None
        return value if isinstance(value, Decimal) else Decimal(str(value))
