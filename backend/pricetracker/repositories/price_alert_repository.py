"""SQLAlchemy repository for price alerts."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pricetracker.models import PriceAlert

logger = structlog.get_logger(__name__)


class SQLPriceAlertRepository:

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.logger = logger.bind(service="price_alert_repository")

    async def create(self, product_id: UUID, user_id: str, target_price: Decimal) -> PriceAlert:
        alert = PriceAlert(product_id=product_id, user_id=user_id, target_price=target_price, triggered=False)
        async with self.session_factory() as db:
            db.add(alert)
            await db.commit()
            await db.refresh(alert)
        return alert

    async def check_alerts_for_product(self, product_id: UUID, current_price: Decimal) -> List[PriceAlert]:
        """Trigger every pending alert whose target is at or above ``current_price``.

        Returns:
            The alerts triggered by this call
        """
        async with self.session_factory() as db:
            result = await db.execute(
                select(PriceAlert).where(
                    PriceAlert.product_id == product_id,
                    PriceAlert.triggered == False,  # noqa: E712
                    PriceAlert.target_price >= current_price,
                )
            )
            alerts = list(result.scalars().all())

            now = datetime.now(timezone.utc)
            for alert in alerts:
                alert.triggered = True
                alert.triggered_at = now

            await db.commit()

        if alerts:
            self.logger.info(
                "price_alerts_triggered",
                product_id=str(product_id),
                price=float(current_price),
                count=len(alerts),
            )
        return alerts
