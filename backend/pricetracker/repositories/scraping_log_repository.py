"""SQLAlchemy repository for scrape attempt logs."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pricetracker.models import ScrapingLog


class SQLScrapingLogRepository:

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(
        self, url: str, domain: str, success: bool, error_message: Optional[str] = None
    ) -> ScrapingLog:
        entry = ScrapingLog(url=url, domain=domain, success=success, error_message=error_message)
        async with self.session_factory() as db:
            db.add(entry)
            await db.commit()
            await db.refresh(entry)
        return entry

    async def find_since(self, since: datetime) -> List[ScrapingLog]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(ScrapingLog)
                .where(ScrapingLog.timestamp >= since)
                .order_by(ScrapingLog.timestamp.asc())
            )
            return list(result.scalars().all())
