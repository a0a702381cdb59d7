"""SQLAlchemy repository for stores."""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pricetracker.models import Store


class SQLStoreRepository:

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def find_by_id(self, store_id: UUID) -> Optional[Store]:
        async with self.session_factory() as db:
            return await db.get(Store, store_id)

    async def find_by_domain(self, domain: str) -> Optional[Store]:
        async with self.session_factory() as db:
            result = await db.execute(select(Store).where(Store.url == domain))
            return result.scalar_one_or_none()

    async def create(self, name: str, url: str, scrape_config: Optional[dict] = None) -> Store:
        store = Store(name=name, url=url, scrape_config=scrape_config)
        async with self.session_factory() as db:
            db.add(store)
            await db.commit()
            await db.refresh(store)
        return store
