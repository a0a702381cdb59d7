"""SQLAlchemy repository for tracked products."""

from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pricetracker.core.exceptions import ProductNotFoundError
from pricetracker.models import Product

logger = structlog.get_logger(__name__)


class SQLProductRepository:
    """Product CRUD backed by an async session factory.

    Each call opens its own short-lived session so the repository can be
    shared by concurrent workers.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.logger = logger.bind(service="product_repository")

    async def find_by_id(self, product_id: UUID) -> Optional[Product]:
        async with self.session_factory() as db:
            return await db.get(Product, product_id)

    async def find_all(self, order_by_staleness: bool = False) -> List[Product]:
        """Return every tracked product.

        Args:
            order_by_staleness: Oldest ``last_checked`` first, never-checked
                products before everything else.
        """
        stmt = select(Product)
        if order_by_staleness:
            stmt = stmt.order_by(Product.last_checked.asc().nulls_first(), Product.created_at.asc())
        else:
            stmt = stmt.order_by(Product.created_at.desc())
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return list(result.scalars().unique().all())

    async def find_by_url(self, url: str) -> Optional[Product]:
        async with self.session_factory() as db:
            result = await db.execute(select(Product).where(Product.url == url))
            return result.scalars().unique().one_or_none()

    async def search_by_name(self, term: str) -> List[Product]:
        """Case-insensitive substring match on product name."""
        pattern = f"%{term.lower()}%"
        async with self.session_factory() as db:
            result = await db.execute(
                select(Product).where(func.lower(Product.name).like(pattern))
            )
            return list(result.scalars().unique().all())

    async def get_latest(self, limit: int = 10) -> List[Product]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Product).order_by(Product.created_at.desc()).limit(limit)
            )
            return list(result.scalars().unique().all())

    async def create(self, **fields: Any) -> Product:
        product = Product(**fields)
        async with self.session_factory() as db:
            db.add(product)
            await db.commit()
            await db.refresh(product)
        self.logger.info("product_created", product_id=str(product.id), url=product.url)
        return product

    async def update(self, product_id: UUID, values: Dict[str, Any]) -> Product:
        """Apply ``values`` to a product.

        Setting ``current_price`` without an explicit ``previous_price`` moves
        the old current price into ``previous_price``.

        Raises:
            ProductNotFoundError: If the product does not exist
        """
        async with self.session_factory() as db:
            product = await db.get(Product, product_id)
            if product is None:
                raise ProductNotFoundError(str(product_id))

            if "current_price" in values and "previous_price" not in values:
                product.previous_price = product.current_price
            for key, value in values.items():
                setattr(product, key, value)

            await db.commit()
            await db.refresh(product)
            return product


def calculate_percentage_change(current, previous) -> float:
    """Percent change from ``previous`` to ``current``, 0 when undefined."""
    if not previous:
        return 0.0
    return round(float((current - previous) / previous * 100), 2)
