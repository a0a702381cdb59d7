"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pricetracker.models import Base
from pricetracker.repositories import (
    SQLPriceAlertRepository,
    SQLPriceHistoryRepository,
    SQLProductRepository,
    SQLScrapingLogRepository,
    SQLStoreRepository,
)
from pricetracker.services.cache_service import Cache, InMemoryCacheBackend


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def pad_html(body: str, size: int = 1200) -> str:
    """Wrap ``body`` in a page long enough to pass the bot-wall length check."""
    filler = "<p>" + ("Lorem ipsum dolor sit amet. " * (size // 28 + 1)) + "</p>"
    return f"<html><head><title>Shop</title></head><body>{body}{filler}</body></html>"


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def products(session_factory) -> SQLProductRepository:
    return SQLProductRepository(session_factory)


@pytest.fixture
def price_history(session_factory) -> SQLPriceHistoryRepository:
    return SQLPriceHistoryRepository(session_factory)


@pytest.fixture
def alerts(session_factory) -> SQLPriceAlertRepository:
    return SQLPriceAlertRepository(session_factory)


@pytest.fixture
def scraping_logs(session_factory) -> SQLScrapingLogRepository:
    return SQLScrapingLogRepository(session_factory)


@pytest.fixture
def stores(session_factory) -> SQLStoreRepository:
    return SQLStoreRepository(session_factory)


@pytest.fixture
def cache() -> Cache:
    return Cache(InMemoryCacheBackend())


@pytest_asyncio.fixture
async def sample_product(products, stores):
    """A tracked product last checked a day and a half ago."""
    store = await stores.create(name="Venex", url="www.venex.com.ar")
    return await products.create(
        url="https://www.venex.com.ar/producto/rtx-4060",
        name="Placa de Video RTX 4060",
        current_price=Decimal("100.00"),
        previous_price=None,
        last_checked=datetime.now(timezone.utc) - timedelta(hours=36),
        store_id=store.id,
    )
