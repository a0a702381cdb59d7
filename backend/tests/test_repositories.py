"""Tests for the SQLAlchemy repositories."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from pricetracker.core.exceptions import ProductNotFoundError
from pricetracker.repositories import OutOfOrderSampleError
from pricetracker.repositories.product_repository import calculate_percentage_change


# ============================================================================
# PRODUCTS
# ============================================================================

class TestProductRepository:

    async def test_find_by_url_and_store_loaded(self, products, sample_product):
        found = await products.find_by_url(sample_product.url)

        assert found.id == sample_product.id
        assert found.store.url == "www.venex.com.ar"
        assert await products.find_by_url("https://nowhere.example/x") is None

    async def test_update_moves_current_to_previous(self, products, sample_product):
        updated = await products.update(sample_product.id, {"current_price": Decimal("80.00")})

        assert updated.current_price == Decimal("80.00")
        assert updated.previous_price == Decimal("100.00")

    async def test_update_last_checked_only(self, products, sample_product):
        now = datetime.now(timezone.utc)

        updated = await products.update(sample_product.id, {"last_checked": now})

        assert updated.current_price == Decimal("100.00")
        assert updated.previous_price is None
        assert updated.last_checked == now

    async def test_update_missing_product(self, products):
        with pytest.raises(ProductNotFoundError):
            await products.update(uuid4(), {"last_checked": datetime.now(timezone.utc)})

    async def test_staleness_order(self, products):
        now = datetime.now(timezone.utc)
        for name, hours in [("fresh", 1), ("never", None), ("old", 72), ("day", 25)]:
            await products.create(
                url=f"https://www.venex.com.ar/{name}",
                name=name,
                current_price=Decimal("10.00"),
                last_checked=None if hours is None else now - timedelta(hours=hours),
            )

        ordered = await products.find_all(order_by_staleness=True)

        assert [p.name for p in ordered] == ["never", "old", "day", "fresh"]

    async def test_search_by_name_is_case_insensitive(self, products, sample_product):
        assert [p.id for p in await products.search_by_name("rtx 4060")] == [sample_product.id]
        assert await products.search_by_name("notebook") == []

    @pytest.mark.parametrize(
        "current,previous,expected",
        [
            (Decimal("90"), Decimal("100"), -10.0),
            (Decimal("150"), Decimal("100"), 50.0),
            (Decimal("100"), None, 0.0),
            (Decimal("100"), Decimal("0"), 0.0),
            (Decimal("2"), Decimal("3"), -33.33),
        ],
    )
    def test_percentage_change(self, current, previous, expected):
        assert calculate_percentage_change(current, previous) == expected


# ============================================================================
# PRICE HISTORY
# ============================================================================

class TestPriceHistoryRepository:

    async def test_samples_returned_oldest_first(self, price_history, sample_product):
        base = datetime(2024, 3, 1, tzinfo=timezone.utc)
        for day, price in enumerate(["100", "95", "97"]):
            await price_history.create(sample_product.id, Decimal(price), base + timedelta(days=day))

        samples = await price_history.find_by_product_id(sample_product.id)

        assert [s.price for s in samples] == [Decimal("100.00"), Decimal("95.00"), Decimal("97.00")]
        assert samples[0].timestamp == base

    async def test_out_of_order_sample_rejected(self, price_history, sample_product):
        """History is append-only in time order."""
        now = datetime(2024, 3, 10, tzinfo=timezone.utc)
        await price_history.create(sample_product.id, Decimal("100"), now)

        with pytest.raises(OutOfOrderSampleError):
            await price_history.create(sample_product.id, Decimal("90"), now - timedelta(seconds=1))

        # Same timestamp is allowed
        await price_history.create(sample_product.id, Decimal("90"), now)
        assert len(await price_history.find_by_product_id(sample_product.id)) == 2

    async def test_date_range_inclusive(self, price_history, sample_product):
        base = datetime(2024, 3, 1, tzinfo=timezone.utc)
        for day in range(5):
            await price_history.create(sample_product.id, Decimal("100"), base + timedelta(days=day))

        samples = await price_history.find_by_date_range(
            sample_product.id, base + timedelta(days=1), base + timedelta(days=3)
        )

        assert len(samples) == 3

    async def test_aggregates(self, price_history, sample_product):
        base = datetime(2024, 3, 1, tzinfo=timezone.utc)
        for day, price in enumerate(["100.00", "80.00", "90.50"]):
            await price_history.create(sample_product.id, Decimal(price), base + timedelta(days=day))

        assert await price_history.get_lowest_price(sample_product.id) == Decimal("80.00")
        assert await price_history.get_highest_price(sample_product.id) == Decimal("100.00")
        assert await price_history.get_average_price(sample_product.id) == Decimal("90.17")

    async def test_aggregates_without_history(self, price_history, sample_product):
        assert await price_history.get_lowest_price(sample_product.id) is None
        assert await price_history.get_average_price(sample_product.id) is None


# ============================================================================
# ALERTS
# ============================================================================

class TestPriceAlertRepository:

    async def test_alert_triggers_once(self, alerts, sample_product):
        await alerts.create(sample_product.id, "user-1", Decimal("95.00"))
        await alerts.create(sample_product.id, "user-2", Decimal("80.00"))

        first = await alerts.check_alerts_for_product(sample_product.id, Decimal("95.00"))

        assert [a.user_id for a in first] == ["user-1"]
        assert first[0].triggered is True
        assert first[0].triggered_at is not None
        assert await alerts.check_alerts_for_product(sample_product.id, Decimal("94.00")) == []

    async def test_price_above_target_does_not_trigger(self, alerts, sample_product):
        await alerts.create(sample_product.id, "user-1", Decimal("50.00"))

        assert await alerts.check_alerts_for_product(sample_product.id, Decimal("60.00")) == []


# ============================================================================
# STORES AND LOGS
# ============================================================================

class TestStoreAndLogRepositories:

    async def test_find_store_by_domain(self, stores):
        created = await stores.create(
            name="Venex", url="www.venex.com.ar", scrape_config={"selectors": {"price": ".textPrecio"}}
        )

        found = await stores.find_by_domain("www.venex.com.ar")

        assert found.id == created.id
        assert found.scrape_config["selectors"]["price"] == ".textPrecio"
        assert await stores.find_by_domain("compragamer.com") is None

    async def test_logs_since(self, scraping_logs):
        await scraping_logs.create("https://www.venex.com.ar/a", "www.venex.com.ar", True)
        await scraping_logs.create("https://www.venex.com.ar/b", "www.venex.com.ar", False, "timeout")

        recent = await scraping_logs.find_since(datetime.now(timezone.utc) - timedelta(minutes=5))
        future = await scraping_logs.find_since(datetime.now(timezone.utc) + timedelta(minutes=5))

        assert {(entry.success, entry.error_message) for entry in recent} == {(True, None), (False, "timeout")}
        assert future == []
