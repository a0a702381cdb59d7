"""Tests for price prediction, seasonality and store comparison."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pricetracker.core.exceptions import InsufficientDataError
from pricetracker.services.price_analytics import PriceAnalytics, classify_trend

NOW = datetime(2024, 12, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def analytics(products, price_history, cache) -> PriceAnalytics:
    return PriceAnalytics(products, price_history, cache, clock=lambda: NOW)


async def record_daily(price_history, product_id, prices):
    """One sample per day, the last one at NOW."""
    for offset, price in enumerate(prices):
        moment = NOW - timedelta(days=len(prices) - 1 - offset)
        await price_history.create(product_id, Decimal(str(price)), moment)


# ============================================================================
# PREDICTION
# ============================================================================

class TestPredictPrice:

    async def test_rising_series(self, analytics, price_history, sample_product):
        """$100 to $190 over ten days extrapolates to about $490."""
        await record_daily(price_history, sample_product.id, range(100, 200, 10))

        prediction = await analytics.predict_price(str(sample_product.id))

        assert prediction.trend == "rising"
        assert prediction.current_price == Decimal("190.00")
        assert abs(prediction.predicted_price - Decimal("490.00")) <= Decimal("0.05")
        assert prediction.best_time_to_buy == NOW
        assert prediction.sample_count == 10
        assert prediction.confidence == pytest.approx(0.80, abs=0.01)

    async def test_falling_series_waits(self, analytics, price_history, sample_product):
        """Falling prices push the best time to buy into the future, capped at 30 days."""
        await record_daily(price_history, sample_product.id, range(100, 50, -5))

        prediction = await analytics.predict_price(str(sample_product.id))

        assert prediction.trend == "falling"
        assert prediction.predicted_price == Decimal("0.00")
        # $55 falling $5 a day hits the floor in about 11 days
        assert NOW + timedelta(days=10) <= prediction.best_time_to_buy <= NOW + timedelta(days=12)

    async def test_constant_series_is_stable(self, analytics, price_history, sample_product):
        await record_daily(price_history, sample_product.id, [250] * 6)

        prediction = await analytics.predict_price(str(sample_product.id))

        assert prediction.trend == "stable"
        assert prediction.predicted_price == Decimal("250.00")
        assert prediction.confidence == 1.0
        assert prediction.best_time_to_buy == NOW

    async def test_too_few_samples(self, analytics, price_history, sample_product):
        await record_daily(price_history, sample_product.id, [100, 101, 102])

        with pytest.raises(InsufficientDataError) as exc_info:
            await analytics.predict_price(str(sample_product.id))

        assert exc_info.value.required == 5
        assert exc_info.value.available == 3

    async def test_prediction_cached_until_invalidated(self, analytics, price_history, sample_product):
        await record_daily(price_history, sample_product.id, [100, 110, 120, 130, 140])
        first = await analytics.predict_price(str(sample_product.id))

        await price_history.create(sample_product.id, Decimal("150"), NOW + timedelta(hours=1))
        assert (await analytics.predict_price(str(sample_product.id))).sample_count == first.sample_count

        await analytics.invalidate_analysis_cache(str(sample_product.id), sample_product.name)
        assert (await analytics.predict_price(str(sample_product.id))).sample_count == 6

    @pytest.mark.parametrize(
        "slope,expected",
        [(0.5, "rising"), (-0.5, "falling"), (0.0, "stable"), (5e-5, "stable")],
    )
    def test_classify_trend(self, slope, expected):
        assert classify_trend(slope) == expected


# ============================================================================
# SEASONALITY
# ============================================================================

class TestSeasonalAnalysis:

    async def record_year(self, price_history, product_id, summer_price):
        for month in range(1, 12):
            price = summer_price if month in (6, 7, 8) else Decimal("100.00")
            for day in (5, 15, 25):
                moment = datetime(2024, month, day, 10, 0, tzinfo=timezone.utc)
                await price_history.create(product_id, price, moment)

    async def test_summer_high_season(self, analytics, price_history, sample_product):
        """June to August about 10% above the yearly average form one high season."""
        await self.record_year(price_history, sample_product.id, Decimal("114.29"))

        analysis = await analytics.get_seasonal_analysis(str(sample_product.id))

        assert len(analysis.high_seasons) == 1
        season = analysis.high_seasons[0]
        assert (season.start_month, season.end_month) == (6, 8)
        assert season.start_date.isoformat() == "2024-06-05"
        assert season.end_date.isoformat() == "2024-08-25"
        assert season.magnitude_percent == pytest.approx(10.0, abs=0.05)
        assert analysis.low_seasons == []
        assert analysis.worst_month in (6, 7, 8)
        assert analysis.best_month not in (6, 7, 8)
        assert [m.month for m in analysis.monthly_averages] == list(range(1, 12))

    async def test_flat_year_has_no_seasons(self, analytics, price_history, sample_product):
        await self.record_year(price_history, sample_product.id, Decimal("100.00"))

        analysis = await analytics.get_seasonal_analysis(str(sample_product.id))

        assert analysis.high_seasons == []
        assert analysis.low_seasons == []
        assert analysis.overall_average == Decimal("100.00")

    async def test_needs_thirty_samples(self, analytics, price_history, sample_product):
        for day in range(1, 30):
            await price_history.create(
                sample_product.id, Decimal("100"), datetime(2024, 10, day, tzinfo=timezone.utc)
            )

        with pytest.raises(InsufficientDataError):
            await analytics.get_seasonal_analysis(str(sample_product.id))

    async def test_needs_two_months(self, analytics, price_history, sample_product):
        for hour in range(40):
            await price_history.create(
                sample_product.id,
                Decimal("100"),
                datetime(2024, 11, 1, tzinfo=timezone.utc) + timedelta(hours=hour),
            )

        with pytest.raises(InsufficientDataError) as exc_info:
            await analytics.get_seasonal_analysis(str(sample_product.id))

        assert exc_info.value.required == 2

    async def test_samples_older_than_a_year_ignored(self, analytics, price_history, sample_product):
        for day in range(1, 29):
            await price_history.create(
                sample_product.id, Decimal("100"), datetime(2023, 1, day, tzinfo=timezone.utc)
            )
        for day in range(1, 29):
            await price_history.create(
                sample_product.id, Decimal("100"), datetime(2024, 11, day, tzinfo=timezone.utc)
            )

        with pytest.raises(InsufficientDataError) as exc_info:
            await analytics.get_seasonal_analysis(str(sample_product.id))

        assert exc_info.value.available == 28


# ============================================================================
# STORE COMPARISON
# ============================================================================

class TestCompareStores:

    @pytest.fixture
    async def catalog(self, products, stores, price_history, sample_product):
        other_store = await stores.create(name="Compra Gamer", url="compragamer.com")
        rival = await products.create(
            url="https://compragamer.com/producto/rtx-4060-oc",
            name="Placa de Video Gigabyte RTX 4060 OC",
            current_price=Decimal("120.00"),
            store_id=other_store.id,
        )
        await products.create(
            url="https://compragamer.com/producto/mouse",
            name="Mouse Logitech G203",
            current_price=Decimal("20.00"),
            store_id=other_store.id,
        )
        await price_history.create(rival.id, Decimal("130.00"), NOW - timedelta(days=2))
        await price_history.create(rival.id, Decimal("110.00"), NOW - timedelta(days=1))
        return rival

    async def test_matches_case_insensitive(self, analytics, catalog, sample_product):
        results = await analytics.compare_stores("rtx 4060")

        by_id = {r.product_id: r for r in results}
        assert set(by_id) == {sample_product.id, catalog.id}
        assert by_id[catalog.id].store_name == "Compra Gamer"
        assert by_id[catalog.id].lowest_price == Decimal("110.00")
        assert by_id[catalog.id].average_price == Decimal("120.00")
        # No history yet: falls back to the current price
        assert by_id[sample_product.id].lowest_price == Decimal("100.00")
        assert by_id[sample_product.id].store_name == "Venex"

    async def test_no_match(self, analytics, catalog):
        assert await analytics.compare_stores("teclado") == []

    async def test_new_product_invalidates_matching_terms(self, analytics, products, catalog):
        assert len(await analytics.compare_stores("RTX 4060")) == 2
        assert len(await analytics.compare_stores("placa")) == 2

        newcomer = await products.create(
            url="https://www.venex.com.ar/producto/rtx-4060-ti",
            name="Placa de Video RTX 4060 Ti",
            current_price=Decimal("150.00"),
        )
        # Still served from cache
        assert len(await analytics.compare_stores("rtx 4060")) == 2

        await analytics.invalidate_analysis_cache(str(newcomer.id), newcomer.name)

        assert len(await analytics.compare_stores("rtx 4060")) == 3
        assert len(await analytics.compare_stores("placa")) == 3

    async def test_unrelated_terms_stay_cached(self, analytics, products, catalog, cache):
        await analytics.compare_stores("mouse")

        await analytics.invalidate_analysis_cache(str(catalog.id), catalog.name)

        assert await cache.keys("analysis:stores:mouse") == ["analysis:stores:mouse"]
