"""Price trend prediction, seasonal analysis and store comparison.

All three analyses are pure functions of a product's price history; the
service only adds caching around them. Results are cached for three hours
and dropped whenever a new price sample is recorded for the product.
"""

import math
import statistics
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

import structlog

from pricetracker.core.exceptions import InsufficientDataError, ProductNotFoundError
from pricetracker.models import PriceHistory
from pricetracker.repositories.interfaces import PriceHistoryRepository, ProductRepository
from pricetracker.schemas.analytics import (
    MonthlyAverage,
    PricePrediction,
    Season,
    SeasonalAnalysis,
    StoreComparison,
)
from pricetracker.services.cache_service import ANALYSIS_PREFIX, Cache

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Prediction parameters
# ---------------------------------------------------------------------------
MIN_SAMPLES_FOR_PREDICTION = 5
PREDICTION_HORIZON_DAYS = 30
# Slope dead zone in price units per day; flatter fits count as stable
TREND_THRESHOLD = 1e-4
MAX_WAIT_DAYS = 30

# ---------------------------------------------------------------------------
# Seasonal parameters
# ---------------------------------------------------------------------------
MIN_SAMPLES_FOR_SEASONAL = 30
MIN_MONTHS_FOR_SEASONAL = 2
SEASONAL_WINDOW_DAYS = 365
SEASON_THRESHOLD_PERCENT = 5.0

# Store comparison keys are only invalidated for name keywords longer than this
MIN_KEYWORD_LENGTH = 3

SECONDS_PER_DAY = 86400
CENTS = Decimal("0.01")


def _to_days(moment: datetime) -> float:
    return moment.timestamp() / SECONDS_PER_DAY


def _money(value: float) -> Decimal:
    return Decimal(str(round(value, 2))).quantize(CENTS)


def fit_trend(samples: Sequence[PriceHistory]) -> Tuple[float, float]:
    """Least-squares fit of price against time in days.

    Returns:
        (slope per day, intercept); a zero slope through the mean when all
        samples share one timestamp
    """
    xs = [_to_days(s.timestamp) for s in samples]
    ys = [float(s.price) for s in samples]
    try:
        slope, intercept = statistics.linear_regression(xs, ys)
    except statistics.StatisticsError:
        return 0.0, statistics.fmean(ys)
    return slope, intercept


def classify_trend(slope: float) -> str:
    if slope > TREND_THRESHOLD:
        return "rising"
    if slope < -TREND_THRESHOLD:
        return "falling"
    return "stable"


def price_confidence(prices: Sequence[float]) -> float:
    """1 - coefficient of variation, clamped to [0, 1] and rounded to 2 places."""
    mean = statistics.fmean(prices)
    if mean <= 0:
        return 0.0
    value = 1 - statistics.pstdev(prices) / mean
    return round(min(1.0, max(0.0, value)), 2)


def monthly_buckets(samples: Sequence[PriceHistory]) -> Dict[int, List[PriceHistory]]:
    buckets: Dict[int, List[PriceHistory]] = defaultdict(list)
    for sample in samples:
        buckets[sample.timestamp.month].append(sample)
    return buckets


def find_seasons(
    deviations: Dict[int, float],
    buckets: Dict[int, List[PriceHistory]],
) -> Tuple[List[Season], List[Season]]:
    """Merge consecutive calendar months flagged the same way into seasons.

    A run ends at a month inside the threshold band, a month without data,
    or a month flagged the other way.
    """
    high: List[Season] = []
    low: List[Season] = []
    run_kind: Optional[str] = None
    run: List[int] = []

    def close_run():
        if not run:
            return
        first_dates = [s.timestamp.date() for s in buckets[run[0]]]
        last_dates = [s.timestamp.date() for s in buckets[run[-1]]]
        season = Season(
            kind=run_kind,
            start_month=run[0],
            end_month=run[-1],
            start_date=min(first_dates),
            end_date=max(last_dates),
            magnitude_percent=round(max(abs(deviations[m]) for m in run), 2),
        )
        (high if run_kind == "high" else low).append(season)

    for month in range(1, 13):
        deviation = deviations.get(month)
        kind = None
        if deviation is not None:
            if deviation > SEASON_THRESHOLD_PERCENT:
                kind = "high"
            elif deviation < -SEASON_THRESHOLD_PERCENT:
                kind = "low"

        if kind is not None and kind == run_kind:
            run.append(month)
            continue

        close_run()
        run_kind = kind
        run = [month] if kind is not None else []

    close_run()
    return high, low


class PriceAnalytics:
    """Cached analytics over price history.

    Args:
        products: Product repository
        price_history: Price history repository
        cache: Read-through cache
        clock: Returns the current aware datetime (overridable in tests)
    """

    def __init__(
        self,
        products: ProductRepository,
        price_history: PriceHistoryRepository,
        cache: Cache,
        clock=None,
    ):
        self.products = products
        self.price_history = price_history
        self.cache = cache
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = logger.bind(service="price_analytics")

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    async def predict_price(self, product_id: str) -> PricePrediction:
        """Forecast the price 30 days ahead.

        Raises:
            InsufficientDataError: Fewer than 5 samples
        """
        return await self.cache.get_cached_analysis(
            "prediction", str(product_id), lambda: self._predict(product_id), PricePrediction
        )

    async def _predict(self, product_id: str) -> PricePrediction:
        samples = await self.price_history.find_by_product_id(UUID(str(product_id)))
        if len(samples) < MIN_SAMPLES_FOR_PREDICTION:
            raise InsufficientDataError(str(product_id), MIN_SAMPLES_FOR_PREDICTION, len(samples))

        slope, intercept = fit_trend(samples)
        trend = classify_trend(slope)
        now = self._clock()

        current = float(samples[-1].price)
        horizon = now + timedelta(days=PREDICTION_HORIZON_DAYS)
        predicted = max(0.0, intercept + slope * _to_days(horizon))

        best_time = now
        if trend == "falling":
            days = math.ceil(abs(current - predicted) / abs(slope))
            best_time = now + timedelta(days=min(MAX_WAIT_DAYS, days))

        prediction = PricePrediction(
            product_id=UUID(str(product_id)),
            current_price=samples[-1].price,
            predicted_price=_money(predicted),
            trend=trend,
            confidence=price_confidence([float(s.price) for s in samples]),
            best_time_to_buy=best_time,
            sample_count=len(samples),
            generated_at=now,
        )
        self.logger.info(
            "price_predicted",
            product_id=str(product_id),
            trend=trend,
            slope_per_day=round(slope, 6),
            predicted=float(prediction.predicted_price),
        )
        return prediction

    # ------------------------------------------------------------------
    # Seasonality
    # ------------------------------------------------------------------

    async def get_seasonal_analysis(self, product_id: str) -> SeasonalAnalysis:
        """Monthly price pattern over the trailing year.

        Raises:
            InsufficientDataError: Fewer than 30 samples in the window, or
                samples covering fewer than 2 calendar months
        """
        return await self.cache.get_cached_analysis(
            "seasonal", str(product_id), lambda: self._seasonal(product_id), SeasonalAnalysis
        )

    async def _seasonal(self, product_id: str) -> SeasonalAnalysis:
        now = self._clock()
        samples = await self.price_history.find_by_date_range(
            UUID(str(product_id)), now - timedelta(days=SEASONAL_WINDOW_DAYS), now
        )
        if len(samples) < MIN_SAMPLES_FOR_SEASONAL:
            raise InsufficientDataError(str(product_id), MIN_SAMPLES_FOR_SEASONAL, len(samples))

        buckets = monthly_buckets(samples)
        if len(buckets) < MIN_MONTHS_FOR_SEASONAL:
            raise InsufficientDataError(str(product_id), MIN_MONTHS_FOR_SEASONAL, len(buckets))

        averages = {
            month: statistics.fmean(float(s.price) for s in bucket)
            for month, bucket in buckets.items()
        }
        overall = statistics.fmean(averages.values())
        deviations = {
            month: (avg - overall) / overall * 100 if overall else 0.0
            for month, avg in averages.items()
        }

        high, low = find_seasons(deviations, buckets)

        return SeasonalAnalysis(
            product_id=UUID(str(product_id)),
            overall_average=_money(overall),
            monthly_averages=[
                MonthlyAverage(
                    month=month,
                    average_price=_money(averages[month]),
                    deviation_percent=round(deviations[month], 2),
                    sample_count=len(buckets[month]),
                )
                for month in sorted(averages)
            ],
            high_seasons=high,
            low_seasons=low,
            best_month=min(averages, key=averages.get),
            worst_month=max(averages, key=averages.get),
            generated_at=now,
        )

    # ------------------------------------------------------------------
    # Store comparison
    # ------------------------------------------------------------------

    async def compare_stores(self, product_name: str) -> List[StoreComparison]:
        """Every tracked product whose name contains ``product_name``.

        Matching is case-insensitive. Results are unsorted.
        """
        term = product_name.strip().lower()
        return await self.cache.get_cached_analysis(
            "stores", term, lambda: self._compare(term), List[StoreComparison]
        )

    async def _compare(self, term: str) -> List[StoreComparison]:
        if not term:
            return []

        comparisons = []
        for product in await self.products.search_by_name(term):
            lowest = await self.price_history.get_lowest_price(product.id)
            average = await self.price_history.get_average_price(product.id)
            comparisons.append(
                StoreComparison(
                    product_id=product.id,
                    product_name=product.name,
                    store_name=product.store.name if product.store else None,
                    url=product.url,
                    current_price=product.current_price,
                    lowest_price=lowest if lowest is not None else product.current_price,
                    average_price=average if average is not None else product.current_price,
                    last_checked=product.last_checked,
                )
            )
        return comparisons

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    async def invalidate_analysis_cache(self, product_id: str, product_name: Optional[str] = None) -> None:
        """Drop cached analyses that a new sample for this product makes stale.

        Args:
            product_id: Product whose history changed
            product_name: Its name; loaded from the repository when omitted
        """
        await self.cache.invalidate_cache(f"{ANALYSIS_PREFIX}prediction:{product_id}")
        await self.cache.invalidate_cache(f"{ANALYSIS_PREFIX}seasonal:{product_id}")

        if product_name is None:
            product = await self.products.find_by_id(UUID(str(product_id)))
            if product is None:
                raise ProductNotFoundError(str(product_id))
            product_name = product.name

        name = product_name.lower()
        for keyword in set(name.split()):
            if len(keyword) > MIN_KEYWORD_LENGTH:
                await self.cache.invalidate_cache(f"{ANALYSIS_PREFIX}stores:{keyword}")

        # Multi-word search terms that also match this product
        prefix = f"{ANALYSIS_PREFIX}stores:"
        for key in await self.cache.keys(prefix):
            if key[len(prefix):] in name:
                await self.cache.invalidate_cache(key)
