"""Pydantic schemas for service results."""

from pricetracker.schemas.analytics import (
    MonthlyAverage,
    PricePrediction,
    Season,
    SeasonalAnalysis,
    StoreComparison,
)
from pricetracker.schemas.monitoring import DomainStats, OverallStats, PerformanceReport
from pricetracker.schemas.product import (
    HistoryPeriod,
    PriceHistoryPoint,
    ProductDetailResponse,
    ProductResponse,
)

__all__ = [
    "MonthlyAverage",
    "PricePrediction",
    "Season",
    "SeasonalAnalysis",
    "StoreComparison",
    "DomainStats",
    "OverallStats",
    "PerformanceReport",
    "HistoryPeriod",
    "PriceHistoryPoint",
    "ProductDetailResponse",
    "ProductResponse",
]
