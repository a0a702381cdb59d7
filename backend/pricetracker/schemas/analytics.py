"""Pydantic schemas for price analytics results."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

Trend = Literal["rising", "falling", "stable"]
SeasonKind = Literal["high", "low"]


class PricePrediction(BaseModel):
    """30-day price forecast from a linear fit of the price history."""

    product_id: UUID
    current_price: Decimal
    predicted_price: Decimal = Field(ge=0)
    trend: Trend
    confidence: float = Field(ge=0, le=1)
    best_time_to_buy: datetime
    sample_count: int
    generated_at: datetime


class Season(BaseModel):
    """Run of consecutive months priced well above or below average."""

    kind: SeasonKind
    start_month: int = Field(ge=1, le=12)
    end_month: int = Field(ge=1, le=12)
    start_date: date
    end_date: date
    magnitude_percent: float  # Largest absolute deviation inside the run


class MonthlyAverage(BaseModel):
    month: int = Field(ge=1, le=12)
    average_price: Decimal
    deviation_percent: float
    sample_count: int


class SeasonalAnalysis(BaseModel):
    product_id: UUID
    overall_average: Decimal
    monthly_averages: List[MonthlyAverage]
    high_seasons: List[Season]
    low_seasons: List[Season]
    best_month: int = Field(ge=1, le=12)   # Cheapest month on average
    worst_month: int = Field(ge=1, le=12)  # Most expensive month on average
    generated_at: datetime


class StoreComparison(BaseModel):
    """One matching product in a cross-store price comparison."""

    product_id: UUID
    product_name: str
    store_name: Optional[str] = None
    url: str
    current_price: Decimal
    lowest_price: Decimal
    average_price: Decimal
    last_checked: Optional[datetime] = None
