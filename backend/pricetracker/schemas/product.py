"""Product Pydantic schemas returned by the tracking service."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

HistoryPeriod = Literal["7d", "30d", "90d", "1y"]


class PriceHistoryPoint(BaseModel):
    """Single price history data point."""

    model_config = ConfigDict(from_attributes=True)

    price: Decimal
    timestamp: datetime


class ProductResponse(BaseModel):
    """Product response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    url: str
    image_url: Optional[str] = None
    current_price: Decimal
    previous_price: Optional[Decimal] = None
    last_checked: Optional[datetime] = None
    store_id: Optional[UUID] = None


class ProductDetailResponse(ProductResponse):
    """Product with derived price statistics."""

    percentage_change: float
    lowest_price: Optional[Decimal] = None
    highest_price: Optional[Decimal] = None
