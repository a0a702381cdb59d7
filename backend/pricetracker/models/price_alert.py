"""PriceAlert model for user price notifications."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from pricetracker.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin


class PriceAlert(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """User's price alert subscription for a product."""

    __tablename__ = "price_alerts"

    user_id: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True,
        comment="Opaque id of the subscriber; users live outside this service"
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    target_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False,
        comment="Alert when price drops to or below this"
    )
    triggered: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
        comment="Whether alert has been triggered"
    )
    triggered_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<PriceAlert(user={self.user_id}, product={self.product_id}, target={self.target_price})>"
