"""Append-only price samples."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from pricetracker.models.base import Base, UTCDateTime, UUIDPrimaryKeyMixin, utcnow


class PriceHistory(UUIDPrimaryKeyMixin, Base):
    """One observed price of a product at a point in time.

    Rows are never updated or deleted, and timestamps are non-decreasing
    per product (enforced by the repository).
    """

    __tablename__ = "price_history"

    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, comment="Price at this point in time")
    timestamp: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        comment="When this price was observed"
    )

    __table_args__ = (
        Index("idx_price_history_product_timestamp", "product_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<PriceHistory(product_id={self.product_id}, price={self.price}, timestamp={self.timestamp})>"
