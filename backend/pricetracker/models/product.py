"""Tracked product model."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pricetracker.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from pricetracker.models.store import Store


class Product(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Product whose price is refreshed by the update pipeline.

    ``current_price`` always mirrors the newest PriceHistory row;
    ``previous_price`` holds the value it replaced.
    """

    __tablename__ = "products"

    store_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("stores.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    url: Mapped[str] = mapped_column(String(2000), nullable=False, unique=True, comment="Product page URL")
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    current_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    previous_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Price before the most recent change"
    )
    last_checked: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime,
        nullable=True,
        comment="Last time the update pipeline scraped this product"
    )

    __table_args__ = (
        Index("idx_products_last_checked", "last_checked"),
    )

    store: Mapped[Optional["Store"]] = relationship(back_populates="products", lazy="joined")

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.name[:50]}', price={self.current_price})>"
