"""Store model: one row per shop hostname we scrape."""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pricetracker.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from pricetracker.models.product import Product


class Store(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Online shop that hosts tracked products."""

    __tablename__ = "stores"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    url: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        unique=True,
        index=True,
        comment="Hostname of the shop, e.g. www.venex.com.ar"
    )
    scrape_config: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
        comment="Selectors that matched when the store was first scraped"
    )

    products: Mapped[list["Product"]] = relationship(back_populates="store")

    def __repr__(self) -> str:
        return f"<Store(id={self.id}, url='{self.url}')>"
