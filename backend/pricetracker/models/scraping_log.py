"""Scrape attempt log used by the monitoring reports."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from pricetracker.models.base import Base, UTCDateTime, UUIDPrimaryKeyMixin, utcnow


class ScrapingLog(UUIDPrimaryKeyMixin, Base):
    """Outcome of a single scrape attempt made by the update worker."""

    __tablename__ = "scraping_logs"

    url: Mapped[str] = mapped_column(String(2000), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_scraping_logs_timestamp", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<ScrapingLog(domain='{self.domain}', success={self.success}, timestamp={self.timestamp})>"
