"""Pydantic schemas for scraping performance reports."""

from datetime import datetime
from typing import List

from pydantic import BaseModel


class DomainStats(BaseModel):
    domain: str
    total: int
    success: int
    failure: int
    success_rate: float  # Percent, 2 decimals


class OverallStats(BaseModel):
    total_attempts: int
    total_success: int
    total_failure: int
    overall_success_rate: float


class PerformanceReport(BaseModel):
    timestamp: datetime
    window_days: int
    overall_stats: OverallStats
    domain_stats: List[DomainStats]
    problematic_domains: List[DomainStats]
