"""Read-only aggregation of scrape attempt logs."""

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List

import structlog

from pricetracker.repositories.interfaces import ScrapingLogRepository
from pricetracker.schemas.monitoring import DomainStats, OverallStats, PerformanceReport

logger = structlog.get_logger(__name__)

DEFAULT_WINDOW_DAYS = 7
DEFAULT_SUCCESS_THRESHOLD = 50.0  # Percent
MIN_ATTEMPTS_FOR_PROBLEMATIC = 5


def _rate(success: int, total: int) -> float:
    return round(success / total * 100, 2) if total else 0.0


class ScrapingMonitor:
    """Builds per-domain success statistics over a trailing window."""

    def __init__(self, scraping_logs: ScrapingLogRepository, clock=None):
        self.scraping_logs = scraping_logs
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = logger.bind(service="scraping_monitor")

    async def get_domain_stats(self, days: int = DEFAULT_WINDOW_DAYS) -> List[DomainStats]:
        """Attempts, successes and success rate per domain, busiest first."""
        since = self._clock() - timedelta(days=days)
        logs = await self.scraping_logs.find_since(since)

        counts: Dict[str, List[int]] = defaultdict(lambda: [0, 0])
        for entry in logs:
            bucket = counts[entry.domain]
            bucket[0] += 1
            if entry.success:
                bucket[1] += 1

        stats = [
            DomainStats(
                domain=domain,
                total=total,
                success=success,
                failure=total - success,
                success_rate=_rate(success, total),
            )
            for domain, (total, success) in counts.items()
        ]
        stats.sort(key=lambda s: (-s.total, s.domain))
        return stats

    async def get_problematic_domains(
        self,
        threshold: float = DEFAULT_SUCCESS_THRESHOLD,
        days: int = DEFAULT_WINDOW_DAYS,
    ) -> List[DomainStats]:
        return self._problematic(await self.get_domain_stats(days), threshold)

    @staticmethod
    def _problematic(stats: List[DomainStats], threshold: float) -> List[DomainStats]:
        flagged = [
            s for s in stats
            if s.total >= MIN_ATTEMPTS_FOR_PROBLEMATIC and s.success_rate < threshold
        ]
        flagged.sort(key=lambda s: s.success_rate)
        return flagged

    async def generate_performance_report(
        self,
        days: int = DEFAULT_WINDOW_DAYS,
        threshold: float = DEFAULT_SUCCESS_THRESHOLD,
    ) -> PerformanceReport:
        """Overall and per-domain scraping health for the trailing window.

        Args:
            days: Window length in days
            threshold: Success rate (percent) under which a domain is flagged

        Returns:
            PerformanceReport with domains below ``threshold`` (and at least
            5 attempts) listed worst first
        """
        stats = await self.get_domain_stats(days)
        total = sum(s.total for s in stats)
        success = sum(s.success for s in stats)

        report = PerformanceReport(
            timestamp=self._clock(),
            window_days=days,
            overall_stats=OverallStats(
                total_attempts=total,
                total_success=success,
                total_failure=total - success,
                overall_success_rate=_rate(success, total),
            ),
            domain_stats=stats,
            problematic_domains=self._problematic(stats, threshold),
        )

        self.logger.info(
            "performance_report_generated",
            total_attempts=total,
            overall_success_rate=report.overall_stats.overall_success_rate,
            problematic=len(report.problematic_domains),
        )
        return report
