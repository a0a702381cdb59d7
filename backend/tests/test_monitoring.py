"""Tests for the scraping performance report."""

from datetime import datetime, timedelta, timezone

import pytest

from pricetracker.services.monitoring import ScrapingMonitor


@pytest.fixture
def monitor(scraping_logs) -> ScrapingMonitor:
    return ScrapingMonitor(scraping_logs)


async def record(scraping_logs, domain, successes, failures):
    url = f"https://{domain}/producto"
    for _ in range(successes):
        await scraping_logs.create(url, domain, True)
    for _ in range(failures):
        await scraping_logs.create(url, domain, False, "domain blocked")


class TestPerformanceReport:

    async def test_report_totals(self, monitor, scraping_logs):
        await record(scraping_logs, "www.venex.com.ar", 9, 1)
        await record(scraping_logs, "compragamer.com", 2, 4)

        report = await monitor.generate_performance_report(days=7)

        assert report.window_days == 7
        assert report.overall_stats.total_attempts == 16
        assert report.overall_stats.total_success == 11
        assert report.overall_stats.total_failure == 5
        assert report.overall_stats.overall_success_rate == 68.75
        assert [s.domain for s in report.domain_stats] == ["www.venex.com.ar", "compragamer.com"]
        assert report.domain_stats[1].success_rate == 33.33

    async def test_problematic_domains(self, monitor, scraping_logs):
        """Below threshold with at least five attempts, worst first."""
        await record(scraping_logs, "www.venex.com.ar", 9, 1)      # 90%
        await record(scraping_logs, "compragamer.com", 2, 4)       # 33%
        await record(scraping_logs, "www.mercadolibre.com.ar", 0, 5)  # 0%
        await record(scraping_logs, "shop.example.com", 0, 4)      # too few attempts

        report = await monitor.generate_performance_report(threshold=50)

        assert [s.domain for s in report.problematic_domains] == [
            "www.mercadolibre.com.ar",
            "compragamer.com",
        ]
        assert await monitor.get_problematic_domains(threshold=95) == [
            report.problematic_domains[0],
            report.problematic_domains[1],
            report.domain_stats[0],
        ]

    async def test_window_excludes_old_attempts(self, scraping_logs):
        await record(scraping_logs, "www.venex.com.ar", 3, 0)
        future = ScrapingMonitor(
            scraping_logs, clock=lambda: datetime.now(timezone.utc) + timedelta(days=8)
        )

        report = await future.generate_performance_report(days=7)

        assert report.overall_stats.total_attempts == 0
        assert report.overall_stats.overall_success_rate == 0.0
        assert report.domain_stats == []

    async def test_empty_log(self, monitor):
        report = await monitor.generate_performance_report()

        assert report.overall_stats.total_attempts == 0
        assert report.problematic_domains == []
