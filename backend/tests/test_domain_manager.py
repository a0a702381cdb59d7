"""Tests for per-domain adaptive backoff."""

import random

import pytest

from pricetracker.scrapers.utils.domain_manager import (
    BACKOFF_TIERS_MS,
    MAX_BACKOFF_LEVEL,
    DomainManager,
)

DOMAIN = "www.venex.com.ar"


@pytest.fixture
def manager(clock) -> DomainManager:
    return DomainManager(clock=clock, rng=random.Random(42))


class TestBackoffLevel:

    def test_unknown_domain_starts_at_level_zero(self, manager):
        assert manager.get_stats(DOMAIN).backoff_level == 0
        assert manager.is_domain_cooling(DOMAIN) is False

    def test_failure_raises_level_by_one(self, manager):
        for expected in range(1, MAX_BACKOFF_LEVEL + 1):
            manager.register_failure(DOMAIN)
            assert manager.get_stats(DOMAIN).backoff_level == expected

    def test_level_capped_at_five(self, manager):
        for _ in range(20):
            manager.register_failure(DOMAIN)
            assert 0 <= manager.get_stats(DOMAIN).backoff_level <= MAX_BACKOFF_LEVEL

        assert manager.get_stats(DOMAIN).backoff_level == 5

    def test_recovery_needs_more_than_three_successes(self, manager):
        """Backoff drops one level on the 4th consecutive success, not earlier."""
        manager.register_failure(DOMAIN)
        manager.register_failure(DOMAIN)

        for _ in range(3):
            manager.register_success(DOMAIN)
        assert manager.get_stats(DOMAIN).backoff_level == 2

        manager.register_success(DOMAIN)
        assert manager.get_stats(DOMAIN).backoff_level == 1
        assert manager.get_stats(DOMAIN).consecutive_successes == 0

        for _ in range(4):
            manager.register_success(DOMAIN)
        assert manager.get_stats(DOMAIN).backoff_level == 0

    def test_failure_resets_success_streak(self, manager):
        manager.register_failure(DOMAIN)
        for _ in range(3):
            manager.register_success(DOMAIN)
        manager.register_failure(DOMAIN)

        assert manager.get_stats(DOMAIN).consecutive_successes == 0
        manager.register_success(DOMAIN)
        assert manager.get_stats(DOMAIN).backoff_level == 2

    def test_success_at_level_zero_stays_zero(self, manager):
        for _ in range(10):
            manager.register_success(DOMAIN)

        stats = manager.get_stats(DOMAIN)
        assert stats.backoff_level == 0
        assert stats.success_count == 10

    def test_domains_are_independent(self, manager):
        manager.register_failure(DOMAIN)

        assert manager.get_stats("compragamer.com").backoff_level == 0


class TestRecommendedWait:

    @pytest.mark.parametrize("level", range(MAX_BACKOFF_LEVEL + 1))
    def test_wait_within_twenty_percent_of_tier(self, manager, level):
        for _ in range(level):
            manager.register_failure(DOMAIN)

        base = BACKOFF_TIERS_MS[level]
        for _ in range(50):
            wait = manager.get_recommended_wait_time(DOMAIN)
            assert base * 0.8 <= wait <= base * 1.2

    def test_level_two_range(self, manager):
        manager.register_failure(DOMAIN)
        manager.register_failure(DOMAIN)

        wait = manager.get_recommended_wait_time(DOMAIN)
        assert 240_000 <= wait <= 360_000

    def test_tiers_non_decreasing(self):
        assert list(BACKOFF_TIERS_MS) == sorted(BACKOFF_TIERS_MS)
        # Even with opposite jitter extremes a higher level never waits less
        for lower, higher in zip(BACKOFF_TIERS_MS, BACKOFF_TIERS_MS[1:]):
            assert lower * 1.2 <= higher * 0.8


class TestCooling:

    def test_cooling_right_after_failure(self, manager):
        manager.register_failure(DOMAIN)

        assert manager.is_domain_cooling(DOMAIN) is True

    def test_cooling_ends_after_wait(self, manager, clock):
        manager.register_failure(DOMAIN)  # level 1: 48-72 seconds

        clock.advance(47)
        assert manager.is_domain_cooling(DOMAIN) is True

        clock.advance(26)
        assert manager.is_domain_cooling(DOMAIN) is False

    def test_not_cooling_at_level_zero(self, manager):
        manager.register_failure(DOMAIN)
        for _ in range(4):
            manager.register_success(DOMAIN)

        assert manager.get_stats(DOMAIN).backoff_level == 0
        assert manager.is_domain_cooling(DOMAIN) is False
