"""Per-domain health tracking with tiered adaptive backoff.

Every failure against a domain pushes it one backoff level up; sustained
success walks it back down one level at a time. The level selects how long
callers should wait before hitting the domain again.
"""

import random
import time
from dataclasses import dataclass
from typing import Dict, Optional

import structlog

logger = structlog.get_logger(__name__)

# Base wait per backoff level, in milliseconds
BACKOFF_TIERS_MS = (
    3_000,       # 3 seconds
    60_000,      # 1 minute
    300_000,     # 5 minutes
    900_000,     # 15 minutes
    3_600_000,   # 1 hour
    21_600_000,  # 6 hours
)
MAX_BACKOFF_LEVEL = len(BACKOFF_TIERS_MS) - 1
# Successes in a row needed before the backoff level drops by one
RECOVERY_STREAK = 3
JITTER_RANGE = (0.8, 1.2)


@dataclass
class DomainStats:
    success_count: int = 0
    fail_count: int = 0
    consecutive_successes: int = 0
    last_success_at: Optional[float] = None  # Epoch seconds
    last_fail_at: Optional[float] = None
    backoff_level: int = 0


class DomainManager:
    """Tracks scrape outcomes per hostname and recommends wait times.

    Methods never await, so calls made from a single event loop are atomic.
    State lives in process memory; multiple processes each keep their own view.
    """

    def __init__(self, clock=time.time, rng: Optional[random.Random] = None):
        self._domains: Dict[str, DomainStats] = {}
        self._clock = clock
        self._rng = rng or random.Random()
        self.logger = logger.bind(service="domain_manager")

    def _stats(self, domain: str) -> DomainStats:
        stats = self._domains.get(domain)
        if stats is None:
            stats = self._domains[domain] = DomainStats()
        return stats

    def register_success(self, domain: str) -> None:
        stats = self._stats(domain)
        stats.success_count += 1
        stats.consecutive_successes += 1
        stats.last_success_at = self._clock()

        if stats.consecutive_successes > RECOVERY_STREAK and stats.backoff_level > 0:
            stats.backoff_level -= 1
            stats.consecutive_successes = 0
            self.logger.info("domain_backoff_decreased", domain=domain, backoff_level=stats.backoff_level)

    def register_failure(self, domain: str) -> None:
        stats = self._stats(domain)
        stats.fail_count += 1
        stats.consecutive_successes = 0
        stats.last_fail_at = self._clock()
        stats.backoff_level = min(MAX_BACKOFF_LEVEL, stats.backoff_level + 1)
        self.logger.warning(
            "domain_failure_registered",
            domain=domain,
            backoff_level=stats.backoff_level,
            fail_count=stats.fail_count,
        )

    def get_recommended_wait_time(self, domain: str) -> float:
        """Jittered wait in milliseconds for the domain's current backoff level."""
        level = self._domains[domain].backoff_level if domain in self._domains else 0
        return BACKOFF_TIERS_MS[level] * self._rng.uniform(*JITTER_RANGE)

    def is_domain_cooling(self, domain: str) -> bool:
        """True while a backed-off domain is still inside its wait window."""
        stats = self._domains.get(domain)
        if stats is None or stats.backoff_level == 0 or stats.last_fail_at is None:
            return False
        elapsed_ms = (self._clock() - stats.last_fail_at) * 1000
        return elapsed_ms < self.get_recommended_wait_time(domain)

    def get_stats(self, domain: str) -> DomainStats:
        return self._stats(domain)

    def get_all_stats(self) -> Dict[str, DomainStats]:
        return dict(self._domains)
