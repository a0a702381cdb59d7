"""Product page scraper with proxy rotation and block detection.

The scraper is deliberately forgiving: blocks, bot walls and template
mismatches all end in ``None`` plus a log line. Only network-level
failures raise, so the job layer can retry them.
"""

import asyncio
import random
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional

import structlog
from bs4 import BeautifulSoup

from pricetracker.core.exceptions import ConfigurationError, TransientNetworkError
from pricetracker.scrapers.fetchers import FetchedPage, Fetcher, StaticFetcher
from pricetracker.scrapers.profiles import (
    FALLBACK_PRICE_SELECTORS,
    FetchStrategy,
    ProfileRegistry,
    SelectorProfile,
)
from pricetracker.scrapers.utils.domain_manager import DomainManager
from pricetracker.scrapers.utils.normalizer import extract_hostname, parse_price, to_absolute_url
from pricetracker.scrapers.utils.proxy_manager import ProxyManager

logger = structlog.get_logger(__name__)

HARD_BLOCK_SECONDS = 30 * 60   # 403 / 429
BOT_WALL_BLOCK_SECONDS = 15 * 60
BLOCK_STATUSES = (403, 429)
# Real product pages are never this small; challenge pages usually are
MIN_CONTENT_LENGTH = 1000
# Lower-cased phrases that only appear on challenge pages. A bare "robot"
# would match the robots meta tag on every normal page.
BOT_MARKERS = (
    "captcha",
    "not a robot",
    "robot check",
    "access denied",
    "you have been blocked",
    "request blocked",
)
JITTER_MAX_MS = 2000


@dataclass
class ScrapeResult:
    """Product data extracted from one successful fetch."""

    name: str
    price: Decimal
    image_url: Optional[str] = None
    selectors_used: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.name:
            raise ValueError("name is required")
        if self.price is None or self.price <= 0:
            raise ValueError("price must be a positive Decimal")


def looks_like_bot_wall(html: str) -> bool:
    if len(html) < MIN_CONTENT_LENGTH:
        return True
    lowered = html.lower()
    return any(marker in lowered for marker in BOT_MARKERS)


class Scraper:
    """Fetches a product page and extracts name, price and image.

    Args:
        proxy_manager: Proxy pool (pass-through when it has no proxies)
        domain_manager: Per-domain health tracker
        profiles: Selector profile registry (built-ins when omitted)
        fetchers: Fetcher per strategy; a static fetcher is created when omitted
        sleep: Coroutine used for politeness delays
        clock: Epoch-seconds clock for block expiry
    """

    def __init__(
        self,
        proxy_manager: ProxyManager,
        domain_manager: DomainManager,
        profiles: Optional[ProfileRegistry] = None,
        fetchers: Optional[Dict[FetchStrategy, Fetcher]] = None,
        sleep=asyncio.sleep,
        clock=time.time,
        rng: Optional[random.Random] = None,
    ):
        self.proxy_manager = proxy_manager
        self.domain_manager = domain_manager
        self.profiles = profiles or ProfileRegistry()
        self.fetchers = fetchers or {FetchStrategy.STATIC: StaticFetcher()}
        self._sleep = sleep
        self._clock = clock
        self._rng = rng or random.Random()
        self._blocked_until: Dict[str, float] = {}
        self.logger = logger.bind(service="scraper")

    # ------------------------------------------------------------------
    # Blocked-domain denylist
    # ------------------------------------------------------------------

    def is_domain_blocked(self, hostname: str) -> bool:
        until = self._blocked_until.get(hostname)
        if until is None:
            return False
        if self._clock() >= until:
            del self._blocked_until[hostname]
            return False
        return True

    def block_domain(self, hostname: str, seconds: float, reason: str) -> None:
        self._blocked_until[hostname] = self._clock() + seconds
        self.logger.warning("domain_blocked", domain=hostname, seconds=seconds, reason=reason)

    # ------------------------------------------------------------------
    # Scraping
    # ------------------------------------------------------------------

    async def scrape_product_info(self, url: str) -> Optional[ScrapeResult]:
        """Scrape a product page.

        Args:
            url: Product page URL

        Returns:
            ScrapeResult, or None when the domain is blocked, the page is a
            bot wall, or the price/name could not be extracted

        Raises:
            TransientNetworkError: Connection failure or unexpected non-2xx status
            ConfigurationError: The profile needs a fetch strategy that is not configured
        """
        hostname = extract_hostname(url)
        if self.is_domain_blocked(hostname):
            self.logger.info("scrape_skipped_blocked_domain", url=url, domain=hostname)
            return None

        profile = self.profiles.get(hostname)
        fetcher = self.fetchers.get(profile.strategy)
        if fetcher is None:
            raise ConfigurationError(f"No fetcher configured for strategy '{profile.strategy.value}'")

        delay_ms = profile.base_delay_ms + self._rng.uniform(0, JITTER_MAX_MS)
        await self._sleep(delay_ms / 1000)

        proxy = await self.proxy_manager.get_proxy()

        try:
            page = await fetcher.fetch(url, profile, proxy)
        except TransientNetworkError:
            await self._record_failure(hostname, proxy)
            raise
        except Exception:
            # Not the shop's fault; the proxy use still gets an outcome
            await self.proxy_manager.release_proxy(proxy, False)
            raise

        if page.status in BLOCK_STATUSES:
            self.block_domain(hostname, HARD_BLOCK_SECONDS, reason=f"http_{page.status}")
            await self._record_failure(hostname, proxy)
            return None

        if not 200 <= page.status < 300:
            await self._record_failure(hostname, proxy)
            raise TransientNetworkError(url, f"unexpected status {page.status}", status_code=page.status)

        if looks_like_bot_wall(page.html):
            self.block_domain(hostname, BOT_WALL_BLOCK_SECONDS, reason="bot_detection")
            await self._record_failure(hostname, proxy)
            return None

        await self.proxy_manager.release_proxy(proxy, True)
        self.domain_manager.register_success(hostname)

        return self._parse(url, page, profile)

    async def _record_failure(self, hostname: str, proxy: Optional[str]) -> None:
        await self.proxy_manager.release_proxy(proxy, False)
        self.domain_manager.register_failure(hostname)

    def _parse(self, url: str, page: FetchedPage, profile: SelectorProfile) -> Optional[ScrapeResult]:
        soup = BeautifulSoup(page.html, "html.parser")

        price_selector = profile.price_selector
        price_text = _select_text(soup, price_selector)
        if not price_text:
            price_selector = FALLBACK_PRICE_SELECTORS
            price_text = _select_text(soup, price_selector)

        price = parse_price(price_text, profile.currency_transform)
        if price is None:
            self.logger.warning("price_not_found", url=url, raw=(price_text or "")[:50])
            return None

        name = _select_text(soup, profile.name_selector)
        if not name:
            self.logger.warning("name_not_found", url=url)
            return None

        image = soup.select_one(profile.image_selector)
        image_url = to_absolute_url(image.get("src") if image else None, url)

        self.logger.info("product_scraped", url=url, name=name[:50], price=float(price))
        return ScrapeResult(
            name=name,
            price=price,
            image_url=image_url,
            selectors_used={
                "price": price_selector,
                "name": profile.name_selector,
                "image": profile.image_selector,
            },
        )


def _select_text(soup: BeautifulSoup, selector: str) -> str:
    element = soup.select_one(selector)
    if element is None:
        return ""
    return element.get_text(" ", strip=True)
