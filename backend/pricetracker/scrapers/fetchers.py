"""Page fetchers: plain HTTP and headless browser.

Both return the raw status and HTML and leave classification (blocked,
bot wall, success) to the scraper. Network-level failures surface as
TransientNetworkError.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
import structlog
from playwright.async_api import Error as PlaywrightError

from pricetracker.core.exceptions import TransientNetworkError
from pricetracker.scrapers.profiles import SelectorProfile
from pricetracker.scrapers.utils.browser_manager import BrowserManager
from pricetracker.scrapers.utils.user_agents import get_browser_headers

logger = structlog.get_logger(__name__)


@dataclass
class FetchedPage:
    status: int
    html: str


class Fetcher(Protocol):
    async def fetch(self, url: str, profile: SelectorProfile, proxy: Optional[str]) -> FetchedPage: ...


class StaticFetcher:
    """GET the page with httpx using rotated browser headers."""

    def __init__(self, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            timeout: Request timeout in seconds
            transport: Custom transport (tests pass ``httpx.MockTransport``)
        """
        self.timeout = timeout
        self._transport = transport

    async def fetch(self, url: str, profile: SelectorProfile, proxy: Optional[str]) -> FetchedPage:
        client_kwargs = {
            "timeout": self.timeout,
            "follow_redirects": True,
            "headers": get_browser_headers(),
        }
        if self._transport is not None:
            client_kwargs["transport"] = self._transport
        elif proxy:
            client_kwargs["proxy"] = proxy

        try:
            async with httpx.AsyncClient(**client_kwargs) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise TransientNetworkError(url, f"{type(e).__name__}: {e}") from e

        return FetchedPage(status=response.status_code, html=response.text)


class BrowserFetcher:
    """Render the page in Playwright for shops that build prices client-side."""

    def __init__(self, browser_manager: BrowserManager, timeout_ms: int = 30000):
        self.browser_manager = browser_manager
        self.timeout_ms = timeout_ms

    async def fetch(self, url: str, profile: SelectorProfile, proxy: Optional[str]) -> FetchedPage:
        try:
            async with self.browser_manager.page(proxy) as page:
                response = await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
                status = response.status if response is not None else 200

                if 200 <= status < 300 and profile.wait_selector:
                    try:
                        await page.wait_for_selector(profile.wait_selector, timeout=self.timeout_ms)
                    except PlaywrightError:
                        # Let the scraper decide: fallback selectors or a bot wall
                        logger.debug("wait_selector_timeout", url=url, selector=profile.wait_selector)

                html = await page.content()
        except PlaywrightError as e:
            raise TransientNetworkError(url, f"browser navigation failed: {e}") from e

        if status in (403, 429):
            # Poisoned fingerprint; the next page on this proxy gets a new context
            await self.browser_manager.close_context(proxy)

        return FetchedPage(status=status, html=html)
