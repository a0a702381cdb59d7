"""Headless Chromium for shops that render prices client-side.

A single browser process is shared. Each upstream proxy gets its own
context (cookies, storage and user agent stay with one exit address), and
contexts are recycled after a fixed number of pages.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Optional

import structlog
from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from pricetracker.scrapers.utils.user_agents import get_random_user_agent

logger = structlog.get_logger(__name__)

DIRECT = "direct"
# Fresh fingerprint every this many pages on one context
PAGES_PER_CONTEXT = 50
BLOCKED_RESOURCE_TYPES = frozenset({"image", "media", "font"})

LAUNCH_ARGS = (
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
)

# Hide the most common headless tells
STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['es-AR', 'es', 'en'] });
Object.defineProperty(navigator, 'hardwareConcurrency', { get: () => 8 });
window.chrome = window.chrome || { runtime: {} };
"""


@dataclass
class _ContextSlot:
    context: BrowserContext
    pages_opened: int = 0


class BrowserManager:
    """Owns the Playwright process and the per-proxy browser contexts.

    Args:
        headless: Run Chromium without a window
        block_resources: Abort image, media and font requests
    """

    def __init__(self, headless: bool = True, block_resources: bool = True):
        self.headless = headless
        self.block_resources = block_resources
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._slots: Dict[str, _ContextSlot] = {}
        self._lock = asyncio.Lock()
        self.logger = logger.bind(service="browser_manager")

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    async def start(self) -> None:
        """Launch Chromium if it is not running yet."""
        async with self._lock:
            await self._launch()

    async def _launch(self) -> None:
        if self._browser is not None:
            return
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless, args=list(LAUNCH_ARGS)
        )
        self.logger.info("browser_started", headless=self.headless)

    async def stop(self) -> None:
        """Close every context, then the browser and the driver."""
        async with self._lock:
            for key in list(self._slots):
                await self._discard(key)

            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
            self.logger.info("browser_stopped")

    async def _discard(self, key: str) -> None:
        slot = self._slots.pop(key, None)
        if slot is None:
            return
        try:
            await slot.context.close()
        except PlaywrightError as e:
            self.logger.warning("browser_context_close_failed", context=key, error=str(e))

    async def _context_for(self, proxy: Optional[str]) -> BrowserContext:
        key = proxy or DIRECT
        async with self._lock:
            slot = self._slots.get(key)
            if slot is not None and slot.pages_opened >= PAGES_PER_CONTEXT:
                await self._discard(key)
                slot = None

            if slot is None:
                await self._launch()
                context = await self._browser.new_context(
                    user_agent=get_random_user_agent(),
                    viewport={"width": 1366, "height": 768},
                    locale="es-AR",
                    timezone_id="America/Argentina/Buenos_Aires",
                    proxy={"server": proxy} if proxy else None,
                )
                await context.add_init_script(STEALTH_JS)
                if self.block_resources:
                    await context.route("**/*", _skip_heavy_resources)
                slot = self._slots[key] = _ContextSlot(context)
                self.logger.info("browser_context_created", has_proxy=bool(proxy))

            slot.pages_opened += 1
            return slot.context

    @asynccontextmanager
    async def page(self, proxy: Optional[str] = None) -> AsyncIterator[Page]:
        """Open a page on the proxy's context and close it afterwards."""
        context = await self._context_for(proxy)
        page = await context.new_page()
        try:
            yield page
        finally:
            await page.close()

    async def close_context(self, proxy: Optional[str] = None) -> None:
        """Drop the context for ``proxy``, e.g. after it got blocked."""
        async with self._lock:
            await self._discard(proxy or DIRECT)


async def _skip_heavy_resources(route) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()
