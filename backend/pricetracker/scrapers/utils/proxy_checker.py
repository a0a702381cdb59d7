"""Liveness checks for configured proxies."""

import asyncio
from typing import List

import httpx
import structlog

from pricetracker.scrapers.utils.user_agents import get_random_user_agent

logger = structlog.get_logger(__name__)


async def check_proxy(proxy: str, test_url: str, timeout: float = 10.0) -> bool:
    """Fetch ``test_url`` through ``proxy``.

    Returns:
        True on a 2xx response, False on any network error or other status
    """
    try:
        async with httpx.AsyncClient(
            proxy=proxy,
            timeout=timeout,
            headers={"User-Agent": get_random_user_agent()},
        ) as client:
            response = await client.get(test_url)
        ok = response.is_success
    except httpx.HTTPError as e:
        logger.warning("proxy_check_failed", proxy=proxy, error=str(e))
        return False

    logger.debug("proxy_checked", proxy=proxy, status=response.status_code, ok=ok)
    return ok


async def check_all_proxies(proxies: List[str], test_url: str, timeout: float = 10.0) -> List[str]:
    """Check every proxy concurrently and keep the working ones, in input order."""
    results = await asyncio.gather(*(check_proxy(p, test_url, timeout) for p in proxies))
    working = [proxy for proxy, ok in zip(proxies, results) if ok]
    logger.info("proxies_checked", total=len(proxies), working=len(working))
    return working
