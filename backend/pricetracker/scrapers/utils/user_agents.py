"""Rotated desktop User-Agent strings and matching request headers."""

import random
from typing import Dict, List

_CHROME_PLATFORMS = (
    "Windows NT 10.0; Win64; x64",
    "Macintosh; Intel Mac OS X 10_15_7",
    "X11; Linux x86_64",
)
_CHROME_MAJORS = (129, 130, 131)
_FIREFOX_PLATFORMS = (
    "Windows NT 10.0; Win64; x64",
    "Macintosh; Intel Mac OS X 10.15",
)
_FIREFOX_MAJORS = (132, 133)


def _build_user_agents() -> List[str]:
    agents = [
        f"Mozilla/5.0 ({platform}) AppleWebKit/537.36 (KHTML, like Gecko) "
        f"Chrome/{major}.0.0.0 Safari/537.36"
        for platform in _CHROME_PLATFORMS
        for major in _CHROME_MAJORS
    ]
    agents += [
        f"Mozilla/5.0 ({platform}; rv:{major}.0) Gecko/20100101 Firefox/{major}.0"
        for platform in _FIREFOX_PLATFORMS
        for major in _FIREFOX_MAJORS
    ]
    # Edge and Safari, one current release each
    agents.append(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36 Edg/131.0.0.0"
    )
    agents.append(
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/18.1 Safari/605.1.15"
    )
    return agents


USER_AGENTS: List[str] = _build_user_agents()

# Tracked shops are Argentine; most real visitors send Spanish first
ACCEPT_LANGUAGES: List[str] = [
    "es-AR,es;q=0.9,en;q=0.8",
    "es-AR,es;q=0.9",
    "es-ES,es;q=0.9,en;q=0.7",
    "en-US,en;q=0.9,es;q=0.6",
]


def get_random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def get_browser_headers() -> Dict[str, str]:
    """Headers for a top-level page navigation with a freshly rotated identity."""
    return {
        "User-Agent": get_random_user_agent(),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": random.choice(ACCEPT_LANGUAGES),
        "Accept-Encoding": "gzip, deflate",
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
    }
