"""Declarative per-shop scraping rules.

A profile is plain data: CSS selectors, one of a closed set of price
transforms, a politeness delay and the fetch strategy. Built-in profiles
cover the known shops; a JSON file can add or override entries keyed by
hostname.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pricetracker.core.exceptions import ConfigurationError
from pricetracker.scrapers.utils.normalizer import CurrencyTransform

logger = structlog.get_logger(__name__)


class FetchStrategy(str, Enum):
    STATIC = "static"    # Plain HTTP GET, parse the returned HTML
    BROWSER = "browser"  # Headless browser for script-rendered pages


class SelectorProfile(BaseModel):
    """Selectors and parsing rules for one shop."""

    model_config = ConfigDict(frozen=True)

    price_selector: str
    name_selector: str
    image_selector: str
    currency_transform: CurrencyTransform = CurrencyTransform.GENERIC
    base_delay_ms: int = Field(default=3000, ge=0)
    strategy: FetchStrategy = FetchStrategy.STATIC
    wait_selector: Optional[str] = None  # Browser strategy waits for this before reading the DOM


# Tried when a profile's price selector finds nothing
FALLBACK_PRICE_SELECTORS = (
    '[class*="price"], [class*="precio"], [data-price], '
    '[itemprop="price"], .offer-price'
)

DEFAULT_PROFILE = SelectorProfile(
    price_selector="span.price, .price, .product-price",
    name_selector="h1, .product-title, .product-name",
    image_selector=".product-image img, .product-photo img",
    currency_transform=CurrencyTransform.GENERIC,
    base_delay_ms=3000,
)

BUILTIN_PROFILES: Dict[str, SelectorProfile] = {
    "www.venex.com.ar": SelectorProfile(
        price_selector=".textPrecio",
        name_selector=".title-product h1",
        image_selector=".img-container img",
        currency_transform=CurrencyTransform.DECIMAL_COMMA,
        base_delay_ms=2000,
    ),
    "compragamer.com": SelectorProfile(
        price_selector=(
            ".product-details__info__special-price__price__value span, "
            ".mat-mdc-tooltip-trigger.product-details__info__special-price__price span"
        ),
        name_selector="h1.product-details__info__title, h1.product-title, .title h1",
        image_selector=(
            ".product-details__image img, .product-gallery img, "
            ".product-image-container img"
        ),
        currency_transform=CurrencyTransform.THOUSANDS_DOT_DECIMAL_COMMA,
        base_delay_ms=3000,
        strategy=FetchStrategy.BROWSER,
        wait_selector=".product-details__info__special-price__price__value span",
    ),
}


class ProfileRegistry:
    """Hostname to SelectorProfile lookup with a default fallback."""

    def __init__(
        self,
        profiles: Optional[Dict[str, SelectorProfile]] = None,
        default: SelectorProfile = DEFAULT_PROFILE,
    ):
        self._profiles = dict(BUILTIN_PROFILES if profiles is None else profiles)
        self.default = default

    def get(self, hostname: str) -> SelectorProfile:
        return self._profiles.get(hostname.lower(), self.default)

    def register(self, hostname: str, profile: SelectorProfile) -> None:
        self._profiles[hostname.lower()] = profile

    def hostnames(self) -> list:
        return sorted(self._profiles)

    @classmethod
    def from_file(cls, path: Optional[str]) -> "ProfileRegistry":
        """Built-in profiles, overlaid with the entries from a JSON file.

        The file maps hostnames to profile objects; the special key
        ``"default"`` replaces the default profile.

        Raises:
            ConfigurationError: If the file is unreadable or any entry is invalid
        """
        registry = cls()
        if not path:
            return registry

        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot load selector profiles from {path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigurationError(f"Selector profile file {path} must contain a JSON object")

        for hostname, data in raw.items():
            try:
                profile = SelectorProfile.model_validate(data)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid selector profile for '{hostname}': {e}") from e

            if hostname == "default":
                registry.default = profile
            else:
                registry.register(hostname, profile)

        logger.info("selector_profiles_loaded", path=path, count=len(raw))
        return registry
