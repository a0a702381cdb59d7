"""Price text normalization and URL helpers used by the scraper."""

import re
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional
from urllib.parse import urljoin, urlparse

import structlog

logger = structlog.get_logger()


class CurrencyTransform(str, Enum):
    """How a shop formats prices.

    generic: keep digits, commas and dots; the first comma becomes the decimal point
    decimal_comma: keep digits and commas; the first comma is the decimal point ("$ 12345,50")
    thousands_dot_decimal_comma: dots group thousands, comma is decimal ("$ 1.234.567,89")
    """

    GENERIC = "generic"
    DECIMAL_COMMA = "decimal_comma"
    THOUSANDS_DOT_DECIMAL_COMMA = "thousands_dot_decimal_comma"


# Same leading-number rule as a lenient float parser: "12.5.3" -> 12.5
_LEADING_NUMBER = re.compile(r"^(\d+(?:\.\d*)?|\.\d+)")


def _leading_decimal(text: str) -> Optional[Decimal]:
    match = _LEADING_NUMBER.match(text)
    if not match:
        return None
    try:
        return Decimal(match.group(1))
    except InvalidOperation:
        return None


def parse_price(text: Optional[str], transform: CurrencyTransform = CurrencyTransform.GENERIC) -> Optional[Decimal]:
    """Parse a scraped price string into a positive Decimal.

    Args:
        text: Raw price text (e.g. "$ 1.234,56", "ARS 99.999")
        transform: Formatting rule of the source shop

    Returns:
        Price rounded to 2 decimal places, or None when nothing numeric
        could be read or the value is not positive
    """
    if not text:
        return None

    if transform == CurrencyTransform.DECIMAL_COMMA:
        cleaned = re.sub(r"[^\d,]", "", text).replace(",", ".", 1)
    elif transform == CurrencyTransform.THOUSANDS_DOT_DECIMAL_COMMA:
        cleaned = re.sub(r"[^\d.,]", "", text).replace(".", "").replace(",", ".", 1)
    else:
        cleaned = re.sub(r"[^\d,.]", "", text).replace(",", ".", 1)

    value = _leading_decimal(cleaned)
    if value is None or value <= 0:
        logger.debug("price_parse_failed", raw=text[:50], transform=transform.value)
        return None

    return value.quantize(Decimal("0.01"))


def extract_hostname(url: str) -> str:
    """Lower-cased hostname of ``url``, empty string when there is none."""
    return (urlparse(url).hostname or "").lower()


def to_absolute_url(src: Optional[str], page_url: str) -> Optional[str]:
    """Resolve an image ``src`` against the page origin."""
    if not src:
        return None
    if src.startswith(("http://", "https://")):
        return src
    parsed = urlparse(page_url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    return urljoin(origin + "/", src)
