"""Custom exception classes for the application."""


class PriceTrackerException(Exception):
    """Base exception for all price tracker errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(PriceTrackerException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class ProductNotFoundError(NotFoundError):
    """Raised when an update job references a product that no longer exists."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("Product", product_id)


class TransientNetworkError(PriceTrackerException):
    """Connection failure or unexpected non-2xx status. Safe to retry."""

    def __init__(self, url: str, message: str, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Network error for {url}: {message}")


class BlockedDomainError(PriceTrackerException):
    """Domain is blocked or cooling down. Do not retry immediately."""

    def __init__(self, domain: str, reason: str = "blocked"):
        self.domain = domain
        self.reason = reason
        super().__init__(f"Domain {domain} unavailable: {reason}")


class ParseError(PriceTrackerException):
    """The page was fetched but the price or name could not be extracted."""

    def __init__(self, url: str, message: str = "could not extract product info"):
        self.url = url
        super().__init__(f"Parse error for {url}: {message}")


class InsufficientDataError(PriceTrackerException):
    """Not enough price history to run the requested analysis."""

    def __init__(self, product_id: str, required: int, available: int):
        self.product_id = product_id
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient price history for product {product_id}: "
            f"need {required}, have {available}"
        )


class CacheBackendError(PriceTrackerException):
    """Cache store unreachable or returned garbage."""


class ConfigurationError(PriceTrackerException):
    """Invalid configuration detected at startup."""
