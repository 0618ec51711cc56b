"""
Exceptions raised by the StockX token store and catalog client.
"""

from typing import Any, Optional


class MarketplaceError(Exception):
    """Base exception for marketplace errors."""
    pass


class AuthExchangeFailed(MarketplaceError):
    """The OAuth server rejected an authorization code."""

    def __init__(self, body: Any, status_code: Optional[int] = None):
        super().__init__(f"Token exchange failed: {body}")
        self.body = body
        self.status_code = status_code


class MarketplaceAuthError(MarketplaceError):
    """Request unauthorized and the token could not be refreshed."""
    pass


class MarketplaceHTTPError(MarketplaceError):
    """Upstream answered with a non-success status."""

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"HTTP {status_code}: {body[:200]}" if body else f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body


class MarketplaceRateLimitError(MarketplaceHTTPError):
    """Rate limited or gateway timeout; safe to retry."""
    pass


class MarketplaceResponseError(MarketplaceError):
    """Upstream answered with a body we cannot use."""
    pass
