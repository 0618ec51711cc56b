"""
StockX marketplace module.
"""

from sneaker_sync.marketplace.errors import (
    MarketplaceError,
    AuthExchangeFailed,
    MarketplaceAuthError,
    MarketplaceHTTPError,
    MarketplaceRateLimitError,
    MarketplaceResponseError,
)
from sneaker_sync.marketplace.tokens import (
    TokenState,
    TokenStorage,
    FileTokenStorage,
    DatabaseTokenStorage,
    TokenStore,
)
from sneaker_sync.marketplace.client import MarketplaceClient

__all__ = [
    "MarketplaceError",
    "AuthExchangeFailed",
    "MarketplaceAuthError",
    "MarketplaceHTTPError",
    "MarketplaceRateLimitError",
    "MarketplaceResponseError",
    "TokenState",
    "TokenStorage",
    "FileTokenStorage",
    "DatabaseTokenStorage",
    "TokenStore",
    "MarketplaceClient",
]
