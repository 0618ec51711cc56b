"""
Shopify API module.
"""

from sneaker_sync.shopify.client import (
    ShopifyClient,
    ShopifyClientError,
    ShopifyAuthError,
    ShopifyRateLimitError,
    StorefrontMutationError,
)
from sneaker_sync.shopify.gateway import StorefrontGateway
from sneaker_sync.shopify.sessions import FileSessionStorage, StorefrontSession

__all__ = [
    "ShopifyClient",
    "ShopifyClientError",
    "ShopifyAuthError",
    "ShopifyRateLimitError",
    "StorefrontMutationError",
    "StorefrontGateway",
    "FileSessionStorage",
    "StorefrontSession",
]
