"""
Routes package.
"""

from .auth import router as auth_router
from .marketplace import router as marketplace_router
from .sync import router as sync_router
from .products import router as products_router
from .imports import router as imports_router
from .logs import router as logs_router
from .webhooks import router as webhooks_router

__all__ = [
    "auth_router",
    "marketplace_router",
    "sync_router",
    "products_router",
    "imports_router",
    "logs_router",
    "webhooks_router",
]
