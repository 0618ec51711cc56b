"""
FastAPI dependency injection.
Global instances for the database, sessions, marketplace access and the
storefront.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Request, HTTPException

from .config import settings
from .db import SQLiteDatabase
from .auth import SessionManager
from .marketplace import (
    DatabaseTokenStorage,
    FileTokenStorage,
    MarketplaceClient,
    TokenStorage,
    TokenStore,
)
from .processor import PriceFetchPipeline, ReconciliationEngine
from .shopify import FileSessionStorage, ShopifyClient, StorefrontGateway


class StorefrontNotConfigured(Exception):
    """No session or access token is available for the configured shop."""
    pass


# Global instances (initialized on startup)
_db: Optional[SQLiteDatabase] = None
_session_manager: Optional[SessionManager] = None
_token_store: Optional[TokenStore] = None
_marketplace: Optional[MarketplaceClient] = None
_pipeline: Optional[PriceFetchPipeline] = None
_session_storage: Optional[FileSessionStorage] = None


def build_token_storage(db: SQLiteDatabase) -> TokenStorage:
    """Token storage backend selected by TOKEN_BACKEND."""
    if settings.token_backend == "database":
        return DatabaseTokenStorage(db)
    if settings.token_backend != "file":
        raise ValueError(f"Unknown token backend: {settings.token_backend}")
    return FileTokenStorage(settings.token_path)


async def init_dependencies():
    """Initialize global dependencies. Called on app startup."""
    global _db, _session_manager, _token_store, _marketplace, _pipeline, _session_storage

    _db = SQLiteDatabase(settings.database_path)
    await _db.initialize()
    await _db.fail_running_logs("Interrupted by restart")

    _session_manager = SessionManager(
        settings.session_secret,
        secure_cookies=settings.app_url.startswith("https://"),
    )

    _token_store = TokenStore(
        build_token_storage(_db),
        client_id=settings.stockx_client_id,
        client_secret=settings.stockx_client_secret,
        auth_url=settings.stockx_auth_url,
    )
    _marketplace = MarketplaceClient(
        _token_store,
        api_key=settings.stockx_api_key,
        base_url=settings.stockx_api_url,
        currency=settings.stockx_currency,
    )
    _pipeline = PriceFetchPipeline(
        _marketplace,
        _token_store,
        concurrency=settings.price_concurrency,
    )

    _session_storage = FileSessionStorage(settings.session_dir)


async def close_dependencies():
    """Close global dependencies. Called on app shutdown."""
    if _marketplace:
        await _marketplace.close()
    if _token_store:
        await _token_store.close()
    if _db:
        await _db.close()


def get_db() -> SQLiteDatabase:
    """Get the database instance."""
    if _db is None:
        raise RuntimeError("Database not initialized")
    return _db


def get_session_manager() -> SessionManager:
    """Get the session manager instance."""
    if _session_manager is None:
        raise RuntimeError("Session manager not initialized")
    return _session_manager


def get_token_store() -> TokenStore:
    if _token_store is None:
        raise RuntimeError("Token store not initialized")
    return _token_store


def get_pipeline() -> PriceFetchPipeline:
    if _pipeline is None:
        raise RuntimeError("Price pipeline not initialized")
    return _pipeline


def get_session_storage() -> FileSessionStorage:
    if _session_storage is None:
        raise RuntimeError("Session storage not initialized")
    return _session_storage


def build_engine(gateway: StorefrontGateway) -> ReconciliationEngine:
    """Reconciliation engine configured from settings."""
    return ReconciliationEngine(
        gateway,
        price_offset=settings.price_ending_offset,
        sync_tag=settings.sync_tag,
        default_vendor=settings.default_vendor,
        product_type=settings.product_type,
    )


async def resolve_storefront_token(storage: FileSessionStorage) -> str:
    """
    Access token for the configured shop.

    Prefers a stored offline session, then SHOPIFY_ACCESS_TOKEN.

    Raises:
        StorefrontNotConfigured: If neither is available
    """
    if settings.shopify_domain:
        for session in await storage.find_sessions_by_shop(settings.shopify_domain):
            if not session.is_online and session.access_token:
                return session.access_token

    if settings.shopify_domain and settings.shopify_access_token:
        return settings.shopify_access_token

    raise StorefrontNotConfigured(
        "No Shopify session found. Set SHOPIFY_DOMAIN and run scripts/get_token.py "
        "or set SHOPIFY_ACCESS_TOKEN."
    )


@asynccontextmanager
async def open_storefront(
    storage: Optional[FileSessionStorage] = None,
) -> AsyncIterator[StorefrontGateway]:
    """Gateway for the configured shop; the HTTP client closes on exit."""
    token = await resolve_storefront_token(storage or get_session_storage())
    async with ShopifyClient(settings.shopify_domain, token) as client:
        yield StorefrontGateway(client)


async def require_auth(request: Request):
    """
    Dependency that requires authentication.
    Redirects to login if not authenticated.
    """
    session_manager = get_session_manager()

    if not session_manager.is_authenticated(request):
        if request.url.path.startswith("/api/"):
            raise HTTPException(status_code=401, detail="Not authenticated")
        raise HTTPException(status_code=307, headers={"Location": "/login"})


def check_auth(request: Request) -> bool:
    """Check if user is authenticated (without raising exception)."""
    session_manager = get_session_manager()
    return session_manager.is_authenticated(request)
