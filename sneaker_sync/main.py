"""
Sneaker Price Sync - Main Application
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .dependencies import init_dependencies, close_dependencies
from .routes import (
    auth_router,
    marketplace_router,
    sync_router,
    products_router,
    imports_router,
    logs_router,
    webhooks_router,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting Sneaker Price Sync...")
    await init_dependencies()
    logger.info("Application ready")
    yield
    logger.info("Shutting down...")
    await close_dependencies()


# Create app
app = FastAPI(
    title="Sneaker Price Sync",
    description="Keep Shopify sneaker prices in line with StockX asks",
    version="1.0.0",
    lifespan=lifespan
)

# Include routers
app.include_router(auth_router)
app.include_router(marketplace_router)
app.include_router(sync_router)
app.include_router(products_router)
app.include_router(imports_router)
app.include_router(logs_router)
app.include_router(webhooks_router)


@app.get("/health")
async def health():
    """Health check endpoint (no auth required)."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "sneaker_sync.main:app",
        host=settings.host,
        port=settings.port,
        reload=True
    )
