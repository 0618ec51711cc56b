"""
Synced product listing.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from ..config import settings
from ..dependencies import StorefrontNotConfigured, open_storefront, require_auth
from ..shopify import ShopifyClientError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", dependencies=[Depends(require_auth)])


@router.get("")
async def list_products(query: Optional[str] = Query(None)):
    """Every product carrying the sync tag, with its base SKU."""
    try:
        async with open_storefront() as gateway:
            products = await gateway.list_synced_products(settings.sync_tag, query=query)
    except StorefrontNotConfigured as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ShopifyClientError as e:
        logger.error(f"Error fetching all products: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "allProducts": [
            {"id": p.id, "title": p.title, "sku": p.sku}
            for p in products
        ]
    }
