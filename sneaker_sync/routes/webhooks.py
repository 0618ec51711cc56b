"""
Shopify webhook routes.
"""

import base64
import hashlib
import hmac
import logging
from fastapi import APIRouter, Header, HTTPException, Request, Response
from typing import Optional

from ..config import settings
from ..dependencies import get_session_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks")


def verify_webhook(body: bytes, hmac_header: Optional[str], secret: str) -> bool:
    """Check the base64 HMAC-SHA256 Shopify sends with each webhook."""
    if not hmac_header or not secret:
        return False
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("utf-8")
    return hmac.compare_digest(expected, hmac_header)


@router.post("/app/uninstalled")
async def app_uninstalled(
    request: Request,
    x_shopify_hmac_sha256: Optional[str] = Header(None),
    x_shopify_shop_domain: Optional[str] = Header(None),
    x_shopify_topic: Optional[str] = Header(None),
):
    """Delete stored sessions of a shop that removed the app."""
    body = await request.body()
    if not verify_webhook(body, x_shopify_hmac_sha256, settings.shopify_api_secret):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    shop = x_shopify_shop_domain
    logger.info(f"Received {x_shopify_topic} webhook for {shop}")

    # May arrive more than once; sessions can already be gone
    if shop:
        storage = get_session_storage()
        try:
            sessions = await storage.find_sessions_by_shop(shop)
            if sessions:
                await storage.delete_sessions([s.id for s in sessions])
                logger.info(f"Deleted {len(sessions)} sessions for {shop}")
        except OSError as e:
            logger.error(f"Failed to clean up sessions for shop {shop}: {e}")

    return Response(status_code=200)
