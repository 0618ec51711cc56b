"""
Price fetch pipeline: SKU -> search -> variants -> per-size lowest ask.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from ..marketplace import (
    MarketplaceAuthError,
    MarketplaceClient,
    MarketplaceError,
    MarketplaceHTTPError,
    TokenStore,
)
from ..utils.pacing import BoundedPool
from ..utils.retry import RetryExhausted
from .models import FailureKind, FetchFailure, ProductPriceSnapshot, VariantQuote
from .rules import parse_ask, resolve_sizes

logger = logging.getLogger(__name__)

PRICE_CONCURRENCY = 5
# Cooldown a price permit observes before the next queued variant may use it
PRICE_COOLDOWN = (1.5, 2.0)


def extract_ask(market_data: Dict[str, Any]):
    """Lowest ask from market data, checking each known field in turn."""
    market = market_data.get("market")
    nested = market.get("lowestAsk") if isinstance(market, dict) else None
    raw = market_data.get("lowestAskAmount") or nested or market_data.get("lowestAsk")
    return parse_ask(raw)


class PriceFetchPipeline:
    """
    Builds a ProductPriceSnapshot for a SKU.

    Never raises: every failure comes back as a FetchFailure.
    """

    def __init__(
        self,
        client: MarketplaceClient,
        token_store: TokenStore,
        login_url: str = "/stockx/login",
        concurrency: int = PRICE_CONCURRENCY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.token_store = token_store
        self.login_url = login_url
        self.concurrency = concurrency
        self._sleep = sleep

    def _unauthorized(self, detail: str) -> FetchFailure:
        return FetchFailure(
            kind=FailureKind.UNAUTHORIZED,
            detail=detail,
            action_hint=f"Please visit {self.login_url} to authenticate first.",
        )

    async def fetch(self, sku: Optional[str]) -> Union[ProductPriceSnapshot, FetchFailure]:
        """
        Fetch and normalize marketplace prices for one SKU.

        Args:
            sku: Style code to search for (e.g., "FV5029-100")

        Returns:
            ProductPriceSnapshot, or FetchFailure describing what went wrong
        """
        clean_sku = (sku or "").strip()
        if not clean_sku:
            return FetchFailure(kind=FailureKind.VALIDATION_ERROR, detail="Missing 'sku'")

        try:
            return await self._fetch(clean_sku)
        except MarketplaceAuthError as e:
            logger.warning(f"Unauthorized while fetching {clean_sku}: {e}")
            return self._unauthorized(str(e))
        except Exception as e:
            logger.exception(f"Lookup failed for {clean_sku}")
            return FetchFailure(kind=FailureKind.INTERNAL_ERROR, detail=f"Lookup failed: {e}")

    async def _fetch(self, sku: str) -> Union[ProductPriceSnapshot, FetchFailure]:
        # Step 1: Auth gate
        if not await self.token_store.ensure_access_token():
            logger.info("No access token, attempting refresh...")
            if not await self.token_store.refresh():
                return self._unauthorized("Unauthorized")

        # Step 2: Search
        try:
            hits = await self.client.search_products(sku)
        except MarketplaceAuthError:
            raise
        except RetryExhausted:
            return FetchFailure(
                kind=FailureKind.NOT_FOUND,
                detail=f"Search failed after retries for SKU: {sku}",
            )
        except MarketplaceError as e:
            logger.error(f"Search failed for {sku}: {e}")
            return FetchFailure(kind=FailureKind.NOT_FOUND, detail=f"Search failed for SKU {sku}: {e}")

        if not hits:
            return FetchFailure(kind=FailureKind.NOT_FOUND, detail=f"No products found for SKU: {sku}")

        product = hits[0]
        product_id = product.get("productId")
        if not product_id:
            return FetchFailure(
                kind=FailureKind.UPSTREAM_ERROR,
                detail=f"Search result for {sku} has no product id",
            )

        # Step 3: Variants
        try:
            variants = await self.client.get_variants(product_id)
        except MarketplaceAuthError:
            raise
        except (RetryExhausted, MarketplaceHTTPError) as e:
            logger.error(f"Failed to fetch variants for {sku}: {e}")
            return FetchFailure(
                kind=FailureKind.UPSTREAM_ERROR,
                detail="Failed to fetch variants after multiple retries",
            )
        except MarketplaceError as e:
            return FetchFailure(
                kind=FailureKind.UPSTREAM_ERROR,
                detail=f"Failed to fetch variants or invalid response: {e}",
            )

        # Step 4: Prices
        logger.info(f"Found {len(variants)} variants for {sku}. Starting concurrent price fetch...")
        started = time.monotonic()

        pool = BoundedPool(self.concurrency, cooldown=PRICE_COOLDOWN, sleep=self._sleep)
        quotes = await pool.map(
            lambda variant: self._fetch_quote(product_id, variant),
            [v for v in variants if isinstance(v, dict)],
        )

        priced = sum(1 for q in quotes if q.has_ask)
        logger.info(
            f"Fetched prices for {len(quotes)} variants of {sku} "
            f"({priced} with asks) in {time.monotonic() - started:.1f}s"
        )

        # Step 5: Assemble
        media = product.get("media") if isinstance(product.get("media"), dict) else {}
        return ProductPriceSnapshot(
            title=product.get("title") or sku,
            sku=product.get("styleId") or product.get("sku") or sku,
            image_url=media.get("imageUrl") or media.get("thumbUrl") or product.get("image"),
            brand=product.get("brand") if isinstance(product.get("brand"), str) else None,
            variants=quotes,
        )

    async def _fetch_quote(self, product_id: str, variant: Dict[str, Any]) -> VariantQuote:
        """Lowest ask for one variant; errors other than auth mean no ask."""
        size_eu, size_us = resolve_sizes(variant)
        variant_id = variant.get("variantId")
        ask = None

        if variant_id:
            try:
                ask = extract_ask(await self.client.get_market_data(product_id, variant_id))
            except MarketplaceAuthError:
                raise
            except RetryExhausted as e:
                logger.warning(f"Giving up on size {size_us}: {e}")
            except MarketplaceHTTPError as e:
                # Non-retriable (e.g. 404): this size simply has no price
                logger.error(f"Error {e.status_code} for size {size_us}")
            except MarketplaceError as e:
                logger.error(f"Unusable market data for size {size_us}: {e}")

        return VariantQuote(
            size_eu=size_eu,
            size_us=size_us,
            ask_price=ask,
            marketplace_variant_id=variant_id,
        )
