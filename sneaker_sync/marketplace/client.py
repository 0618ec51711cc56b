"""
StockX catalog API client.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from ..utils.retry import RETRYABLE_STATUSES, RetryPolicy, is_transport_error
from .errors import (
    MarketplaceAuthError,
    MarketplaceHTTPError,
    MarketplaceRateLimitError,
    MarketplaceResponseError,
)
from .tokens import TokenStore

logger = logging.getLogger(__name__)


def is_retryable(error: BaseException) -> bool:
    """Rate limits, gateway timeouts and transport failures are retried."""
    return isinstance(error, MarketplaceRateLimitError) or is_transport_error(error)


# Backoff 4s, 8s; small jitter before each attempt
SEARCH_POLICY = RetryPolicy(
    max_attempts=3, initial_delay=4.0, retryable=is_retryable, jitter=(0.05, 0.1)
)
# Backoff 2s, 4s
VARIANTS_POLICY = RetryPolicy(max_attempts=3, initial_delay=2.0, retryable=is_retryable)
# Backoff 2s, 4s; jitter keeps the concurrent fan-out from bursting
PRICE_POLICY = RetryPolicy(
    max_attempts=3, initial_delay=2.0, retryable=is_retryable, jitter=(0.05, 0.1)
)


class MarketplaceClient:
    """
    Async HTTP client for the StockX catalog API.

    Sends the API key and bearer token with every request. A 401 triggers
    one token refresh and one more try of the request, outside the retry
    budget of the endpoint's policy.
    """

    def __init__(
        self,
        token_store: TokenStore,
        api_key: str,
        base_url: str = "https://api.stockx.com/v2",
        currency: str = "EUR",
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize marketplace client.

        Args:
            token_store: Supplies and refreshes the bearer token
            api_key: Value for the x-api-key header
            base_url: API root (e.g., "https://api.stockx.com/v2")
            currency: Currency code for market data
            http_client: Optional shared HTTP client
            sleep: Replacement for asyncio.sleep in backoff (tests)
        """
        self.token_store = token_store
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.currency = currency

        self.search_policy = SEARCH_POLICY
        self.variants_policy = VARIANTS_POLICY
        self.price_policy = PRICE_POLICY
        if sleep is not None:
            self.search_policy = SEARCH_POLICY.with_sleep(sleep)
            self.variants_policy = VARIANTS_POLICY.with_sleep(sleep)
            self.price_policy = PRICE_POLICY.with_sleep(sleep)

        self._client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                headers={"User-Agent": "Mozilla/5.0"},
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def search_products(self, query: str, page_size: int = 1) -> List[Dict[str, Any]]:
        """
        Search the catalog; the first hit is the best match.

        Raises:
            RetryExhausted: Rate limited on every attempt
            MarketplaceHTTPError: Non-retriable HTTP status
            MarketplaceAuthError: Unauthorized and refresh failed
        """
        params = {
            "query": query,
            "pageSize": str(page_size),
            "pageNumber": "1",
            "dataType": "product",
        }
        data = await self._get(
            "/catalog/search", params, self.search_policy, label=f"Search {query}"
        )
        if not isinstance(data, dict):
            raise MarketplaceResponseError("Search response is not an object")

        hits = data.get("results") or data.get("data") or data.get("products") or []
        return [hit for hit in hits if isinstance(hit, dict)]

    async def get_variants(self, product_id: str) -> List[Dict[str, Any]]:
        """List size variants of a catalog product."""
        data = await self._get(
            f"/catalog/products/{product_id}/variants",
            None,
            self.variants_policy,
            label=f"Variants {product_id}",
        )
        if isinstance(data, dict) and isinstance(data.get("variants"), list):
            data = data["variants"]
        if not isinstance(data, list):
            raise MarketplaceResponseError("Variants response is not a list")
        return data

    async def get_market_data(self, product_id: str, variant_id: str) -> Dict[str, Any]:
        """Market data (lowest ask and friends) for one variant."""
        data = await self._get(
            f"/catalog/products/{product_id}/variants/{variant_id}/market-data",
            {"currencyCode": self.currency},
            self.price_policy,
            label=f"Market data {variant_id}",
        )
        return data if isinstance(data, dict) else {}

    async def _get(
        self,
        path: str,
        params: Optional[Dict[str, str]],
        policy: RetryPolicy,
        label: str,
    ) -> Any:
        refreshed = False
        while True:
            try:
                return await policy.run(lambda: self._send(path, params), label=label)
            except MarketplaceAuthError:
                if refreshed:
                    raise
                logger.info(f"Got 401 for {label}, attempting refresh...")
                if not await self.token_store.refresh():
                    raise MarketplaceAuthError(
                        "Token expired and refresh failed. Please login again."
                    )
                refreshed = True

    async def _send(self, path: str, params: Optional[Dict[str, str]]) -> Any:
        """One GET attempt, translating statuses into exceptions."""
        client = await self._get_client()
        token = await self.token_store.ensure_access_token()

        response = await client.get(
            f"{self.base_url}{path}",
            params=params,
            headers={
                "x-api-key": self.api_key,
                "Authorization": f"Bearer {token}",
            },
        )

        if response.status_code == 401:
            raise MarketplaceAuthError(f"Unauthorized: {path}")

        if response.status_code in RETRYABLE_STATUSES:
            raise MarketplaceRateLimitError(response.status_code)

        if not response.is_success:
            raise MarketplaceHTTPError(response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise MarketplaceResponseError(f"Malformed JSON from {path}: {e}") from e

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
