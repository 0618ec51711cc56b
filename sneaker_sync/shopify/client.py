"""
Shopify GraphQL Admin API client.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class ShopifyClientError(Exception):
    """Base exception for Shopify client errors."""
    pass


class ShopifyAuthError(ShopifyClientError):
    """Authentication error."""
    pass


class ShopifyRateLimitError(ShopifyClientError):
    """Rate limit exceeded."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class StorefrontMutationError(ShopifyClientError):
    """A mutation answered with field-level userErrors."""

    def __init__(self, operation: str, user_errors: List[Dict[str, Any]]):
        messages = [e.get("message", str(e)) for e in user_errors]
        super().__init__(f"{operation}: {', '.join(messages)}")
        self.operation = operation
        self.user_errors = user_errors

    @property
    def messages(self) -> List[str]:
        return [e.get("message", str(e)) for e in self.user_errors]


def mutation_payload(data: Dict[str, Any], operation: str) -> Dict[str, Any]:
    """
    Pull a mutation's payload out of the response data.

    Raises:
        StorefrontMutationError: If the payload carries userErrors
    """
    payload = data.get(operation) or {}
    user_errors = payload.get("userErrors") or []
    if user_errors:
        logger.error(f"{operation} user errors: {user_errors}")
        raise StorefrontMutationError(operation, user_errors)
    return payload


class ShopifyClient:
    """
    Async HTTP client for Shopify GraphQL Admin API.

    Handles authentication, rate limiting, and retries.
    """

    API_VERSION = "2024-10"
    MAX_RETRIES = 5
    BASE_RETRY_DELAY = 1.0  # seconds

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Shopify client.

        Args:
            shop_domain: Store domain (e.g., "mystore.myshopify.com")
            access_token: Admin API access token
            http_client: Optional preconfigured HTTP client
        """
        domain = shop_domain.strip()
        for prefix in ("https://", "http://"):
            if domain.startswith(prefix):
                domain = domain[len(prefix):]
        domain = domain.rstrip("/")

        self.shop_domain = domain
        self.access_token = access_token
        self.graphql_url = (
            f"https://{domain}/admin/api/{self.API_VERSION}/graphql.json"
        )

        self._client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(60.0, connect=10.0),
                headers={
                    "Content-Type": "application/json",
                    "X-Shopify-Access-Token": self.access_token,
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def execute(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Execute a GraphQL query/mutation with retry logic.

        Args:
            query: GraphQL query or mutation string
            variables: Optional variables for the query

        Returns:
            The 'data' portion of the GraphQL response

        Raises:
            ShopifyAuthError: If authentication fails
            ShopifyRateLimitError: If rate limit exceeded after retries
            ShopifyClientError: For other errors
        """
        client = await self._get_client()
        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        last_error: Optional[Exception] = None

        for attempt in range(self.MAX_RETRIES):
            try:
                response = await client.post(
                    self.graphql_url,
                    json=payload,
                    headers={"X-Shopify-Access-Token": self.access_token},
                )

                if response.status_code == 401:
                    raise ShopifyAuthError(
                        f"Authentication failed for {self.shop_domain}"
                    )

                if response.status_code == 429:
                    retry_after = float(
                        response.headers.get("Retry-After", self.BASE_RETRY_DELAY)
                    )
                    raise ShopifyRateLimitError(
                        "Rate limit exceeded", retry_after=retry_after
                    )

                if response.status_code >= 500:
                    raise ShopifyRateLimitError(
                        f"Server error {response.status_code}"
                    )

                if not response.is_success:
                    raise ShopifyClientError(
                        f"HTTP {response.status_code}: {response.text[:200]}"
                    )

                result = response.json()

                # GraphQL-level errors (userErrors are left to the caller)
                if result.get("errors"):
                    error_messages = [
                        e.get("message", str(e)) for e in result["errors"]
                    ]

                    if any("throttl" in msg.lower() for msg in error_messages):
                        raise ShopifyRateLimitError(
                            f"GraphQL throttled: {error_messages}"
                        )

                    raise ShopifyClientError(
                        f"GraphQL errors: {error_messages}"
                    )

                cost = (result.get("extensions") or {}).get("cost") or {}
                available = (cost.get("throttleStatus") or {}).get("currentlyAvailable")
                if available is not None and available < 100:
                    logger.warning(
                        f"Low rate limit points: {available} available"
                    )

                return result.get("data") or {}

            except ShopifyRateLimitError as e:
                last_error = e
                delay = e.retry_after or (
                    self.BASE_RETRY_DELAY * (2 ** attempt)
                )
                logger.warning(
                    f"Rate limited, waiting {delay:.1f}s "
                    f"(attempt {attempt + 1}/{self.MAX_RETRIES})"
                )
                await asyncio.sleep(delay)

            except httpx.TransportError as e:
                last_error = ShopifyClientError(f"Request error: {e}")
                delay = self.BASE_RETRY_DELAY * (2 ** attempt)
                logger.warning(
                    f"Request error, retrying in {delay:.1f}s: {e}"
                )
                await asyncio.sleep(delay)

            except ValueError as e:
                raise ShopifyClientError(f"Malformed response: {e}") from e

        # All retries exhausted
        raise last_error or ShopifyClientError("Max retries exceeded")

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
