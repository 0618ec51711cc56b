"""
Tests for the price fetch pipeline against a mocked StockX API.
"""

import asyncio
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
import respx

from conftest import InMemoryTokenStorage
from sneaker_sync.marketplace import MarketplaceClient, TokenState, TokenStore
from sneaker_sync.processor import FailureKind, FetchFailure, PriceFetchPipeline, ProductPriceSnapshot

TOKEN_URL = "https://accounts.stockx.com/oauth/token"
SEARCH_PATH = "/v2/catalog/search"
VARIANTS_PATH = "/v2/catalog/products/p1/variants"

PRODUCT = {
    "productId": "p1",
    "title": "Nike Dunk Low Retro White Black",
    "styleId": "FV5029-100",
    "brand": "Nike",
    "media": {"imageUrl": "https://images.example/dunk.jpg"},
}

VARIANTS = [
    {
        "variantId": "v1",
        "sizeChart": {
            "defaultConversion": {"size": "US 9", "type": "us m"},
            "availableConversions": [{"size": "42.5", "type": "eu"}],
        },
    },
    {
        "variantId": "v2",
        "sizeChart": {"defaultConversion": {"size": "US 10"}, "availableConversions": []},
    },
    {
        "variantId": "v3",
        "sizeChart": {
            "defaultConversion": {"size": "US 11"},
            "availableConversions": [{"size": "45", "type": "eu"}],
        },
    },
]


def market_data(asks):
    """Side effect answering market-data requests from a variant id -> (status, body) map."""
    def respond(request):
        status, body = asks[request.url.path.split("/")[-2]]
        return httpx.Response(status, json=body)
    return respond


def mock_catalog(router, asks=None, variants=None, search=None):
    search = router.get(path=SEARCH_PATH).mock(
        side_effect=search or [httpx.Response(200, json={"results": [PRODUCT]})]
    )
    router.get(path=VARIANTS_PATH).mock(
        return_value=httpx.Response(200, json=variants if variants is not None else VARIANTS)
    )
    asks = asks or {
        "v1": (200, {"lowestAskAmount": "100"}),
        "v2": (200, {"market": {"lowestAsk": 150}}),
        "v3": (200, {"lowestAsk": 200}),
    }
    router.get(path__regex=r"^/v2/catalog/products/p1/variants/\w+/market-data$").mock(
        side_effect=market_data(asks)
    )
    return search


class Harness:
    def __init__(self, state, sleep):
        self.storage = InMemoryTokenStorage(state)
        self.store = TokenStore(self.storage, client_id="client", client_secret="secret")
        self.client = MarketplaceClient(self.store, api_key="key", sleep=sleep)
        self.pipeline = PriceFetchPipeline(self.client, self.store, sleep=sleep)

    async def close(self):
        await self.client.close()
        await self.store.close()


@pytest_asyncio.fixture
async def harness(no_sleep):
    h = Harness(TokenState(access_token="a1", refresh_token="r1"), no_sleep)
    yield h
    await h.close()


class TestFetch:
    """Tests for PriceFetchPipeline.fetch."""

    @pytest.mark.asyncio
    async def test_builds_snapshot(self, harness):
        async with respx.mock() as router:
            search = mock_catalog(router)
            snapshot = await harness.pipeline.fetch("FV5029-100")

        assert isinstance(snapshot, ProductPriceSnapshot)
        assert snapshot.title == "Nike Dunk Low Retro White Black"
        assert snapshot.sku == "FV5029-100"
        assert snapshot.brand == "Nike"
        assert snapshot.image_url == "https://images.example/dunk.jpg"
        assert [(q.size_eu, q.size_us, q.ask_price) for q in snapshot.variants] == [
            ("42.5", "9", Decimal("100")),
            ("10", "10", Decimal("150")),
            ("45", "11", Decimal("200")),
        ]

        request = search.calls.last.request
        assert request.headers["x-api-key"] == "key"
        assert request.headers["Authorization"] == "Bearer a1"
        assert request.url.params["query"] == "FV5029-100"
        assert request.url.params["pageSize"] == "1"
        assert request.url.params["dataType"] == "product"

    @pytest.mark.asyncio
    async def test_missing_and_failed_asks_become_no_ask(self, harness):
        asks = {
            "v1": (200, {"lowestAskAmount": None}),
            "v2": (404, {"error": "not found"}),
            "v3": (200, {"lowestAskAmount": "abc"}),
        }
        async with respx.mock() as router:
            mock_catalog(router, asks=asks)
            snapshot = await harness.pipeline.fetch("FV5029-100")

        assert len(snapshot.variants) == 3
        assert snapshot.priced_variants == []

    @pytest.mark.asyncio
    async def test_rate_limited_price_is_retried_then_dropped(self, harness):
        asks = {
            "v1": (429, None),
            "v2": (200, {"lowestAskAmount": 150}),
            "v3": (200, {"lowestAskAmount": 200}),
        }
        async with respx.mock() as router:
            mock_catalog(router, asks=asks)
            snapshot = await harness.pipeline.fetch("FV5029-100")
            price_calls = [
                call for call in router.calls
                if call.request.url.path.endswith("/v1/market-data")
            ]

        assert len(price_calls) == 3
        assert [q.has_ask for q in snapshot.variants] == [False, True, True]

    @pytest.mark.asyncio
    async def test_variants_wrapped_in_object(self, harness):
        async with respx.mock() as router:
            mock_catalog(router, variants={"variants": VARIANTS[:1]})
            snapshot = await harness.pipeline.fetch("FV5029-100")

        assert [q.size_eu for q in snapshot.variants] == ["42.5"]

    @pytest.mark.asyncio
    async def test_malformed_size_chart_does_not_sink_fetch(self, harness):
        variants = [VARIANTS[0], {"variantId": "v2", "sizeChart": ["garbage"]}]
        async with respx.mock() as router:
            mock_catalog(router, variants=variants)
            snapshot = await harness.pipeline.fetch("FV5029-100")

        assert isinstance(snapshot, ProductPriceSnapshot)
        assert [(q.size_eu, q.ask_price) for q in snapshot.variants] == [
            ("42.5", Decimal("100")),
            ("N/A", Decimal("150")),
        ]

    @pytest.mark.asyncio
    async def test_blank_sku(self, harness):
        result = await harness.pipeline.fetch("  ")

        assert isinstance(result, FetchFailure)
        assert result.kind == FailureKind.VALIDATION_ERROR
        assert result.detail == "Missing 'sku'"

    @pytest.mark.asyncio
    async def test_no_search_hits(self, harness):
        async with respx.mock() as router:
            router.get(path=SEARCH_PATH).mock(return_value=httpx.Response(200, json={"results": []}))
            result = await harness.pipeline.fetch("NOPE-000")

        assert result.kind == FailureKind.NOT_FOUND
        assert result.detail == "No products found for SKU: NOPE-000"

    @pytest.mark.asyncio
    async def test_search_gives_up_after_three_attempts(self, harness, no_sleep):
        async with respx.mock() as router:
            search = router.get(path=SEARCH_PATH).mock(return_value=httpx.Response(429))
            result = await harness.pipeline.fetch("FV5029-100")

        assert result.kind == FailureKind.NOT_FOUND
        assert result.detail == "Search failed after retries for SKU: FV5029-100"
        assert search.call_count == 3
        backoffs = [d for d in no_sleep.delays if d >= 1]
        assert backoffs == [4.0, 8.0]

    @pytest.mark.asyncio
    async def test_variants_http_error(self, harness):
        async with respx.mock() as router:
            router.get(path=SEARCH_PATH).mock(return_value=httpx.Response(200, json={"results": [PRODUCT]}))
            variants = router.get(path=VARIANTS_PATH).mock(return_value=httpx.Response(500, text="boom"))
            result = await harness.pipeline.fetch("FV5029-100")

        assert result.kind == FailureKind.UPSTREAM_ERROR
        assert variants.call_count == 1

    @pytest.mark.asyncio
    async def test_malformed_variants_body(self, harness):
        async with respx.mock(assert_all_called=False) as router:
            mock_catalog(router, variants={"unexpected": True})
            result = await harness.pipeline.fetch("FV5029-100")

        assert result.kind == FailureKind.UPSTREAM_ERROR


class TestAuthorization:
    """Tests for token handling inside the pipeline."""

    @pytest.mark.asyncio
    async def test_no_token_is_unauthorized(self, no_sleep):
        harness = Harness(None, no_sleep)

        async with respx.mock(assert_all_called=False):
            result = await harness.pipeline.fetch("FV5029-100")

        assert result.kind == FailureKind.UNAUTHORIZED
        assert "/stockx/login" in result.action_hint
        await harness.close()

    @pytest.mark.asyncio
    async def test_401_refreshes_once_and_retries(self, harness):
        async with respx.mock() as router:
            search = mock_catalog(router, search=[
                httpx.Response(401),
                httpx.Response(200, json={"results": [PRODUCT]}),
            ])
            token = router.post(TOKEN_URL).mock(
                return_value=httpx.Response(200, json={"access_token": "a2", "expires_in": 43200})
            )
            snapshot = await harness.pipeline.fetch("FV5029-100")

        assert isinstance(snapshot, ProductPriceSnapshot)
        assert token.call_count == 1
        assert search.call_count == 2
        assert search.calls.last.request.headers["Authorization"] == "Bearer a2"
        assert harness.storage.state.refresh_token == "r1"

    @pytest.mark.asyncio
    async def test_401_with_failed_refresh_is_unauthorized(self, harness):
        async with respx.mock() as router:
            router.get(path=SEARCH_PATH).mock(return_value=httpx.Response(401))
            router.post(TOKEN_URL).mock(return_value=httpx.Response(400, json={"error": "invalid_grant"}))
            result = await harness.pipeline.fetch("FV5029-100")

        assert result.kind == FailureKind.UNAUTHORIZED
        assert "refresh failed" in result.detail

    @pytest.mark.asyncio
    async def test_failed_refresh_stops_remaining_price_requests(self, harness):
        variants = [
            {"variantId": f"v{n}", "sizeChart": {"defaultConversion": {"size": f"US {n + 4}"}}}
            for n in range(10)
        ]
        asks = {f"v{n}": (200, {"lowestAskAmount": 100}) for n in range(1, 10)}
        asks["v0"] = (401, None)

        async with respx.mock() as router:
            mock_catalog(router, asks=asks, variants=variants)
            router.post(TOKEN_URL).mock(return_value=httpx.Response(400, json={"error": "invalid_grant"}))
            result = await harness.pipeline.fetch("FV5029-100")

            calls_at_return = len(router.calls)
            for _ in range(50):
                await asyncio.sleep(0)

            assert len(router.calls) == calls_at_return

        assert result.kind == FailureKind.UNAUTHORIZED
