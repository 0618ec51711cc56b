"""
Shared fixtures: recorded sleeps, in-memory token storage and an in-memory
storefront.
"""

import dataclasses
import itertools
from decimal import Decimal
from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from sneaker_sync.db import SQLiteDatabase
from sneaker_sync.marketplace import TokenState, TokenStorage
from sneaker_sync.processor.models import (
    BrandCollection,
    CreatedProduct,
    ExistingProduct,
    ProductOption,
    ProductPriceSnapshot,
    ProductRef,
    StorefrontVariant,
    VariantQuote,
)
from sneaker_sync.processor.rules import SIZE_OPTION_NAME, base_sku_from_variant_sku
from sneaker_sync.shopify import ShopifyClientError


class RecordingSleep:
    """Stand-in for asyncio.sleep that returns at once and remembers delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class InMemoryTokenStorage(TokenStorage):
    def __init__(self, state: Optional[TokenState] = None):
        self.state = state
        self.saves = 0

    async def load(self) -> Optional[TokenState]:
        return self.state

    async def save(self, state: TokenState) -> None:
        self.saves += 1
        self.state = state


@dataclasses.dataclass
class FakeProduct:
    id: str
    title: str
    vendor: str = ""
    tags: List[str] = dataclasses.field(default_factory=list)
    variants: List[StorefrontVariant] = dataclasses.field(default_factory=list)
    option_values: List[str] = dataclasses.field(default_factory=list)


class FakeGateway:
    """
    In-memory storefront with the StorefrontGateway interface.

    Like Shopify, product create only materializes the first option value as
    a variant, and bulk-created variants append their option values at the end.
    """

    def __init__(self):
        self.products: Dict[str, FakeProduct] = {}
        self.collections: Dict[str, BrandCollection] = {}
        self.collection_members: Dict[str, List[str]] = {}
        self.inventory: Dict[str, tuple] = {}
        self.calls: List[str] = []
        self.fail = set()
        self._ids = itertools.count(1)

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise ShopifyClientError(f"{name} failed")

    def _new_variant(self, size: str, price: str, sku: Optional[str] = None) -> StorefrontVariant:
        n = next(self._ids)
        return StorefrontVariant(
            id=f"gid://shopify/ProductVariant/{n}",
            price=price,
            sku=sku,
            inventory_item_id=f"gid://shopify/InventoryItem/{n}",
            size=size,
        )

    def add_product(self, title: str, sizes: Dict[str, str], tags=(), vendor: str = "") -> str:
        """Seed a product; ``sizes`` maps size value to price string."""
        product_id = f"gid://shopify/Product/{next(self._ids)}"
        self.products[product_id] = FakeProduct(
            id=product_id,
            title=title,
            vendor=vendor,
            tags=list(tags),
            variants=[self._new_variant(size, price) for size, price in sizes.items()],
            option_values=list(sizes),
        )
        return product_id

    def mutation_calls(self) -> List[str]:
        reads = {"get_variants", "get_option", "find_duplicate", "find_collection", "list_synced_products"}
        return [c for c in self.calls if c not in reads]

    def prices(self, product_id: str) -> Dict[str, str]:
        return {v.size: v.price for v in self.products[product_id].variants}

    # Reads

    async def get_variants(self, product_id: str) -> Optional[List[StorefrontVariant]]:
        self._call("get_variants")
        product = self.products.get(product_id)
        if product is None:
            return None
        return [dataclasses.replace(v) for v in product.variants]

    async def get_option(self, product_id: str, name: str) -> Optional[ProductOption]:
        self._call("get_option")
        product = self.products.get(product_id)
        if product is None or name != SIZE_OPTION_NAME or not product.option_values:
            return None
        return ProductOption(id=f"{product_id}/option", name=name, values=list(product.option_values))

    async def find_duplicate(self, sku: str, title: str) -> Optional[ExistingProduct]:
        self._call("find_duplicate")
        for product in self.products.values():
            if sku in product.tags or product.title == title:
                return ExistingProduct(id=product.id, title=product.title)
        return None

    async def find_collection(self, title: str) -> Optional[BrandCollection]:
        self._call("find_collection")
        return self.collections.get(title)

    async def list_synced_products(self, tag: str, query: Optional[str] = None) -> List[ProductRef]:
        self._call("list_synced_products")
        refs = []
        for product in self.products.values():
            if tag in product.tags:
                first_sku = product.variants[0].sku if product.variants else None
                refs.append(ProductRef(id=product.id, title=product.title, sku=base_sku_from_variant_sku(first_sku)))
        return refs

    # Mutations

    async def create_smart_collection(self, title: str) -> BrandCollection:
        self._call("create_smart_collection")
        collection = BrandCollection(id=f"gid://shopify/Collection/{next(self._ids)}", title=title, is_smart=True)
        self.collections[title] = collection
        return collection

    async def add_to_collection(self, collection_id: str, product_id: str) -> None:
        self._call("add_to_collection")
        self.collection_members.setdefault(collection_id, []).append(product_id)

    async def create_product(self, draft) -> CreatedProduct:
        self._call("create_product")
        product_id = f"gid://shopify/Product/{next(self._ids)}"
        first = self._new_variant(draft.option_values[0], "0.00")
        self.products[product_id] = FakeProduct(
            id=product_id,
            title=draft.title,
            vendor=draft.vendor,
            tags=list(draft.tags),
            variants=[first],
            option_values=list(draft.option_values[:1]),
        )
        self.last_draft = draft
        return CreatedProduct(id=product_id, title=draft.title, variants=[dataclasses.replace(first)])

    async def create_variants(self, product_id: str, variants) -> List[StorefrontVariant]:
        self._call("create_variants")
        product = self.products[product_id]
        created = []
        for desired in variants:
            variant = self._new_variant(desired.size, str(desired.price))
            product.variants.append(variant)
            if desired.size not in product.option_values:
                product.option_values.append(desired.size)
            created.append(dataclasses.replace(variant))
        return created

    async def update_prices(self, product_id: str, updates) -> None:
        self._call("update_prices")
        by_id = {v.id: v for v in self.products[product_id].variants}
        for variant_id, price in updates:
            by_id[variant_id].price = str(price)

    async def delete_variants(self, product_id: str, variant_ids) -> None:
        self._call("delete_variants")
        product = self.products[product_id]
        product.variants = [v for v in product.variants if v.id not in set(variant_ids)]
        live = {v.size for v in product.variants}
        product.option_values = [value for value in product.option_values if value in live]

    async def update_inventory_item(self, inventory_item_id: str, sku: str, tracked: bool = True) -> None:
        self._call("update_inventory_item")
        self.inventory[inventory_item_id] = (sku, tracked)
        for product in self.products.values():
            for variant in product.variants:
                if variant.inventory_item_id == inventory_item_id:
                    variant.sku = sku

    async def reorder_option_values(self, product_id: str, option_id: str, ordered_values) -> None:
        self._call("reorder_option_values")
        self.products[product_id].option_values = list(ordered_values)


def make_snapshot(sku: str = "FV5029-100", asks: Optional[Dict[str, object]] = None, **kwargs) -> ProductPriceSnapshot:
    """Snapshot with one quote per EU size; an ask of None means no ask."""
    asks = asks if asks is not None else {"42": 120}
    return ProductPriceSnapshot(
        title=kwargs.pop("title", "Nike Dunk Low Retro White Black"),
        sku=sku,
        variants=[
            VariantQuote(
                size_eu=size,
                size_us=size,
                ask_price=Decimal(str(ask)) if ask is not None else None,
            )
            for size, ask in asks.items()
        ],
        **kwargs,
    )


@pytest.fixture
def no_sleep():
    return RecordingSleep()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest_asyncio.fixture
async def db(tmp_path):
    database = SQLiteDatabase(str(tmp_path / "app.db"))
    await database.initialize()
    yield database
    await database.close()
