"""
Storefront catalog operations on top of the Shopify GraphQL client.

Reads return domain types from processor.models; mutations raise
StorefrontMutationError when Shopify answers with userErrors.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from ..processor.models import (
    BrandCollection,
    CreatedProduct,
    DesiredVariant,
    ExistingProduct,
    ProductDraft,
    ProductOption,
    ProductRef,
    StorefrontVariant,
)
from ..processor.rules import SIZE_OPTION_NAME, base_sku_from_variant_sku
from .client import ShopifyClient, mutation_payload
from .mutations import (
    COLLECTION_ADD_PRODUCTS,
    COLLECTION_CREATE,
    INVENTORY_ITEM_UPDATE,
    PRODUCT_CREATE,
    PRODUCT_OPTIONS_REORDER,
    PRODUCT_VARIANTS_BULK_CREATE,
    PRODUCT_VARIANTS_BULK_DELETE,
    PRODUCT_VARIANTS_BULK_UPDATE,
)
from .queries import (
    COLLECTION_BY_TITLE_QUERY,
    PRODUCT_OPTIONS_QUERY,
    PRODUCT_SEARCH_QUERY,
    PRODUCT_VARIANTS_QUERY,
    SYNCED_PRODUCTS_QUERY,
    build_collection_query,
    build_duplicate_query,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = 250
MAX_LISTED_PRODUCTS = 5000


def _nodes(connection: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Nodes of a GraphQL connection, accepting edges or nodes shape."""
    if not connection:
        return []
    if "nodes" in connection:
        return connection["nodes"] or []
    return [edge["node"] for edge in connection.get("edges") or [] if edge.get("node")]


def parse_variant(node: Dict[str, Any], option_name: str = SIZE_OPTION_NAME) -> StorefrontVariant:
    """Convert a variant node into a StorefrontVariant."""
    size = None
    for option in node.get("selectedOptions") or []:
        if option.get("name") == option_name:
            size = option.get("value")
            break

    inventory_item = node.get("inventoryItem") or {}
    return StorefrontVariant(
        id=node["id"],
        price=node.get("price"),
        sku=node.get("sku"),
        inventory_item_id=inventory_item.get("id"),
        size=size,
    )


class StorefrontGateway:
    """Catalog reads and mutations against one Shopify store."""

    def __init__(self, client: ShopifyClient):
        self.client = client

    async def get_variants(self, product_id: str) -> Optional[List[StorefrontVariant]]:
        """
        Current variants of a product.

        Returns:
            Variants, or None if the product does not exist
        """
        data = await self.client.execute(PRODUCT_VARIANTS_QUERY, {"id": product_id})
        product = data.get("product")
        if not product:
            return None
        return [parse_variant(node) for node in _nodes(product.get("variants"))]

    async def get_option(self, product_id: str, name: str) -> Optional[ProductOption]:
        """Look up a product option by name."""
        data = await self.client.execute(PRODUCT_OPTIONS_QUERY, {"id": product_id})
        product = data.get("product") or {}
        for option in product.get("options") or []:
            if option.get("name") == name:
                return ProductOption(
                    id=option["id"],
                    name=option["name"],
                    values=list(option.get("values") or []),
                )
        return None

    async def find_duplicate(self, sku: str, title: str) -> Optional[ExistingProduct]:
        """First product tagged with the SKU or carrying the same title."""
        data = await self.client.execute(
            PRODUCT_SEARCH_QUERY, {"query": build_duplicate_query(sku, title)}
        )
        nodes = _nodes(data.get("products"))
        if not nodes:
            return None
        return ExistingProduct(id=nodes[0]["id"], title=nodes[0].get("title"))

    async def find_collection(self, title: str) -> Optional[BrandCollection]:
        """Collection with exactly this title, if any."""
        data = await self.client.execute(
            COLLECTION_BY_TITLE_QUERY, {"query": build_collection_query(title)}
        )
        for node in _nodes(data.get("collections")):
            if node.get("title") == title:
                return BrandCollection(
                    id=node["id"],
                    title=node["title"],
                    is_smart=node.get("ruleSet") is not None,
                )
        return None

    async def create_smart_collection(self, title: str) -> BrandCollection:
        """Create a collection that picks up every product whose vendor is ``title``."""
        data = await self.client.execute(COLLECTION_CREATE, {
            "input": {
                "title": title,
                "ruleSet": {
                    "appliedDisjunctively": False,
                    "rules": [
                        {"column": "VENDOR", "relation": "EQUALS", "condition": title}
                    ],
                },
            }
        })
        collection = mutation_payload(data, "collectionCreate").get("collection") or {}
        logger.info(f"Created collection '{title}'")
        return BrandCollection(id=collection.get("id"), title=title, is_smart=True)

    async def add_to_collection(self, collection_id: str, product_id: str) -> None:
        data = await self.client.execute(
            COLLECTION_ADD_PRODUCTS, {"id": collection_id, "productIds": [product_id]}
        )
        mutation_payload(data, "collectionAddProducts")

    async def create_product(self, draft: ProductDraft) -> CreatedProduct:
        """
        Create a product with one option and the given option values.

        Shopify materializes at least one variant from the option values;
        the rest are added with create_variants.
        """
        media = None
        if draft.image_url:
            media = [{
                "originalSource": draft.image_url,
                "alt": draft.title,
                "mediaContentType": "IMAGE",
            }]

        data = await self.client.execute(PRODUCT_CREATE, {
            "input": {
                "title": draft.title,
                "vendor": draft.vendor,
                "productType": draft.product_type,
                "status": draft.status,
                "productOptions": [{
                    "name": draft.option_name,
                    "values": [{"name": value} for value in draft.option_values],
                }],
                "tags": draft.tags,
            },
            "media": media,
        })

        product = mutation_payload(data, "productCreate").get("product") or {}
        variants = [
            parse_variant(node, draft.option_name)
            for node in _nodes(product.get("variants"))
        ]
        return CreatedProduct(
            id=product.get("id"),
            title=product.get("title") or draft.title,
            variants=variants,
        )

    async def create_variants(
        self,
        product_id: str,
        variants: List[DesiredVariant],
        option_name: str = SIZE_OPTION_NAME,
    ) -> List[StorefrontVariant]:
        """Bulk-create priced variants, one per size."""
        if not variants:
            return []

        data = await self.client.execute(PRODUCT_VARIANTS_BULK_CREATE, {
            "productId": product_id,
            "variants": [
                {
                    "price": str(v.price),
                    "optionValues": [{"optionName": option_name, "name": v.size}],
                }
                for v in variants
            ],
        })
        payload = mutation_payload(data, "productVariantsBulkCreate")
        return [
            parse_variant(node, option_name)
            for node in payload.get("productVariants") or []
        ]

    async def update_prices(
        self,
        product_id: str,
        updates: List[Tuple[str, Decimal]],
    ) -> None:
        """Bulk-update prices, given (variant id, price) pairs."""
        if not updates:
            return

        data = await self.client.execute(PRODUCT_VARIANTS_BULK_UPDATE, {
            "productId": product_id,
            "variants": [
                {"id": variant_id, "price": str(price)}
                for variant_id, price in updates
            ],
        })
        mutation_payload(data, "productVariantsBulkUpdate")

    async def delete_variants(self, product_id: str, variant_ids: List[str]) -> None:
        if not variant_ids:
            return

        data = await self.client.execute(
            PRODUCT_VARIANTS_BULK_DELETE,
            {"productId": product_id, "variantsIds": variant_ids},
        )
        mutation_payload(data, "productVariantsBulkDelete")

    async def update_inventory_item(
        self,
        inventory_item_id: str,
        sku: str,
        tracked: bool = True,
    ) -> None:
        """Set the SKU and tracking flag of one inventory item."""
        data = await self.client.execute(INVENTORY_ITEM_UPDATE, {
            "id": inventory_item_id,
            "input": {"sku": sku, "tracked": tracked},
        })
        mutation_payload(data, "inventoryItemUpdate")

    async def reorder_option_values(
        self,
        product_id: str,
        option_id: str,
        ordered_values: List[str],
    ) -> None:
        data = await self.client.execute(PRODUCT_OPTIONS_REORDER, {
            "productId": product_id,
            "options": [{
                "id": option_id,
                "values": [{"name": value} for value in ordered_values],
            }],
        })
        mutation_payload(data, "productOptionsReorder")

    async def list_synced_products(
        self,
        tag: str,
        query: Optional[str] = None,
        limit: int = MAX_LISTED_PRODUCTS,
    ) -> List[ProductRef]:
        """
        List products carrying the sync tag, following pagination.

        Args:
            tag: Tag every synced product carries
            query: Optional title or SKU fragment to filter by
            limit: Maximum number of products returned

        Returns:
            Products with the base SKU recovered from their first variant
        """
        search = f"tag:{tag}"
        if query:
            search = f"{search} AND (title:*{query}* OR sku:*{query}*)"

        products: List[ProductRef] = []
        cursor = None

        while len(products) < limit:
            data = await self.client.execute(SYNCED_PRODUCTS_QUERY, {
                "query": search,
                "first": PAGE_SIZE,
                "after": cursor,
            })
            connection = data.get("products") or {}

            for node in _nodes(connection):
                first_variant = next(iter(_nodes(node.get("variants"))), {})
                products.append(ProductRef(
                    id=node["id"],
                    title=node.get("title") or "",
                    sku=base_sku_from_variant_sku(first_variant.get("sku")),
                ))

            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            cursor = page_info.get("endCursor")

        if len(products) > limit:
            logger.warning(f"Synced product listing capped at {limit}")
        return products[:limit]
